# API Router for review and finalized orders
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, File, Query, UploadFile

from order_chat_service.app.dependencies.auth import get_current_actor, require_order_manager
from order_chat_service.app.dependencies.services import get_finalization_service, get_lifecycle_service
from order_chat_service.app.service.auth import Actor
from order_chat_service.app.service.orders.finalization import OrderFinalizationService
from order_chat_service.app.service.orders.lifecycle import MAX_PAGE_SIZE, OrderLifecycleService
from order_chat_service.app.service.orders.models import (
    ApproveOrderCommand,
    CreateOrderCommand,
    OrderActionCommand,
    PatchStatusesCommand,
    UpdateOcrDataCommand,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("", status_code=201, summary="Create a review order")
async def create_order(
    command: CreateOrderCommand = Body(...),
    actor: Actor = Depends(get_current_actor),
    lifecycle: OrderLifecycleService = Depends(get_lifecycle_service),
):
    order = await lifecycle.create_order(actor, command)
    return {"success": True, "data": order}


@router.get("/my-orders", summary="List the caller's review orders")
async def list_my_orders(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    actor: Actor = Depends(get_current_actor),
    lifecycle: OrderLifecycleService = Depends(get_lifecycle_service),
):
    return {"success": True, "data": await lifecycle.list_my_orders(actor, status, page, limit)}


@router.get("/review", summary="List review orders (all for order managers, own otherwise)")
async def list_review_orders(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    actor: Actor = Depends(get_current_actor),
    lifecycle: OrderLifecycleService = Depends(get_lifecycle_service),
):
    return {"success": True, "data": await lifecycle.list_review_orders(actor, status, page, limit)}


@router.get("/review/{order_id}")
async def get_review_order(
    order_id: str,
    actor: Actor = Depends(get_current_actor),
    lifecycle: OrderLifecycleService = Depends(get_lifecycle_service),
):
    return {"success": True, "data": await lifecycle.get_review_order(order_id, actor)}


@router.get("/finalized")
async def list_finalized_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=MAX_PAGE_SIZE),
    actor: Actor = Depends(get_current_actor),
    finalization: OrderFinalizationService = Depends(get_finalization_service),
):
    return {"success": True, "data": await finalization.list_finalized_orders(actor, page, limit)}


@router.get("/finalized/{finalized_id}")
async def get_finalized_order(
    finalized_id: str,
    actor: Actor = Depends(get_current_actor),
    finalization: OrderFinalizationService = Depends(get_finalization_service),
):
    return {"success": True, "data": await finalization.get_finalized_order(finalized_id, actor)}


@router.get("/users/{user_id}", summary="All orders of one user (order managers)")
async def get_user_orders(
    user_id: str,
    actor: Actor = Depends(require_order_manager),
    lifecycle: OrderLifecycleService = Depends(get_lifecycle_service),
):
    return {"success": True, "data": await lifecycle.get_user_orders(user_id, actor)}


@router.post("/{order_id}/actions", summary="Run start_processing, complete_order or cancel_order")
async def apply_order_action(
    order_id: str,
    command: OrderActionCommand = Body(...),
    actor: Actor = Depends(get_current_actor),
    lifecycle: OrderLifecycleService = Depends(get_lifecycle_service),
):
    order = await lifecycle.apply_action(order_id, command.action, actor)
    return {"success": True, "data": order}


@router.patch("/{order_id}/status", summary="Patch one or more status axes")
async def patch_order_statuses(
    order_id: str,
    command: PatchStatusesCommand = Body(...),
    actor: Actor = Depends(get_current_actor),
    lifecycle: OrderLifecycleService = Depends(get_lifecycle_service),
):
    order = await lifecycle.patch_statuses(order_id, command, actor)
    return {"success": True, "data": order}


@router.get("/{order_id}/status-history")
async def get_status_history(
    order_id: str,
    actor: Actor = Depends(get_current_actor),
    lifecycle: OrderLifecycleService = Depends(get_lifecycle_service),
):
    return {"success": True, "data": await lifecycle.get_status_history(order_id, actor)}


@router.put("/{order_id}/ocr", summary="Merge OCR data into documents (all or nothing)")
async def update_ocr_data(
    order_id: str,
    command: UpdateOcrDataCommand = Body(...),
    actor: Actor = Depends(get_current_actor),
    lifecycle: OrderLifecycleService = Depends(get_lifecycle_service),
):
    order = await lifecycle.update_ocr_data(order_id, command.updates, actor)
    return {"success": True, "data": order}


@router.post("/{order_id}/documents/{document_id}/file")
async def attach_document_file(
    order_id: str,
    document_id: str,
    file: UploadFile = File(...),
    actor: Actor = Depends(get_current_actor),
    lifecycle: OrderLifecycleService = Depends(get_lifecycle_service),
):
    content = await file.read()
    order = await lifecycle.attach_document_file(
        order_id, document_id, content, file.filename or "document", file.content_type, actor
    )
    return {"success": True, "data": order}


@router.post("/{order_id}/approve", summary="Approve: create the finalized record and delete the review order")
async def approve_order(
    order_id: str,
    command: ApproveOrderCommand = Body(...),
    actor: Actor = Depends(require_order_manager),
    finalization: OrderFinalizationService = Depends(get_finalization_service),
):
    finalized = await finalization.approve_order(order_id, command, actor)
    return {"success": True, "data": finalized}


@router.post("/{order_id}/finalize", summary="Owner finalization; the review order is kept as finalized")
async def finalize_order(
    order_id: str,
    actor: Actor = Depends(get_current_actor),
    finalization: OrderFinalizationService = Depends(get_finalization_service),
):
    result = await finalization.finalize_order(order_id, actor)
    return {"success": True, "message": "Order finalized successfully", "data": result}
