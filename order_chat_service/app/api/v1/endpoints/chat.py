# API Router for order chat over HTTP
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, File, Form, UploadFile
from pydantic import BaseModel

from order_chat_service.app.dependencies.auth import get_current_actor, require_admin
from order_chat_service.app.dependencies.services import get_chat_service
from order_chat_service.app.service.auth import Actor
from order_chat_service.app.service.chat.service import ChatService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/chat", tags=["Chat"])


class PostMessageRequest(BaseModel):
    order_id: str
    content: str


@router.get("/history/{order_id}", summary="Order chat history, oldest first")
async def get_chat_history(
    order_id: str,
    actor: Actor = Depends(get_current_actor),
    chat_service: ChatService = Depends(get_chat_service),
):
    return {"success": True, "data": await chat_service.get_chat_history(order_id, actor)}


@router.get("/messages", summary="All chat messages, newest first (admins)")
async def get_all_messages(
    actor: Actor = Depends(require_admin),
    chat_service: ChatService = Depends(get_chat_service),
):
    return {"success": True, "data": await chat_service.get_all_messages()}


@router.get("/my-messages")
async def get_my_messages(
    actor: Actor = Depends(get_current_actor),
    chat_service: ChatService = Depends(get_chat_service),
):
    return {"success": True, "data": await chat_service.get_user_messages(actor.id)}


@router.post("/messages", status_code=201)
async def post_message(
    request_data: PostMessageRequest = Body(...),
    actor: Actor = Depends(get_current_actor),
    chat_service: ChatService = Depends(get_chat_service),
):
    message = await chat_service.post_message(request_data.order_id, request_data.content, actor)
    return {"success": True, "data": message}


@router.delete("/messages/{message_id}")
async def delete_message(
    message_id: str,
    actor: Actor = Depends(require_admin),
    chat_service: ChatService = Depends(get_chat_service),
):
    await chat_service.delete_message(message_id)
    logger.info(f"Chat message {message_id} deleted by admin {actor.id}")
    return {"success": True, "message": "Message deleted successfully"}


@router.get("/active-users", summary="Latest message per order room (admins)")
async def get_active_users(
    actor: Actor = Depends(require_admin),
    chat_service: ChatService = Depends(get_chat_service),
):
    return {"success": True, "data": await chat_service.get_active_users()}


@router.post("/order/{order_id}/upload", status_code=201, summary="Upload a file into an order chat")
async def upload_file(
    order_id: str,
    file: UploadFile = File(...),
    message: Optional[str] = Form(None),
    actor: Actor = Depends(get_current_actor),
    chat_service: ChatService = Depends(get_chat_service),
):
    content = await file.read()
    chat_message = await chat_service.upload_file(
        order_id, actor, content, file.filename or "file", file.content_type, message
    )
    return {"success": True, "data": chat_message}
