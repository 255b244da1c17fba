# API Router for Health Checks
import logging

from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from order_chat_service.app.config import settings
from order_chat_service.app.dependencies.services import ServiceContainer, get_services
from order_chat_service.infrastructure.database.connection import get_db

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health", tags=["Monitoring"])
async def health_check(db: AsyncIOMotorDatabase = Depends(get_db), services: ServiceContainer = Depends(get_services)):
    mongodb_status = "connected"
    try:
        await db.command('ping')
    except PyMongoError as e:
        logger.error(f"MongoDB health check ping failed: {e}")
        mongodb_status = "disconnected"
    return {
        "status": "ok" if mongodb_status == "connected" else "degraded",
        "components": {
            "mongodb": mongodb_status,
            "kafka": "enabled" if services.event_publisher and services.event_publisher.producer else "disabled",
            "chat_connections": await services.registry.connection_count(),
        },
        "service_name": settings.SERVICE_NAME_API,
    }
