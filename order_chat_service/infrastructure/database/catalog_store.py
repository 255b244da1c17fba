# Read-only lookups against the products collection owned by the catalog
import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import PyMongoError

from order_chat_service.app.service.exceptions import CatalogUnavailableError
from order_chat_service.app.service.interfaces.catalog_client import AbstractCatalogClient, CatalogService
from .connection import PRODUCTS_COLLECTION

logger = logging.getLogger(__name__)


class MongoCatalogClient(AbstractCatalogClient):
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def get_service(self, service_id: str) -> Optional[CatalogService]:
        try:
            doc = await self.db[PRODUCTS_COLLECTION].find_one({"id": service_id})
        except PyMongoError as e:
            logger.error(f"Catalog lookup for service {service_id} failed: {e}", exc_info=True)
            raise CatalogUnavailableError(f"Catalog lookup for service '{service_id}' failed: {e}") from e

        if doc is None:
            logger.info(f"Service {service_id} not found in {PRODUCTS_COLLECTION}.")
            return None
        try:
            return CatalogService(**doc)
        except PydanticValidationError as e:
            logger.error(f"Product record {service_id} has an invalid additional field schema: {e}")
            raise CatalogUnavailableError(f"Product record '{service_id}' is malformed.") from e
