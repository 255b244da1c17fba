# Client for the external Product/Service catalog microservice
import logging
from typing import Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from order_chat_service.app.config import settings
from order_chat_service.app.service.exceptions import CatalogUnavailableError
from order_chat_service.app.service.interfaces.catalog_client import AbstractCatalogClient, CatalogService

logger = logging.getLogger(__name__)


class HttpCatalogClient(AbstractCatalogClient):
    def __init__(self, http_client: httpx.AsyncClient, base_url: Optional[str] = None):
        self.http_client = http_client
        self.base_url = (base_url or settings.CATALOG_SERVICE_URL or "").rstrip("/")

    async def get_service(self, service_id: str) -> Optional[CatalogService]:
        if not self.base_url:
            raise CatalogUnavailableError("CATALOG_SERVICE_URL is not configured.")

        request_url = f"{self.base_url}/products/{service_id}"
        logger.debug(f"Querying catalog service: {request_url}")

        try:
            response = await self.http_client.get(request_url)
            if response.status_code == 404:
                logger.info(f"Catalog service reports service {service_id} not found.")
                return None
            response.raise_for_status()
            payload = response.json()
            # Catalog responses are either the bare product or wrapped as {"data": product}
            if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
                payload = payload["data"]
            return CatalogService(**payload)
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error calling catalog service: {e.response.status_code} - {e.response.text}", exc_info=True)
            raise CatalogUnavailableError(f"Catalog service returned {e.response.status_code} for service '{service_id}'.") from e
        except httpx.RequestError as e:
            logger.error(f"Request error calling catalog service: {e}", exc_info=True)
            raise CatalogUnavailableError(f"Catalog service unreachable: {e}") from e
        except (ValueError, TypeError, PydanticValidationError) as e:
            logger.error(f"Error parsing catalog response for service {service_id}: {e}", exc_info=True)
            raise CatalogUnavailableError(f"Catalog service returned an unreadable product for '{service_id}'.") from e
