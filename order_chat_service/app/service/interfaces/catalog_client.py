from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CatalogFieldSpec(BaseModel):
    model_config = ConfigDict(extra="ignore")

    label: str
    type: str # text, number, date, select, file, boolean
    required: bool = False
    placeholder: Optional[str] = None
    options: List[str] = Field(default_factory=list)


class CatalogService(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    title: Optional[str] = None
    is_active: bool = True
    additional_fields: Dict[str, CatalogFieldSpec] = Field(default_factory=dict)


class AbstractCatalogClient(ABC):
    @abstractmethod
    async def get_service(self, service_id: str) -> Optional[CatalogService]:
        """
        Looks up a product/service by id.

        Returns:
            The service with its declared additional-field schema, or None if it does not exist.

        Raises:
            CatalogUnavailableError: when the catalog could not be consulted.
        """
        pass
