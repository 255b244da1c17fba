from abc import ABC, abstractmethod

from pydantic import BaseModel


class StoredObject(BaseModel):
    url: str
    key: str


class AbstractObjectStorage(ABC):
    @abstractmethod
    async def put(self, data: bytes, filename: str, mime_type: str) -> StoredObject:
        """
        Stores `data` durably.

        Raises:
            ObjectStorageError: when the upload did not complete.
        """
        pass
