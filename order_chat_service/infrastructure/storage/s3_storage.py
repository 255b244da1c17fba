# Object storage backed by S3 (or an S3-compatible endpoint)
import asyncio
import logging
import re
import time
import uuid
from typing import Optional
from urllib.parse import quote

import boto3
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from order_chat_service.app.config import settings
from order_chat_service.app.service.exceptions import ObjectStorageError
from order_chat_service.app.service.interfaces.object_storage import AbstractObjectStorage, StoredObject

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def get_s3_client(region: Optional[str] = None, endpoint_url: Optional[str] = None) -> BaseClient:
    """Return a configured S3 client (supports S3-compatible endpoints)."""
    endpoint = endpoint_url or settings.S3_ENDPOINT_URL
    return boto3.client(
        "s3",
        region_name=region or settings.S3_REGION or None,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
        endpoint_url=endpoint.rstrip("/") if endpoint else None,
    )


def sanitize_filename(filename: str) -> str:
    cleaned = _UNSAFE_KEY_CHARS.sub("_", filename.strip()).strip("._")
    return cleaned or "file"


class S3ObjectStorage(AbstractObjectStorage):
    def __init__(
        self,
        client: Optional[BaseClient] = None,
        bucket: Optional[str] = None,
        key_prefix: Optional[str] = None,
        public_base_url: Optional[str] = None,
    ):
        self.client = client or get_s3_client()
        self.bucket = bucket or settings.S3_BUCKET
        self.key_prefix = (key_prefix if key_prefix is not None else settings.S3_KEY_PREFIX).strip("/")
        self.public_base_url = public_base_url or settings.S3_PUBLIC_BASE_URL

    def build_key(self, filename: str) -> str:
        # the random part keeps same-millisecond uploads of one filename apart
        name = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{sanitize_filename(filename)}"
        return f"{self.key_prefix}/{name}" if self.key_prefix else name

    def build_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{quote(key)}"
        region = settings.S3_REGION or "us-east-1"
        return f"https://{self.bucket}.s3.{region}.amazonaws.com/{quote(key)}"

    async def put(self, data: bytes, filename: str, mime_type: str) -> StoredObject:
        key = self.build_key(filename)
        logger.info(f"Uploading {len(data)} bytes to s3://{self.bucket}/{key} (content type: {mime_type})")
        try:
            # boto3 is blocking; keep it off the event loop.
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=mime_type,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 upload of {filename} to bucket {self.bucket} failed: {e}", exc_info=True)
            raise ObjectStorageError(f"Upload of '{filename}' failed: {e}") from e
        stored = StoredObject(url=self.build_url(key), key=key)
        logger.info(f"S3 upload successful: {stored.url}")
        return stored
