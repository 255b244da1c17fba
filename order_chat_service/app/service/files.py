"""
File acceptance rules shared by the chat pipeline and order document uploads.

Chat files arrive base64 encoded (optionally as a data URL) inside a WebSocket
frame; order documents arrive as multipart uploads. Both end up as raw bytes
with a resolved MIME type before anything touches object storage.
"""
import base64
import binascii
import os
import re
from typing import Optional, Tuple

from pydantic import BaseModel

from order_chat_service.app.models import MessageType
from order_chat_service.app.service.exceptions import FileValidationError

MAX_FILE_SIZE = 10 * 1024 * 1024 # 10MB, chat attachments
MAX_ORDER_DOCUMENT_SIZE = 5 * 1024 * 1024 # 5MB, order documents

WORD_DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
EXCEL_XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

GENERIC_BINARY_TYPES = frozenset({"application/octet-stream", "binary/octet-stream"})

ALLOWED_CHAT_MIME_TYPES = frozenset({
    # Images
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    # Documents
    "application/pdf",
    "application/msword",
    WORD_DOCX,
    "application/vnd.ms-excel",
    EXCEL_XLSX,
    # Archives
    "application/zip",
    "application/x-zip-compressed",
    # Text
    "text/plain",
    "text/csv",
}) | GENERIC_BINARY_TYPES

ALLOWED_ORDER_DOCUMENT_MIME_TYPES = frozenset({
    "application/pdf",
    "image/jpeg",
    "image/png",
    "application/msword",
    WORD_DOCX,
})

EXTENSION_MIME_TYPES = {
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": WORD_DOCX,
    ".xls": "application/vnd.ms-excel",
    ".xlsx": EXCEL_XLSX,
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}

_DATA_URL = re.compile(r"^data:(?P<mime>[^;,]+)?(?:;[^,;]+=[^,;]+)*;base64,", re.IGNORECASE)


class ValidatedFile(BaseModel):
    content: bytes
    name: str
    mime_type: str
    size: int


def _format_limit(limit: int) -> str:
    return f"{limit // (1024 * 1024)}MB"


def decode_file_data(data: str) -> Tuple[bytes, Optional[str]]:
    """
    Decodes base64 or a base64 data URL.

    Returns the bytes and the MIME type embedded in the data URL, if any.
    """
    embedded_type: Optional[str] = None
    payload = data.strip()
    match = _DATA_URL.match(payload)
    if match:
        embedded_type = match.group("mime")
        payload = payload[match.end():]
    try:
        content = base64.b64decode("".join(payload.split()), validate=True)
    except (binascii.Error, ValueError):
        raise FileValidationError("File data is not valid base64")
    return content, embedded_type.lower() if embedded_type else None


def resolve_mime_type(declared_type: str, filename: str) -> str:
    """Replaces a generic binary alias with the concrete type implied by the file extension."""
    declared = declared_type.strip().lower()
    if declared not in GENERIC_BINARY_TYPES:
        return declared
    extension = os.path.splitext(filename or "")[1].lower()
    resolved = EXTENSION_MIME_TYPES.get(extension)
    if resolved is None:
        raise FileValidationError(f'File type "{declared_type}" not allowed')
    return resolved


def message_type_for(mime_type: str) -> str:
    if mime_type.startswith("image/"):
        return MessageType.IMAGE.value
    if mime_type == "application/pdf":
        return MessageType.PDF.value
    if "word" in mime_type:
        return MessageType.DOCUMENT.value
    if "excel" in mime_type or "spreadsheetml" in mime_type:
        return MessageType.SPREADSHEET.value
    return MessageType.FILE.value


def validate_chat_file(data: Optional[str], name: str, declared_type: Optional[str] = None, declared_size: Optional[int] = None) -> ValidatedFile:
    if not data:
        raise FileValidationError("No file data provided")
    # Reject oversized payloads on the declared size before spending time decoding them.
    if declared_size is not None and declared_size > MAX_FILE_SIZE:
        raise FileValidationError(f"File size exceeds {_format_limit(MAX_FILE_SIZE)} limit")

    content, embedded_type = decode_file_data(data)
    if len(content) > MAX_FILE_SIZE:
        raise FileValidationError(f"File size exceeds {_format_limit(MAX_FILE_SIZE)} limit")

    file_type = declared_type or embedded_type
    if not file_type:
        raise FileValidationError("File type could not be determined")
    mime_type = resolve_mime_type(file_type, name)
    if mime_type not in ALLOWED_CHAT_MIME_TYPES:
        raise FileValidationError(f'File type "{file_type}" not allowed')
    return ValidatedFile(content=content, name=name, mime_type=mime_type, size=len(content))


def validate_upload(content: bytes, name: str, declared_type: Optional[str], max_size: int = MAX_FILE_SIZE, allowed=ALLOWED_CHAT_MIME_TYPES) -> ValidatedFile:
    """Checks an already decoded upload (multipart) against a size limit and allow-list."""
    if not content:
        raise FileValidationError("No file provided")
    if len(content) > max_size:
        raise FileValidationError(f"File size exceeds {_format_limit(max_size)} limit")
    file_type = declared_type or "application/octet-stream"
    mime_type = resolve_mime_type(file_type, name)
    if mime_type not in allowed:
        raise FileValidationError(f'File type "{file_type}" not allowed')
    return ValidatedFile(content=content, name=name, mime_type=mime_type, size=len(content))
