# storage.py
"""
Object storage for room photos (Vercel Blob).

Objects are keyed as `{user_id}/{epoch_ms}.{ext}` and stored with public
access; the URL returned by the upload is the public URL of the object.
"""

import asyncio
import logging
import mimetypes
import os
from datetime import datetime, timezone
from typing import Optional

import vercel_blob

logger = logging.getLogger(__name__)

IMAGE_CONTENT_PREFIX = "image/"


class ImageRejected(ValueError):
    """Raised by `validate_image` for files that must not be uploaded."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class StorageError(Exception):
    """Raised when the object store rejects or fails an upload."""


def validate_image(content_type: Optional[str], size: int, max_bytes: int) -> None:
    """Pre-upload check. Runs before any network call."""
    if not content_type or not content_type.lower().startswith(IMAGE_CONTENT_PREFIX):
        raise ImageRejected("Please select a valid image file", 400)
    if size > max_bytes:
        raise ImageRejected(f"The image must be at most {max_bytes // (1024 * 1024)}MB", 413)


def build_object_key(user_id, filename: Optional[str], content_type: Optional[str], now: Optional[datetime] = None) -> str:
    """Namespaces the object by user and millisecond timestamp: `{user_id}/{epoch_ms}.{ext}`."""
    now = now or datetime.now(timezone.utc)
    epoch_ms = int(now.timestamp() * 1000)

    ext = os.path.splitext(filename or "")[1].lstrip(".").lower()
    if not ext and content_type:
        guessed = mimetypes.guess_extension(content_type.split(";")[0].strip())
        ext = (guessed or "").lstrip(".") or content_type.split("/")[-1].split(";")[0].strip()
    ext = ext or "bin"
    return f"{user_id}/{epoch_ms}.{ext}"


class BlobStorage:
    """Thin wrapper over the Vercel Blob SDK, built once at startup."""

    def __init__(self, token: str = ""):
        self.token = token
        if not token and not os.getenv("BLOB_READ_WRITE_TOKEN"):
            logger.warning("BLOB_READ_WRITE_TOKEN not set. Uploads will fail until you set it.")

    def _options(self) -> dict:
        options = {"addRandomSuffix": "false"}
        if self.token:
            options["token"] = self.token
        return options

    async def upload(self, key: str, data: bytes) -> str:
        """Uploads `data` under `key` and returns its public URL."""
        try:
            # The SDK is synchronous; keep the event loop free while it runs.
            result = await asyncio.to_thread(vercel_blob.put, key, data, self._options())
        except Exception as e:
            logger.exception(f"Blob upload failed for key {key}")
            raise StorageError(str(e)) from e

        url = (result or {}).get("url")
        if not url:
            logger.error(f"Blob upload for {key} returned no URL. Result: {result}")
            raise StorageError("The storage service returned no URL")

        logger.info(f"Uploaded {len(data)} bytes to {url}")
        return url
