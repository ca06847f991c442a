# app/core/storage.py
import logging
import time
from pathlib import PurePosixPath

import httpx
from supabase import Client, StorageException

from app.core.errors import ErrorCode, UpstreamError

logger = logging.getLogger(__name__)

STORAGE_ERRORS = (StorageException, httpx.HTTPError)


class ObjectStorage:
    """
    Supabase Storage bucket behind a stable contract.

    All object keys are relative to the bucket, e.g. "<project_id>/<ts>.jpg".
    Every failure surfaces as UpstreamError.
    """

    def __init__(self, client: Client, bucket: str):
        self.client = client
        self.bucket = bucket

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    def upload(self, key: str, data: bytes, content_type: str | None = None) -> str:
        """Upload raw bytes under `key` and return the key."""
        options = {"content-type": content_type or "application/octet-stream"}
        try:
            self._bucket().upload(key, data, options)
        except STORAGE_ERRORS as exc:
            raise UpstreamError(
                "Failed to upload file",
                ErrorCode.FILE_UPLOAD_ERROR,
                details=str(exc),
            ) from exc
        return key

    def download(self, key: str) -> bytes:
        try:
            return self._bucket().download(key)
        except STORAGE_ERRORS as exc:
            raise UpstreamError(
                "Failed to download file",
                ErrorCode.FILE_DOWNLOAD_ERROR,
                details=str(exc),
            ) from exc

    def remove(self, keys: list[str]) -> None:
        # Supabase Python client expects a list of paths.
        try:
            self._bucket().remove(keys)
        except STORAGE_ERRORS as exc:
            raise UpstreamError("Failed to delete file", details=str(exc)) from exc

    def create_signed_url(self, key: str, ttl_seconds: int) -> str:
        try:
            result = self._bucket().create_signed_url(key, ttl_seconds)
        except STORAGE_ERRORS as exc:
            raise UpstreamError(
                "Failed to generate download URL",
                ErrorCode.DOWNLOAD_URL_ERROR,
                details=str(exc),
            ) from exc
        # storage3 has used both spellings across releases
        url = result.get("signedURL") or result.get("signedUrl")
        if not url:
            raise UpstreamError(
                "Failed to generate download URL", ErrorCode.DOWNLOAD_URL_ERROR
            )
        return url

    def get_public_url(self, key: str) -> str:
        return self._bucket().get_public_url(key)


def build_object_key(prefix: str, filename: str | None, now_ms: int | None = None) -> str:
    """
    Derive the storage key for an upload.

    Pattern:
        <prefix>/<epoch-millis>.<ext>

    The extension comes from the original filename (lowercased) and
    falls back to "bin".
    """
    ext = PurePosixPath(filename or "").suffix.lstrip(".").lower() or "bin"
    ts = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{prefix}/{ts}.{ext}"
