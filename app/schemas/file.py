# app/schemas/file.py
import uuid
from datetime import datetime

from app.schemas.base import CamelModel


class FileRead(CamelModel):
    """Read model for file metadata."""

    id: uuid.UUID
    project_id: uuid.UUID
    file_name: str
    file_url: str
    file_size: int
    content_type: str | None = None
    thumbnail_url: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    height: float | None = None
    rotation: float | None = None
    uploaded_by: uuid.UUID
    created_at: datetime


class FileDeleteRequest(CamelModel):
    """Body of DELETE /delete."""

    project_id: uuid.UUID | None = None
    file_id: uuid.UUID | None = None
    file_url: str | None = None


class DownloadLink(CamelModel):
    id: uuid.UUID
    name: str
    size: int
    download_url: str
    expires_in: int
    expires_at: datetime
