# app/models/file.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class FileRecord(SQLModel, table=True):
    """
    Metadata row for an object stored in the project-files bucket.

    `file_url` holds the storage key (relative to the bucket), not a URL;
    downloads go through short-lived signed URLs.
    """

    __tablename__ = "files"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    project_id: uuid.UUID = Field(
        foreign_key="projects.id",
        index=True,
    )

    file_name: str = Field(description="Original filename as uploaded")

    file_url: str = Field(description="Storage key inside the bucket")

    file_size: int = Field(default=0, ge=0)

    content_type: str | None = Field(default=None)

    thumbnail_url: str | None = Field(default=None)

    # Capture position (AR placement)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    height: float | None = Field(default=None)
    rotation: float | None = Field(default=None)

    uploaded_by: uuid.UUID = Field(index=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
