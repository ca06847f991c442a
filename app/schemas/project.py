# app/schemas/project.py
import uuid
from datetime import datetime

from pydantic import field_validator

from app.schemas.assignment import AssignmentRead
from app.schemas.base import CamelModel
from app.schemas.file import FileRead


class ProjectLocation(CamelModel):
    """
    Optional project location.

    Coordinate ranges are checked by the service so clients get the
    INVALID_COORDINATES code.
    """

    latitude: float | None = None
    longitude: float | None = None
    name: str | None = None
    address: str | None = None
    description: str | None = None


class ProjectCreate(CamelModel):
    """Payload for creating a project (Admin only)."""

    name: str | None = None
    description: str | None = None
    location: ProjectLocation | None = None

    @field_validator("description")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


class ProjectUpdate(CamelModel):
    """
    Partial update payload for projects.
    All fields are optional.
    """

    name: str | None = None
    description: str | None = None
    location: ProjectLocation | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("name cannot be empty")
        return v


class ProjectBulkDelete(CamelModel):
    project_ids: list[uuid.UUID] | None = None


class ProjectRead(CamelModel):
    """
    Project representation for clients.

    Counts and `is_assigned` are only filled by listing endpoints.
    """

    id: uuid.UUID
    name: str
    description: str | None = None
    location: ProjectLocation | None = None
    created_by: uuid.UUID
    created_by_email: str | None = None
    created_at: datetime
    updated_at: datetime
    assignment_count: int | None = None
    file_count: int | None = None
    is_assigned: bool | None = None


class ProjectDetail(ProjectRead):
    """
    Single project view.

    `files` / `users` are None when the caller may see the project but
    not its contents.
    """

    files: list[FileRead] | None = None
    users: list[AssignmentRead] | None = None
