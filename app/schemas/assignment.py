# app/schemas/assignment.py
import uuid
from datetime import datetime

from app.schemas.base import CamelModel


class AssignmentTarget(CamelModel):
    """Identify the user to (un)assign either by id or by email."""

    user_id: uuid.UUID | None = None
    email: str | None = None


class AssignedUser(CamelModel):
    id: uuid.UUID
    email: str
    role: str


class AssignmentRead(CamelModel):
    id: uuid.UUID
    project_id: uuid.UUID
    assigned_at: datetime
    assigned_by: uuid.UUID | None = None
    role: str
    assigned_user: AssignedUser
