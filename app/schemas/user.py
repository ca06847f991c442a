# app/schemas/user.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict

from app.schemas.base import CamelModel

# Application roles. Unauthenticated callers have no row.
RoleName = Literal["Admin", "Archivist", "User"]


class ProfileRead(CamelModel):
    """Profile as returned to clients."""

    id: uuid.UUID
    email: str
    role: RoleName
    created_at: datetime


class AdminUserRead(ProfileRead):
    """
    Profile enriched with the identity provider's confirmation status.

    `email_confirmed_at` is None both for unconfirmed users and when the
    provider lookup for that user failed. `role` is the stored string, so
    a row with an unknown role is still listed.
    """

    role: str
    email_confirmed_at: datetime | None = None


class RoleUpdate(CamelModel):
    """Admin-only role update schema."""

    model_config = ConfigDict(extra="forbid")

    role: RoleName
