# app/models/profile.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Profile(SQLModel, table=True):
    """
    Application profile paired with a Supabase Auth identity.

    Identity:
      - id: MUST match Supabase auth.users.id

    Role:
      - "Admin" | "Archivist" | "User"

    Supabase Auth owns email and password; `email` here is a mirror used
    for lookups and listings, not the source of truth.
    """

    __tablename__ = "profiles"

    id: uuid.UUID = Field(
        primary_key=True,
        index=True,
        description="Matches Supabase auth.users.id",
    )

    email: str = Field(
        unique=True,
        index=True,
        description="Email mirrored from Supabase auth.users",
    )

    role: str = Field(
        default="User",
        index=True,
        description="Application role: Admin | Archivist | User",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
