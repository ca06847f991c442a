# app/models/project.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class Project(SQLModel, table=True):
    """
    A project that groups uploaded files and assigned users.

    `created_by` is checked against profiles at creation time only; it is
    not a foreign key, so deleting the creator leaves the project intact.
    The optional location is stored flat and exposed nested by the schemas.
    """

    __tablename__ = "projects"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(
        max_length=200,
        index=True,
    )

    description: str | None = Field(default=None)

    location_latitude: float | None = Field(default=None)
    location_longitude: float | None = Field(default=None)
    location_name: str | None = Field(default=None)
    location_address: str | None = Field(default=None)
    location_description: str | None = Field(default=None)

    created_by: uuid.UUID = Field(
        index=True,
        description="Profile id of the creator",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )


class ProjectAssignment(SQLModel, table=True):
    """
    Grant of project access to a profile.

    Access is binary: the presence of a row is what the access policy
    checks. `role` is informational and always "member".
    """

    __tablename__ = "project_assignments"
    __table_args__ = (
        UniqueConstraint(
            "project_id",
            "assigned_user_id",
            name="project_assignments_project_user_key",
        ),
    )

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    project_id: uuid.UUID = Field(
        foreign_key="projects.id",
        index=True,
    )

    assigned_user_id: uuid.UUID = Field(
        foreign_key="profiles.id",
        index=True,
    )

    assigned_by: uuid.UUID | None = Field(default=None)

    assigned_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    role: str = Field(default="member")
