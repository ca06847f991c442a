# app/core/policy.py
"""
Access policy - who may do what to which project, file or user.

`authorize()` is a pure function of (role, action, context): no I/O, no
caching. Callers load assignment/ownership facts for the current request
into a ResourceContext, so revoking an assignment takes effect on the
very next request.

Decision table:

    action                 Admin        Archivist          User
    ---------------------  -----------  -----------------  -----------------------
    createProject          allow        deny               deny
    readProject            allow        allow              allow
    updateProject          allow        if assigned        deny
    deleteProject          allow        deny               deny
    listProjects           allow (ALL)  deny (guidance)    allow (ALL)
    listAssignedProjects   ASSIGNED*    ASSIGNED           ASSIGNED
    listProjectUsers       allow        if assigned        if assigned
    assignUser             allow        if assigned        deny
    removeAssignment       allow        if assigned        if target is self
    uploadFile             allow        if assigned        deny
    readFile               allow        if assigned        if assigned or uploader
    deleteFile             allow        if assigned        deny
    manageUsers            allow**      deny               deny
    readOwnProfile         allow        allow              allow

    *  Admin's "assigned" listing is every project.
    ** Never on one's own account for deletions (ValidationError).
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from app.core.errors import (
    AppError,
    AuthorizationError,
    ErrorCode,
    ValidationError,
)


class Role(str, Enum):
    ADMIN = "Admin"
    ARCHIVIST = "Archivist"
    USER = "User"

    @classmethod
    def parse(cls, value: str | None) -> Role | None:
        try:
            return cls(value)
        except ValueError:
            return None


class Action(str, Enum):
    CREATE_PROJECT = "createProject"
    READ_PROJECT = "readProject"
    UPDATE_PROJECT = "updateProject"
    DELETE_PROJECT = "deleteProject"
    LIST_PROJECTS = "listProjects"
    LIST_ASSIGNED_PROJECTS = "listAssignedProjects"
    LIST_PROJECT_USERS = "listProjectUsers"
    ASSIGN_USER = "assignUser"
    REMOVE_ASSIGNMENT = "removeAssignment"
    UPLOAD_FILE = "uploadFile"
    READ_FILE = "readFile"
    DELETE_FILE = "deleteFile"
    MANAGE_USERS = "manageUsers"
    READ_OWN_PROFILE = "readOwnProfile"


class RowFilter(str, Enum):
    ALL = "all"
    ASSIGNED = "assigned"


@dataclass(frozen=True)
class ResourceContext:
    """Facts about the target resource, relative to the acting profile."""

    actor_id: str | None = None
    is_assigned: bool = False
    is_uploader: bool = False
    target_user_id: str | None = None
    # manageUsers sub-operation, e.g. "delete" or "updateRole"
    operation: str | None = None


@dataclass(frozen=True)
class Allow:
    filter: RowFilter | None = None

    allowed = True


@dataclass(frozen=True)
class Deny:
    reason: str
    code: ErrorCode = ErrorCode.INSUFFICIENT_PERMISSIONS
    error: type[AppError] = AuthorizationError

    allowed = False

    def to_error(self) -> AppError:
        return self.error(self.reason, self.code)


Decision = Allow | Deny

# Archivist actions gated on an assignment row for the project
_ARCHIVIST_ASSIGNED_ACTIONS = {
    Action.UPDATE_PROJECT,
    Action.LIST_PROJECT_USERS,
    Action.ASSIGN_USER,
    Action.REMOVE_ASSIGNMENT,
    Action.UPLOAD_FILE,
    Action.READ_FILE,
    Action.DELETE_FILE,
}

_DENY_MESSAGES = {
    Action.CREATE_PROJECT: "Only Admin users can create projects",
    Action.UPDATE_PROJECT: "You do not have permission to update this project",
    Action.DELETE_PROJECT: "Only Admin users can delete projects",
    Action.ASSIGN_USER: "Only Admin and assigned Archivists can assign users",
    Action.REMOVE_ASSIGNMENT: "Only Admin, assigned Archivists, or the user themselves can remove assignments",
    Action.UPLOAD_FILE: "You do not have permission to upload files to this project",
    Action.READ_FILE: "You do not have access to this project",
    Action.LIST_PROJECT_USERS: "Access denied",
    Action.DELETE_FILE: "You do not have permission to delete files in this project",
    Action.MANAGE_USERS: "Admin access required",
}


def _deny(action: Action, code: ErrorCode = ErrorCode.INSUFFICIENT_PERMISSIONS) -> Deny:
    return Deny(_DENY_MESSAGES.get(action, "Access denied"), code)


def authorize(
    role: Role,
    action: Action,
    context: ResourceContext | None = None,
) -> Decision:
    ctx = context or ResourceContext()

    # Self-protection applies before any role rule.
    if (
        action is Action.MANAGE_USERS
        and ctx.operation == "delete"
        and ctx.actor_id is not None
        and ctx.actor_id == ctx.target_user_id
    ):
        return Deny(
            "Cannot delete your own account",
            ErrorCode.CANNOT_DELETE_SELF,
            ValidationError,
        )

    if action is Action.READ_OWN_PROFILE or action is Action.READ_PROJECT:
        return Allow()

    if action is Action.LIST_ASSIGNED_PROJECTS:
        return Allow(RowFilter.ALL if role is Role.ADMIN else RowFilter.ASSIGNED)

    if role is Role.ADMIN:
        if action is Action.LIST_PROJECTS:
            return Allow(RowFilter.ALL)
        return Allow()

    if role is Role.ARCHIVIST:
        if action is Action.LIST_PROJECTS:
            return Deny(
                "Archivists should use their assigned projects page instead of browse",
                ErrorCode.USE_ASSIGNED_PROJECTS,
            )
        if action in _ARCHIVIST_ASSIGNED_ACTIONS:
            if ctx.is_assigned:
                return Allow()
            code = (
                ErrorCode.PROJECT_ACCESS_DENIED
                if action in (Action.READ_FILE, Action.LIST_PROJECT_USERS)
                else ErrorCode.INSUFFICIENT_PERMISSIONS
            )
            return _deny(action, code)
        return _deny(action)

    if role is Role.USER:
        if action is Action.LIST_PROJECTS:
            return Allow(RowFilter.ALL)
        if action is Action.READ_FILE:
            if ctx.is_assigned or ctx.is_uploader:
                return Allow()
            return _deny(action, ErrorCode.PROJECT_ACCESS_DENIED)
        if action is Action.LIST_PROJECT_USERS:
            return Allow() if ctx.is_assigned else _deny(action, ErrorCode.PROJECT_ACCESS_DENIED)
        if action is Action.REMOVE_ASSIGNMENT:
            if ctx.actor_id is not None and ctx.actor_id == ctx.target_user_id:
                return Allow()
            return _deny(action)
        return _deny(action)

    return Deny("Invalid user role", ErrorCode.FORBIDDEN)


def enforce(
    role: Role,
    action: Action,
    context: ResourceContext | None = None,
) -> Allow:
    """
    Same as authorize(), but raises the Deny as an AppError.

    Raises:
        AuthorizationError (403) / ValidationError (400 for self-deletion)
    """
    decision = authorize(role, action, context)
    if isinstance(decision, Deny):
        raise decision.to_error()
    return decision
