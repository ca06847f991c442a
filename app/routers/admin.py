# app/routers/admin.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import CurrentUser, get_current_user, get_identity_provider, require_admin
from app.core.config import get_settings
from app.core.identity import IdentityProvider
from app.database import get_session
from app.repositories.assignment_repo import AssignmentRepository
from app.repositories.profile_repo import ProfileRepository
from app.schemas.auth import EmailRequest
from app.schemas.user import AdminUserRead, ProfileRead, RoleUpdate
from app.services.admin_service import AdminService
from app.services.auth_service import AuthService

router = APIRouter(prefix="/admin", tags=["Admin"])

profile_repo = ProfileRepository()
service = AdminService(profile_repo, AssignmentRepository())
auth_service = AuthService(profile_repo, get_settings())


@router.get("/users", response_model=list[AdminUserRead])
def list_users(
    session: Session = Depends(get_session),
    provider: IdentityProvider = Depends(get_identity_provider),
    admin: CurrentUser = Depends(require_admin),
):
    """
    List all users with their email confirmation status (admin only).
    """
    return service.list_users(session, provider, admin)


@router.get("/users/{user_id}/role")
def get_user_role(
    user_id: uuid.UUID,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    """Role of a user. Users may read their own; Admins anyone's."""
    profile = service.get_user_role(session, user, user_id)
    return {"id": profile.id, "role": profile.role}


@router.patch("/users/{user_id}/role", response_model=ProfileRead)
def update_user_role(
    user_id: uuid.UUID,
    payload: RoleUpdate,
    session: Session = Depends(get_session),
    admin: CurrentUser = Depends(require_admin),
):
    """
    Change a user's role (admin only).
    """
    return service.update_role(session, admin, user_id, payload)


@router.delete("/users/{user_id}")
def delete_user(
    user_id: uuid.UUID,
    session: Session = Depends(get_session),
    provider: IdentityProvider = Depends(get_identity_provider),
    admin: CurrentUser = Depends(require_admin),
):
    """
    Delete a user's profile, assignments and identity (admin only).

    - Admins cannot delete their own account (400).
    """
    email = service.delete_user(session, provider, admin, user_id)
    return {"success": True, "message": f"User {email} deleted successfully"}


@router.post("/users/confirm", dependencies=[Depends(require_admin)])
def manual_confirm(
    payload: EmailRequest,
    provider: IdentityProvider = Depends(get_identity_provider),
):
    """Mark a user's email as confirmed (admin only)."""
    changed = auth_service.manual_confirm(provider, payload.email)
    message = "Email confirmed successfully" if changed else "Email already confirmed"
    return {"success": True, "message": message}
