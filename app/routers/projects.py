# app/routers/projects.py
import uuid

from fastapi import APIRouter, Depends, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlmodel import Session

from app.core.auth import CurrentUser, get_current_user, get_object_storage
from app.core.errors import ErrorCode
from app.core.storage import ObjectStorage
from app.database import get_session
from app.repositories.assignment_repo import AssignmentRepository
from app.repositories.file_repo import FileRepository
from app.repositories.profile_repo import ProfileRepository
from app.repositories.project_repo import ProjectRepository
from app.schemas.assignment import AssignmentRead, AssignmentTarget
from app.schemas.project import (
    ProjectBulkDelete,
    ProjectCreate,
    ProjectDetail,
    ProjectRead,
    ProjectUpdate,
)
from app.services.assignment_service import AssignmentService
from app.services.project_service import ProjectService

router = APIRouter(prefix="/projects", tags=["Projects"])

assignment_repo = AssignmentRepository()
service = ProjectService(ProjectRepository(), assignment_repo, FileRepository())
assignment_service = AssignmentService(assignment_repo, ProfileRepository(), service)


# -------- Listings --------


@router.get("", response_model=list[ProjectRead])
def list_assigned_projects(
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    """
    Projects the caller is assigned to (every project for Admins).
    """
    return service.list_assigned(session, user)


@router.get("/browse", response_model=list[ProjectRead])
def browse_projects(
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    """
    Catalog of all projects with counts and the caller's assignment flag.

    - Archivists are pointed to their assigned projects instead (403).
    """
    return service.browse(session, user)


# -------- CRUD --------


@router.post("", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
def create_project(
    payload: ProjectCreate,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    """
    Create a project (admin only).
    """
    return service.create_project(session, user, payload)


@router.delete("")
def bulk_delete_projects(
    payload: ProjectBulkDelete,
    session: Session = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
    user: CurrentUser = Depends(get_current_user),
):
    """
    Delete several projects at once (admin only).
    """
    deleted = service.delete_projects(session, storage, user, payload.project_ids)
    return {
        "success": True,
        "message": f"Successfully deleted {len(deleted)} project(s)",
        "deletedCount": len(deleted),
        "deletedIds": deleted,
    }


@router.get("/{project_id}", response_model=ProjectDetail)
def get_project(
    project_id: uuid.UUID,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    """
    Project detail, with files and users when the caller may see them.
    """
    return service.get_project_detail(session, user, project_id)


@router.put("/{project_id}", response_model=ProjectRead)
def update_project(
    project_id: uuid.UUID,
    payload: ProjectUpdate,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    """
    Update a project (Admin, or an Archivist assigned to it).
    """
    return service.update_project(session, user, project_id, payload)


@router.delete("/{project_id}")
def delete_project(
    project_id: uuid.UUID,
    session: Session = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
    user: CurrentUser = Depends(get_current_user),
):
    """
    Delete a project with its files (admin only).
    """
    service.delete_project(session, storage, user, project_id)
    return {"success": True, "message": "Project deleted successfully"}


# -------- Assignments --------


@router.get("/{project_id}/users", response_model=list[AssignmentRead])
def list_project_users(
    project_id: uuid.UUID,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    return assignment_service.list_project_users(session, user, project_id)


@router.post("/{project_id}/users", status_code=status.HTTP_201_CREATED)
def assign_user(
    project_id: uuid.UUID,
    payload: AssignmentTarget,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    """
    Assign a user (by userId or email) to the project.

    - Already assigned: 400 with `success: false` and the user in `data`.
    """
    outcome = assignment_service.assign_user(session, user, project_id, payload)
    if not outcome.created:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=jsonable_encoder(
                {
                    "success": False,
                    "message": f"{outcome.user.email} is already assigned to this project",
                    "code": ErrorCode.ALREADY_ASSIGNED.value,
                    "data": {"user": outcome.user},
                }
            ),
        )
    return {
        "success": True,
        "message": f"{outcome.user.email} assigned to project",
        "data": outcome.assignment,
    }


@router.delete("/{project_id}/users")
def remove_user(
    project_id: uuid.UUID,
    payload: AssignmentTarget,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
):
    """
    Remove a user (by userId or email) from the project.
    """
    removed = assignment_service.remove_user(session, user, project_id, payload)
    return {
        "success": True,
        "message": f"{removed.email} removed from project",
        "data": {"user": removed},
    }
