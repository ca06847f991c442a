# app/routers/mobile_projects.py
import uuid
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlmodel import Session

from app.core.auth import CurrentUser, get_mobile_user, get_object_storage
from app.core.config import get_settings
from app.core.errors import ErrorCode
from app.core.storage import ObjectStorage
from app.database import get_session
from app.repositories.assignment_repo import AssignmentRepository
from app.repositories.file_repo import FileRepository
from app.repositories.profile_repo import ProfileRepository
from app.repositories.project_repo import ProjectRepository
from app.routers.files import read_upload
from app.schemas.assignment import AssignmentTarget
from app.schemas.envelope import mobile_ok
from app.schemas.file import FileRead
from app.schemas.project import ProjectCreate, ProjectUpdate
from app.services.assignment_service import AssignmentService
from app.services.file_service import FileService
from app.services.project_service import ProjectService

router = APIRouter(prefix="/mobile/projects", tags=["Mobile Projects"])

assignment_repo = AssignmentRepository()
file_repo = FileRepository()
service = ProjectService(ProjectRepository(), assignment_repo, file_repo)
assignment_service = AssignmentService(assignment_repo, ProfileRepository(), service)
file_service = FileService(file_repo, service, get_settings())


def attachment_disposition(filename: str) -> str:
    """
    Content-Disposition for a download.

    Header values must be latin-1, so `filename` carries an ASCII copy
    of the name and `filename*` the UTF-8 original (RFC 6266 / 5987).
    """
    fallback = "".join(
        c if 32 <= ord(c) < 127 and c not in '"\\' else "_" for c in filename
    )
    encoded = quote(filename, safe="")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{encoded}"


# -------- Projects --------


@router.get("")
def list_assigned_projects(
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_mobile_user),
):
    projects = service.list_assigned(session, user)
    return mobile_ok({"projects": projects, "count": len(projects)})


@router.get("/browse")
def browse_projects(
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_mobile_user),
):
    projects = service.browse(session, user)
    return mobile_ok({"projects": projects, "count": len(projects)})


@router.post("", status_code=status.HTTP_201_CREATED)
def create_project(
    payload: ProjectCreate,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_mobile_user),
):
    """
    Create a project and assign the creator to it.
    """
    project = service.create_project(session, user, payload, assign_creator=True)
    return mobile_ok({"project": project}, "Project created successfully")


@router.get("/{project_id}")
def get_project(
    project_id: uuid.UUID,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_mobile_user),
):
    return mobile_ok({"project": service.get_project_detail(session, user, project_id)})


@router.put("/{project_id}")
def update_project(
    project_id: uuid.UUID,
    payload: ProjectUpdate,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_mobile_user),
):
    project = service.update_project(session, user, project_id, payload)
    return mobile_ok({"project": project}, "Project updated successfully")


@router.delete("/{project_id}")
def delete_project(
    project_id: uuid.UUID,
    session: Session = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
    user: CurrentUser = Depends(get_mobile_user),
):
    service.delete_project(session, storage, user, project_id)
    return mobile_ok(message="Project deleted successfully")


# -------- Assignments --------


@router.get("/{project_id}/users")
def list_project_users(
    project_id: uuid.UUID,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_mobile_user),
):
    users = assignment_service.list_project_users(session, user, project_id)
    return mobile_ok({"users": users, "count": len(users)})


@router.post("/{project_id}/users", status_code=status.HTTP_201_CREATED)
def assign_user(
    project_id: uuid.UUID,
    payload: AssignmentTarget,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_mobile_user),
):
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
    return mobile_ok(
        {"assignment": outcome.assignment},
        f"{outcome.user.email} assigned to project",
    )


@router.delete("/{project_id}/users")
def remove_user(
    project_id: uuid.UUID,
    payload: AssignmentTarget,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_mobile_user),
):
    removed = assignment_service.remove_user(session, user, project_id, payload)
    return mobile_ok({"user": removed}, f"{removed.email} removed from project")


# -------- Files --------


@router.get("/{project_id}/files")
def list_files(
    project_id: uuid.UUID,
    session: Session = Depends(get_session),
    user: CurrentUser = Depends(get_mobile_user),
):
    files = [FileRead.model_validate(f) for f in file_service.list_files(session, user, project_id)]
    return mobile_ok({"files": files, "count": len(files)})


@router.post("/{project_id}/files", status_code=status.HTTP_201_CREATED)
def upload_file(
    project_id: uuid.UUID,
    file: UploadFile = File(...),
    latitude: float | None = Form(None),
    longitude: float | None = Form(None),
    height: float | None = Form(None),
    rotation: float | None = Form(None),
    session: Session = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
    user: CurrentUser = Depends(get_mobile_user),
):
    upload = read_upload(file, latitude, longitude, height, rotation)
    record = file_service.upload_file(session, storage, user, project_id, upload)
    return mobile_ok({"file": FileRead.model_validate(record)}, "File uploaded successfully")


@router.delete("/{project_id}/files/{file_id}")
def delete_file(
    project_id: uuid.UUID,
    file_id: uuid.UUID,
    session: Session = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
    user: CurrentUser = Depends(get_mobile_user),
):
    file_service.delete_file(session, storage, user, project_id, file_id)
    return mobile_ok(message="File deleted successfully")


@router.get("/{project_id}/files/{file_id}/download")
def download_link(
    project_id: uuid.UUID,
    file_id: uuid.UUID,
    session: Session = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
    user: CurrentUser = Depends(get_mobile_user),
):
    """
    Signed download URL (valid for SIGNED_URL_TTL_SECONDS).
    """
    link = file_service.signed_download(session, storage, user, project_id, file_id)
    return mobile_ok({"file": link})


@router.post("/{project_id}/files/{file_id}/download")
def download_bytes(
    project_id: uuid.UUID,
    file_id: uuid.UUID,
    session: Session = Depends(get_session),
    storage: ObjectStorage = Depends(get_object_storage),
    user: CurrentUser = Depends(get_mobile_user),
):
    """
    Stream the file through the API as an attachment.
    """
    record, data = file_service.read_bytes(session, storage, user, project_id, file_id)
    return Response(
        content=data,
        media_type="application/octet-stream",
        headers={
            "Content-Disposition": attachment_disposition(record.file_name),
            "Cache-Control": "no-cache",
        },
    )
