from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI, Request

from app.core.auth import get_cookie_store
from app.core.config import get_settings
from app.core.errors import register_exception_handlers
from app.core.identity import IdentityProvider
from app.core.storage import ObjectStorage
from app.core.supabase_client import supabase_admin
from app.database import create_db_and_tables

# Import models so SQLModel metadata is populated before create_all()
from app.models import profile as _profile_models  # noqa: F401
from app.models import project as _project_models  # noqa: F401
from app.models import file as _file_models  # noqa: F401

# Routers
from app.routers.auth import router as auth_router
from app.routers.admin import router as admin_router
from app.routers.projects import router as projects_router
from app.routers.files import router as files_router
from app.routers.mobile_auth import router as mobile_auth_router
from app.routers.mobile_projects import router as mobile_projects_router

settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Build the Supabase gateways (auth + storage) on app.state.
      - Verify DB connectivity and create tables.

    Tests install their own gateways on app.state (or override the
    dependencies) and skip the real ones.
    """
    if not getattr(app.state, "identity_provider", None):
        admin_client = supabase_admin(settings)
        app.state.identity_provider = IdentityProvider(settings, admin_client=admin_client)
        app.state.object_storage = ObjectStorage(admin_client, settings.STORAGE_BUCKET)
        logger.info("Startup: Supabase gateways ready (bucket=%s)", settings.STORAGE_BUCKET)

    logger.info("Startup: Connecting to Supabase Postgres...")
    try:
        create_db_and_tables()
        logger.info("Startup: DB connection OK, tables verified.")
    except Exception as e:
        logger.error("Startup: DB connection FAILED: %s", e)
        raise
    yield
    logger.info("Shutdown: %s stopped", settings.PROJECT_NAME)


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


# --- CORS configuration ---
# Cookies are sent cross-origin by the web client, so credentials are allowed
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def write_rotated_session(request: Request, call_next):
    """
    Set rotated session cookies on every response, including error
    envelopes and JSONResponses built by the routes.
    """
    response = await call_next(request)
    rotated = getattr(request.state, "rotated_session", None)
    if rotated is not None:
        get_cookie_store().write(response, rotated)
    return response


# All routes live under the API prefix, e.g. /api/projects, /api/mobile/...
app.include_router(auth_router, prefix=settings.API_PREFIX)
app.include_router(admin_router, prefix=settings.API_PREFIX)
app.include_router(projects_router, prefix=settings.API_PREFIX)
app.include_router(files_router, prefix=settings.API_PREFIX)
app.include_router(mobile_auth_router, prefix=settings.API_PREFIX)
app.include_router(mobile_projects_router, prefix=settings.API_PREFIX)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "archy-xr-backend"}
