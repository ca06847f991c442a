"""
Shared fixtures.

Provides a FastAPI TestClient wired to:
  - an in-memory SQLite database (StaticPool, fresh schema per test)
  - in-memory fakes for the Supabase identity provider and storage bucket

The real gateways are never built: TestClient is used without its context
manager, so the app lifespan does not run.
"""
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

# Settings are read at import time by the routers.
os.environ.setdefault("SUPABASE_URL", "http://supabase.test")
os.environ.setdefault("SUPABASE_KEY", "anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-role-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["ENVIRONMENT"] = "test"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.core.auth import get_identity_provider, get_object_storage
from app.core.errors import ErrorCode, UpstreamError
from app.core.identity import AuthResult, AuthSession, Identity, InvalidTokenError
from app.database import get_session
from app.main import app
from app.models.profile import Profile


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


@dataclass
class FakeAccount:
    identity: Identity
    password: str


@dataclass
class FakeClient:
    """Stands in for the per-call anon client holding a signed-in session."""

    user_id: str


class FakeIdentityProvider:
    """In-memory stand-in for IdentityProvider (same method contract)."""

    def __init__(self):
        self.accounts: dict[str, FakeAccount] = {}
        # access token -> user id
        self.tokens: dict[str, str] = {}
        # refresh token -> user id
        self.refresh_tokens: dict[str, str] = {}
        # access token -> session returned instead (simulates rotation)
        self.rotations: dict[str, AuthSession] = {}
        self.failing_lookups: set[str] = set()
        self.signed_out: list[FakeClient] = []
        self.revoked: list[str] = []
        self.confirmation_emails: list[str] = []
        self.fail_delete = False

    # ----- helpers for tests -----

    def add_account(
        self,
        email: str,
        password: str = "secret123",
        *,
        confirmed: bool = True,
        user_id: str | None = None,
    ) -> Identity:
        now = datetime.now(timezone.utc)
        identity = Identity(
            id=user_id or str(uuid.uuid4()),
            email=email,
            email_confirmed_at=now if confirmed else None,
            created_at=now,
        )
        self.accounts[identity.id] = FakeAccount(identity=identity, password=password)
        return identity

    def issue_session(self, user_id: str) -> AuthSession:
        access = f"access-{uuid.uuid4().hex}"
        refresh = f"refresh-{uuid.uuid4().hex}"
        self.tokens[access] = user_id
        self.refresh_tokens[refresh] = user_id
        return AuthSession(
            access_token=access,
            refresh_token=refresh,
            user_id=user_id,
            expires_at=int(datetime.now(timezone.utc).timestamp()) + 3600,
            expires_in=3600,
        )

    def _by_email(self, email: str) -> FakeAccount | None:
        for account in self.accounts.values():
            if account.identity.email == email.strip().lower():
                return account
        return None

    # ----- provider contract -----

    def verify_token(self, token: str) -> Identity:
        if token.startswith("malformed"):
            raise InvalidTokenError("Not enough segments")
        user_id = self.tokens.get(token)
        if user_id is None or user_id not in self.accounts:
            raise UpstreamError("Invalid or expired token", details="invalid JWT")
        return self.accounts[user_id].identity

    def sign_in_with_password(self, email: str, password: str):
        account = self._by_email(email)
        if account is None or account.password != password:
            raise UpstreamError("Sign-in failed", details="Invalid login credentials")
        session = self.issue_session(account.identity.id)
        return (
            AuthResult(identity=account.identity, session=session),
            FakeClient(account.identity.id),
        )

    def set_session(self, access_token: str, refresh_token: str) -> AuthResult:
        user_id = self.tokens.get(access_token)
        if user_id is None or self.refresh_tokens.get(refresh_token) != user_id:
            raise UpstreamError("Invalid session", details="Auth session missing!")
        session = self.rotations.get(access_token) or AuthSession(
            access_token=access_token,
            refresh_token=refresh_token,
            user_id=user_id,
        )
        return AuthResult(identity=self.accounts[user_id].identity, session=session)

    def refresh_session(self, refresh_token: str) -> AuthResult:
        user_id = self.refresh_tokens.get(refresh_token)
        if user_id is None:
            raise UpstreamError("Failed to refresh session", details="Invalid Refresh Token")
        return AuthResult(
            identity=self.accounts[user_id].identity,
            session=self.issue_session(user_id),
        )

    def sign_out(self, client=None) -> None:
        if client is not None:
            self.signed_out.append(client)

    def revoke_session(self, access_token: str) -> None:
        self.revoked.append(access_token)
        self.tokens.pop(access_token, None)

    def resend_confirmation(self, email: str, redirect_to: str | None = None) -> None:
        self.confirmation_emails.append(email)

    def create_user(self, email, password, *, email_confirm, metadata=None) -> Identity:
        if self._by_email(email) is not None:
            raise UpstreamError(
                "User creation failed",
                details="A user with this email address has already been registered",
            )
        return self.add_account(email, password, confirmed=email_confirm)

    def delete_user(self, user_id: str) -> None:
        if self.fail_delete:
            raise UpstreamError("Failed to delete auth user", details="boom")
        self.accounts.pop(user_id, None)

    def update_user_by_id(self, user_id: str, attributes: dict) -> Identity:
        account = self.accounts[user_id]
        if "password" in attributes:
            account.password = attributes["password"]
        if attributes.get("email_confirm"):
            account.identity.email_confirmed_at = datetime.now(timezone.utc)
        return account.identity

    def list_users(self) -> list[Identity]:
        return [a.identity for a in self.accounts.values()]

    def get_user_by_id(self, user_id: str) -> Identity:
        if user_id in self.failing_lookups or user_id not in self.accounts:
            raise UpstreamError("Failed to fetch auth user", details="lookup failed")
        return self.accounts[user_id].identity

    def find_user_by_email(self, email: str) -> Identity | None:
        account = self._by_email(email)
        return account.identity if account else None


class FakeObjectStorage:
    """In-memory bucket with the ObjectStorage contract."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.fail_remove = False

    def upload(self, key: str, data: bytes, content_type: str | None = None) -> str:
        self.objects[key] = data
        return key

    def download(self, key: str) -> bytes:
        if key not in self.objects:
            raise UpstreamError(
                "Failed to download file", ErrorCode.FILE_DOWNLOAD_ERROR, details="not found"
            )
        return self.objects[key]

    def remove(self, keys: list[str]) -> None:
        if self.fail_remove:
            raise UpstreamError("Failed to delete file", details="storage down")
        for key in keys:
            self.objects.pop(key, None)

    def create_signed_url(self, key: str, ttl_seconds: int) -> str:
        return f"http://supabase.test/storage/v1/object/sign/project-files/{key}?token=t&ttl={ttl_seconds}"

    def get_public_url(self, key: str) -> str:
        return f"http://supabase.test/storage/v1/object/public/project-files/{key}"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def db(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def provider():
    return FakeIdentityProvider()


@pytest.fixture
def storage():
    return FakeObjectStorage()


@pytest.fixture
def client(engine, provider, storage):
    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_identity_provider] = lambda: provider
    app.dependency_overrides[get_object_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


@dataclass
class SeededUser:
    profile: Profile
    token: str
    refresh_token: str
    email: str
    password: str = "secret123"
    extra: dict = field(default_factory=dict)

    @property
    def id(self) -> str:
        return str(self.profile.id)

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture
def make_user(db, provider):
    """Create identity + profile and return a bearer-ready SeededUser."""

    def _make(role: str = "User", email: str | None = None, confirmed: bool = True) -> SeededUser:
        email = email or f"{role.lower()}-{uuid.uuid4().hex[:8]}@example.com"
        identity = provider.add_account(email, confirmed=confirmed)
        profile = Profile(id=uuid.UUID(identity.id), email=email, role=role)
        db.add(profile)
        db.commit()
        db.refresh(profile)
        session = provider.issue_session(identity.id)
        return SeededUser(
            profile=profile,
            token=session.access_token,
            refresh_token=session.refresh_token,
            email=email,
        )

    return _make


@pytest.fixture
def admin(make_user):
    return make_user("Admin")


@pytest.fixture
def archivist(make_user):
    return make_user("Archivist")


@pytest.fixture
def member(make_user):
    return make_user("User")


@pytest.fixture
def make_project(client, admin):
    """Create a project through the API as the admin."""

    def _make(name: str = "Chapel Survey", **extra) -> dict:
        resp = client.post(
            "/api/projects",
            json={"name": name, **extra},
            headers=admin.headers,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _make


@pytest.fixture
def assign(client, admin):
    """Assign a seeded user to a project through the API as the admin."""

    def _assign(project_id: str, user: SeededUser) -> None:
        resp = client.post(
            f"/api/projects/{project_id}/users",
            json={"userId": user.id},
            headers=admin.headers,
        )
        assert resp.status_code == 201, resp.text

    return _assign
