"""pytest fixtures for CommercePix backend tests.

Provides:
- engine: Function-scoped in-memory SQLite database with all tables created
- session_factory / session / uow_factory: Database access bound to that engine
- storage: In-memory stand-in for the S3 object storage
- image_client: Image edit provider stub that returns a fixed PNG
- auth_headers: Bearer headers signed with the test JWT secret
- test_client: httpx AsyncClient wired to the FastAPI app
- seed helpers for projects, input assets and credits
"""

import io
import os
import time
from typing import AsyncGenerator
from uuid import uuid4

os.environ["APP_ENV"] = "test"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["ADMIN_EMAILS"] = "admin@example.com"
os.environ["WORKER_ENABLED"] = "false"
os.environ["TZ"] = "UTC"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from jose import jwt  # noqa: E402
from PIL import Image  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

import commercepix.models  # noqa: E402, F401
from commercepix.models.asset import Asset, AssetKind  # noqa: E402
from commercepix.models.billing import CreditLedgerEntry, CreditReason  # noqa: E402
from commercepix.models.generation_job import GenerationMode  # noqa: E402
from commercepix.models.project import Project  # noqa: E402
from commercepix.services.exceptions import StorageError  # noqa: E402
from commercepix.services.storage import ObjectStorage, build_asset_path, validate_ttl  # noqa: E402
from commercepix.uow import create_uow_factory  # noqa: E402

JWT_SECRET = "test-jwt-secret"
USER_ID = "user_alice"
OTHER_USER_ID = "user_bob"
ADMIN_EMAIL = "admin@example.com"


def make_png(width: int = 64, height: int = 48, color: str = "white") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def make_token(
    user_id: str,
    email: str | None = None,
    secret: str = JWT_SECRET,
    audience: str = "authenticated",
    expires_in: int = 3600,
) -> str:
    claims = {"sub": user_id, "aud": audience, "exp": int(time.time()) + expires_in}
    if email is not None:
        claims["email"] = email
    return jwt.encode(claims, secret, algorithm="HS256")


class FakeStorage(ObjectStorage):
    """Dict-backed replacement for ObjectStorage (no boto3 client)."""

    def __init__(self):
        self.inputs_bucket = "test-inputs"
        self.outputs_bucket = "test-outputs"
        self.objects: dict[tuple[str, str], bytes] = {}
        self.fail_uploads = False
        self.fail_deletes = False

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        if self.fail_uploads:
            raise StorageError(f"Failed to upload {path}: simulated outage")
        self.objects[(bucket, path)] = data
        return path

    async def signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        validate_ttl(expires_in)
        return f"https://storage.test/{bucket}/{path}?X-Amz-Expires={expires_in}"

    async def fetch_bytes(self, bucket: str, path: str) -> bytes:
        try:
            return self.objects[(bucket, path)]
        except KeyError:
            raise StorageError(f"Failed to download {path}: NoSuchKey") from None

    async def delete(self, bucket: str, path: str) -> None:
        if self.fail_deletes:
            raise StorageError(f"Failed to delete {path}: simulated outage")
        self.objects.pop((bucket, path), None)

    def paths(self, bucket: str) -> list[str]:
        return [path for (b, path) in self.objects if b == bucket]


class FakeImageClient:
    """Image edit provider stub; raises ``error`` when set."""

    def __init__(self, output: bytes | None = None):
        self.output = output or make_png(128, 96)
        self.error: Exception | None = None
        self.calls: list[dict] = []

    async def edit(self, image: bytes, prompt: str, mime_type: str) -> bytes:
        self.calls.append({"image": image, "prompt": prompt, "mime_type": mime_type})
        if self.error is not None:
            raise self.error
        return self.output


@pytest_asyncio.fixture(scope="function")
async def engine():
    """Fresh in-memory database per test.

    StaticPool keeps a single connection so every session sees the same database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def uow_factory(session_factory):
    return create_uow_factory(session_factory)


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def image_client():
    return FakeImageClient()


@pytest.fixture
def auth_headers():
    """Build Authorization headers for a user id (and optional email)."""

    def _headers(user_id: str = USER_ID, email: str | None = None) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id, email=email)}"}

    return _headers


@pytest_asyncio.fixture
async def test_client(session_factory, uow_factory, storage):
    """Provide AsyncClient for testing API endpoints with database access."""
    from commercepix.app import app

    # Inject the test database and storage into app.state for dependency injection
    app.state.session_factory = session_factory
    app.state.uow_factory = uow_factory
    app.state.storage = storage

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def create_project(uow_factory):
    async def _create(user_id: str = USER_ID, name: str = "Ceramic mugs") -> Project:
        async with await uow_factory() as uow:
            return await uow.projects.add(Project(user_id=user_id, name=name))

    return _create


@pytest.fixture
def create_input_asset(uow_factory, storage):
    """Store a PNG in the inputs bucket and record it as an input asset."""

    async def _create(project: Project, user_id: str | None = None) -> Asset:
        owner = user_id or project.user_id
        asset_id = uuid4()
        path = build_asset_path(owner, project.id, asset_id, "png")
        await storage.upload(storage.inputs_bucket, path, make_png(), "image/png")
        async with await uow_factory() as uow:
            return await uow.assets.add(
                Asset(
                    id=asset_id,
                    user_id=owner,
                    project_id=project.id,
                    kind=AssetKind.INPUT,
                    mode=GenerationMode.MAIN_WHITE,
                    storage_path=path,
                    mime_type="image/png",
                    width=64,
                    height=48,
                )
            )

    return _create


@pytest.fixture
def grant(uow_factory):
    """Give a user credits through a bonus ledger entry."""

    async def _grant(user_id: str = USER_ID, amount: int = 10) -> None:
        async with await uow_factory() as uow:
            await uow.credits.add(
                CreditLedgerEntry(user_id=user_id, delta=amount, reason=CreditReason.BONUS)
            )

    return _grant


@pytest.fixture
def get_balance(uow_factory):
    async def _balance(user_id: str = USER_ID) -> int:
        async with await uow_factory() as uow:
            return await uow.credits.get_balance(user_id)

    return _balance
