import io
import os
import sys
import tempfile
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from PIL import Image
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

# Ensure we can import the backend package located under fastapi-backend/
REPO_ROOT = Path(__file__).resolve().parents[1]
BACKEND_PATH = REPO_ROOT / "fastapi-backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.insert(0, str(BACKEND_PATH))

# Set environment variables BEFORE importing quirii: settings are read once.
os.environ["JWT_SECRET"] = "test-secret-key-for-pytest-only-12345"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["STORAGE_PROVIDER"] = "local"
os.environ["LOCAL_STORAGE_PATH"] = tempfile.mkdtemp(prefix="quirii-storage-")
os.environ["APP_ENV"] = "test"
os.environ["AUTO_ADMIN_EMAILS"] = "dean@campus.edu"

from quirii import auth, models  # noqa: E402,F401
from quirii.complaints import ComplaintCreate, create_complaint  # noqa: E402
from quirii.database import get_session  # noqa: E402
from quirii.main import app  # noqa: E402
from quirii.storage import LocalImageStore, get_image_store  # noqa: E402


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """A fresh SQLite file per test; NullPool so concurrent sessions get their own connection."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def image_store(tmp_path):
    return LocalImageStore(tmp_path / "storage", "http://test")


@pytest_asyncio.fixture
async def client(session_factory, image_store):
    async def _override_session():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = _override_session
    app.dependency_overrides[get_image_store] = lambda: image_store
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_profile(session_factory):
    """Return a factory that registers a profile directly in the DB and returns (actor, token)."""

    async def _create(registration_number, role=None, name=None, email=None, password="testpass123"):
        async with session_factory() as s:
            profile = await auth.register_profile(
                s,
                name=name or f"Student {registration_number}",
                registration_number=registration_number,
                email=email or f"{registration_number.lower()}@campus.edu",
                password=password,
                role=role,
            )
        token = auth.create_access_token(subject=profile.id, role=profile.role)
        return auth.Actor.from_profile(profile), token

    return _create


@pytest.fixture
def post_complaint(session_factory):
    async def _post(
        actor,
        category="AB1",
        title="Broken water cooler",
        description="The water cooler on the second floor has been leaking for a week.",
        is_anonymous=False,
    ):
        async with session_factory() as s:
            return await create_complaint(
                s,
                actor,
                ComplaintCreate(
                    category=category,
                    title=title,
                    description=description,
                    is_anonymous=is_anonymous,
                ),
            )

    return _post


@pytest.fixture
def png_bytes():
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), color=(200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()
