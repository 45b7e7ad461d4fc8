import itertools
from pathlib import Path
from typing import List, Optional, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from database import Base, get_db
from main import app
from routers import rate_limit
from services import passwords
from services.errors import UploadFailed
from services.media_gateway import UploadedMedia, get_media_gateway


class FakeMediaGateway:
    """In-memory stand-in for Cloudinary that honours the temp-file contract."""

    def __init__(self):
        self._counter = itertools.count(1)
        self.uploads: List[Tuple[str, str]] = []
        self.destroyed: List[Tuple[str, str]] = []
        self.fail_uploads = False
        self.fail_destroy = False

    async def upload(self, local_path, kind: str = "auto") -> UploadedMedia:
        path = Path(local_path)
        try:
            if self.fail_uploads:
                raise UploadFailed("Media upload failed")
            n = next(self._counter)
            resource_type = "video" if kind == "video" else "image"
            self.uploads.append((path.name, kind))
            return UploadedMedia(
                url=f"https://res.cloudinary.test/{resource_type}/upload/asset-{n}",
                public_id=f"videotube/asset-{n}",
                resource_type=resource_type,
                duration=42.0 if resource_type == "video" else None,
            )
        finally:
            path.unlink(missing_ok=True)

    async def destroy(self, public_id: Optional[str], resource_type: str = "image") -> bool:
        if not public_id:
            return False
        self.destroyed.append((public_id, resource_type))
        return not self.fail_destroy


@pytest.fixture(autouse=True)
def reset_local_rate_limit_counters():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    rate_limit._local_counters.clear()
    yield
    rate_limit._local_counters.clear()
    app.state.disable_rate_limits = previous


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    monkeypatch.setattr(passwords, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def media_gateway():
    return FakeMediaGateway()


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    db_path = tmp_path / "videotube.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield maker
    await engine.dispose()


@pytest_asyncio.fixture
async def api_client(session_maker, media_gateway, tmp_path, monkeypatch):
    monkeypatch.setattr("services.media_gateway.settings.MEDIA_TEMP_DIR", str(tmp_path / "staging"))

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_media_gateway] = lambda: media_gateway
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_media_gateway, None)


async def register(
    client: AsyncClient,
    username: str,
    email: Optional[str] = None,
    password: str = "pw12345",
    full_name: Optional[str] = None,
    cover: bool = False,
):
    files = {"avatar": ("avatar.png", b"\x89PNG fake-avatar", "image/png")}
    if cover:
        files["cover_image"] = ("cover.jpg", b"fake-cover", "image/jpeg")
    return await client.post(
        "/users/register",
        data={
            "full_name": full_name or username.title(),
            "email": email or f"{username.lower()}@example.com",
            "username": username,
            "password": password,
        },
        files=files,
    )


async def login(client: AsyncClient, username: str, password: str = "pw12345") -> dict:
    response = await client.post("/users/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    # Keep identity explicit per request instead of relying on the cookie jar.
    client.cookies.clear()
    return response.json()["data"]


async def signup(client: AsyncClient, username: str, password: str = "pw12345") -> Tuple[dict, dict]:
    """Register + login; return (user payload, auth headers)."""
    response = await register(client, username, password=password)
    assert response.status_code == 201, response.text
    data = await login(client, username, password)
    return data["user"], {"Authorization": f"Bearer {data['access_token']}"}


async def publish(client: AsyncClient, headers: dict, title: str = "My video", **fields) -> dict:
    response = await client.post(
        "/videos",
        data={"title": title, "description": fields.get("description", "about it")},
        files={"video_file": ("clip.mp4", b"fake-video-binary", "video/mp4")},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]
