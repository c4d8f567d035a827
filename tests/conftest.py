import os

# Keep the module-level engine off the developer database during tests.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")

import json
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from decorai import models  # noqa: F401  (registers tables)
from decorai.ai import RoomAnalyzer
from decorai.db import Base, get_db
from decorai.projects import get_analyzer, get_storage
from decorai.server import app
from decorai.storage import StorageError

SAMPLE_ANALYSIS: Dict[str, Any] = {
    "analysis": "Bright living room with white walls and a grey sofa.",
    "suggestions": "Add warm lighting, a textured rug and plants.",
    "items": [
        {
            "name": "Sofa",
            "description": "Three-seat linen sofa",
            "category": "furniture",
            "estimatedPrice": "1500.50",
            "priority": "high",
        },
        {
            "name": "Floor lamp",
            "description": "Brass arc lamp",
            "category": "lighting",
            "estimatedPrice": "N/A",
            "priority": "medium",
        },
    ],
    "colorPalette": ["#F5F0E6", "#A67B5B", "#3E4A3D"],
    "style": "modern",
}


class FakeStorage:
    """Records uploads instead of talking to the blob store."""

    def __init__(self):
        self.uploads: List[Dict[str, Any]] = []
        self.fail = False

    async def upload(self, key: str, data: bytes) -> str:
        if self.fail:
            raise StorageError("blob store unavailable")
        self.uploads.append({"key": key, "size": len(data)})
        return f"https://blob.example.invalid/{key}"


class FakeAnalyzer(RoomAnalyzer):
    """Analyzer whose completion call returns a canned reply."""

    provider = "fake"

    def __init__(self, reply: Optional[str] = None):
        super().__init__(model="fake-model", max_tokens=2000, variation_max_tokens=1500)
        self.reply = reply if reply is not None else json.dumps(SAMPLE_ANALYSIS)
        self.calls: List[Dict[str, Any]] = []

    async def _complete(self, prompt: str, image_url: Optional[str], max_tokens: int) -> Optional[str]:
        self.calls.append({"prompt": prompt, "image_url": image_url, "max_tokens": max_tokens})
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


@pytest_asyncio.fixture
async def session_maker():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def analyzer():
    return FakeAnalyzer()


@pytest_asyncio.fixture
async def client(session_maker, storage, analyzer):
    async def _get_db():
        async with session_maker() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_analyzer] = lambda: analyzer
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def register_and_login(client, email: str, password: str = "s3cret-pass") -> Dict[str, str]:
    resp = await client.post(
        "/api/auth/register",
        json={"email": email, "password": password, "full_name": "Ana Souza"},
    )
    assert resp.status_code == 201, resp.text
    resp = await client.post("/api/auth/login", data={"username": email, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest_asyncio.fixture
async def auth_headers(client):
    return await register_and_login(client, "ana@decorai.io")


async def upload_project(client, headers, title="Living room", description="Cozy with neutral tones",
                         content=b"\xff\xd8\xff\xe0fake-jpeg", content_type="image/jpeg", filename="room.jpg"):
    return await client.post(
        "/api/projects",
        headers=headers,
        data={"title": title, "description": description},
        files={"file": (filename, content, content_type)},
    )
