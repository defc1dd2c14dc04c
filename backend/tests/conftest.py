"""Shared fixtures: an in-memory database, an HTTP client and seeded users."""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from dataclasses import dataclass
from typing import Any, AsyncGenerator
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import designhub.models  # noqa: F401
from designhub.db.base import Base
from designhub.db.session import get_db_session, get_session_factory
from designhub.main import app
from designhub.models.user import User
from designhub.services.security import create_access_token, hash_password

PASSWORD = "correct-horse-battery"


@dataclass
class Account:
    id: UUID
    email: str
    name: str
    role: str
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    async def override_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def create_account(
    session_factory: async_sessionmaker[AsyncSession],
    role: str,
    name: str,
    email: str,
    is_active: bool = True,
) -> Account:
    async with session_factory() as session:
        user = User(
            email=email,
            name=name,
            role=role,
            password_hash=hash_password(PASSWORD),
            is_active=is_active,
        )
        session.add(user)
        await session.commit()
        user_id = user.id
    return Account(
        id=user_id,
        email=email,
        name=name,
        role=role,
        token=create_access_token(user_id, role),
    )


@pytest.fixture
async def admin(session_factory) -> Account:
    return await create_account(session_factory, "super_admin", "Ada Admin", "admin@designhub.io")


@pytest.fixture
async def manager(session_factory) -> Account:
    return await create_account(
        session_factory, "project_manager", "Mia Manager", "mia@designhub.io"
    )


@pytest.fixture
async def other_manager(session_factory) -> Account:
    return await create_account(
        session_factory, "project_manager", "Omar Other", "omar@designhub.io"
    )


@pytest.fixture
async def client_user(session_factory) -> Account:
    return await create_account(session_factory, "client", "Cleo Client", "cleo@designhub.io")


@pytest.fixture
async def other_client(session_factory) -> Account:
    return await create_account(session_factory, "client", "Carl Customer", "carl@designhub.io")


@pytest.fixture
def project_payload(client_user: Account, manager: Account) -> dict[str, Any]:
    return {
        "title": "Riverside Loft",
        "description": "Full interior renovation of a two-bedroom loft.",
        "clientId": str(client_user.id),
        "managerIds": [str(manager.id)],
        "priority": "high",
        "startDate": "2026-01-05T00:00:00Z",
        "endDate": "2026-06-30T00:00:00Z",
        "budget": 85000,
    }


@pytest.fixture
async def project(client: AsyncClient, admin: Account, project_payload) -> dict[str, Any]:
    """A project created through the API: one client, one manager."""
    response = await client.post("/api/v1/projects", json=project_payload, headers=admin.headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def list_notifications(client: AsyncClient, account: Account, **params: Any) -> list[dict]:
    response = await client.get(
        "/api/v1/notifications", params={"limit": 100, **params}, headers=account.headers
    )
    assert response.status_code == 200, response.text
    return response.json()["data"]["items"]
