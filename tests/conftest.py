import os
from dataclasses import dataclass

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

# In-memory DB and a fixed signing key for tests
os.environ["DATABASE_PATH"] = ":memory:"
os.environ["DATABASE_URL"] = ""
os.environ["JWT_SECRET"] = "test-secret"
os.environ["RESTRICT_PROVIDER_PATIENT_QUERIES"] = "false"

from medvault.database import close_db, init_db
from medvault.datastore import Datastore
from medvault.main import app
from medvault.models.user import UserRole
from medvault.services.auth import get_auth_service
from medvault.services.users import create_user


@dataclass
class Actor:
    id: str
    role: UserRole
    headers: dict


@pytest_asyncio.fixture
async def db():
    """Provide a fresh in-memory database for each test."""
    import medvault.database as db_mod

    # Close any existing connection
    if db_mod._db is not None:
        try:
            await db_mod._db.close()
        except Exception:
            pass
    db_mod._db = None

    # Override module-level config directly (avoids fragile importlib.reload)
    db_mod.DATABASE_PATH = ":memory:"
    db_mod.DATABASE_URL = ""

    await init_db()
    database = await db_mod.get_db()
    yield database
    await close_db()


@pytest.fixture
def store(db):
    return Datastore(db)


@pytest.fixture
def client(db):
    """Provide a synchronous TestClient for HTTP endpoint tests."""
    return TestClient(app)


@pytest_asyncio.fixture
async def async_client(db):
    """Provide an async httpx client for async HTTP tests."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def make_actor(store):
    """Factory: store a user with ``role`` and return it with auth headers."""
    counter = {"n": 0}

    async def _make(role: UserRole, first_name: str = "Test", last_name: str = "User") -> Actor:
        counter["n"] += 1
        user = await create_user(
            store,
            email=f"{role.value}{counter['n']}@example.com",
            role=role,
            first_name=first_name,
            last_name=last_name,
            password_hash="hashed-secret",
        )
        token = get_auth_service().issue_token(user["id"], role)
        return Actor(id=user["id"], role=role, headers={"Authorization": f"Bearer {token}"})

    return _make


@pytest_asyncio.fixture
async def admin(make_actor):
    return await make_actor(UserRole.ADMIN, "Ada", "Admin")


@pytest_asyncio.fixture
async def provider_user(make_actor):
    return await make_actor(UserRole.PROVIDER, "Gregory", "House")


@pytest_asyncio.fixture
async def patient_user(make_actor):
    return await make_actor(UserRole.PATIENT, "Jane", "Doe")

