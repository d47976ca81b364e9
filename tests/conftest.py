import os

os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENABLE_SCHEDULER", "false")

from datetime import datetime, timezone

import httpx
import pytest
from bson import ObjectId
from mongomock_motor import AsyncMongoMockClient

from db import ensure_indexes, get_database
from utils.app_utils import create_access_token, create_user as create_account
from utils.time_utils import FakeClock, get_clock

TODAY_NOON = datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return FakeClock(TODAY_NOON)


@pytest.fixture
async def database():
    client = AsyncMongoMockClient()
    database = client["tally_test"]
    await ensure_indexes(database)
    return database


async def create_user(database, email="worker@example.com", role="user", hourly_rate="40.00",
                      password="Secret123", account_status="active"):
    return await create_account(database, email, password, role=role, hourly_rate=hourly_rate,
                                account_status=account_status)


async def create_project(database, name="Apollo"):
    result = await database.projects.insert_one({"name": name, "created_at": TODAY_NOON})
    return str(result.inserted_id)


def auth_headers(user) -> dict:
    token = create_access_token(payload={"sub": str(user["_id"]), "role": user["role"]})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(database, clock):
    from main import app

    app.dependency_overrides[get_database] = lambda: database
    app.dependency_overrides[get_clock] = lambda: clock
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def random_id():
    return str(ObjectId())
