from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from carpal.core.config import Settings
from carpal.core.database import build_engine, build_session_factory, create_tables
from carpal.main import create_app
from carpal.models.models import Trip
from carpal.services.push_client import PushClient, TokenResult
from carpal.services.token_store import InMemoryUserTokenStore, SqlUserTokenStore
from carpal.services.trip_service import InMemoryTripRepository, InMemoryTripStore, SqlTripRepository

BASE_TIME = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)
EVENT_SECRET = "event-secret"

def trip_record(**overrides) -> Dict:
    record = {
        "id": "trip-1",
        "driver_id": "driver-1",
        "driver_name": "Sami",
        "from_city": "Amman",
        "to_city": "Irbid",
        "date": "2024-05-10",
        "time": "08:30",
        "price": 3.5,
        "car_model": "Corolla",
        "car_color": "White",
        "phone_number": "+962 7999-12345",
        "notes": None,
        "total_seats": 4,
        "available_seats": 4,
        "booked_users": [],
        "created_at": BASE_TIME,
        "updated_at": BASE_TIME,
    }
    record.update(overrides)
    return record

def minutes_after_base(minutes: int) -> datetime:
    return BASE_TIME + timedelta(minutes=minutes)

async def seed_trip(repo, **overrides) -> Dict:
    record = trip_record(**overrides)
    if isinstance(repo, InMemoryTripRepository):
        repo.store.put(record)
    else:
        async with repo.session_factory() as session:
            session.add(Trip(**record))
            await session.commit()
    return record

class FakePushClient(PushClient):
    """Records multicast calls; ``failures`` maps token -> error code."""

    def __init__(self, failures: Optional[Dict[str, str]] = None, error: Optional[Exception] = None):
        self.failures = failures or {}
        self.error = error
        self.calls: List[Dict] = []

    async def send_multicast(self, tokens, notification, data):
        self.calls.append({"tokens": list(tokens), "notification": notification, "data": dict(data)})
        if self.error is not None:
            raise self.error
        return [
            TokenResult(token=token, success=token not in self.failures, error_code=self.failures.get(token))
            for token in tokens
        ]

@pytest.fixture
def memory_repo():
    return InMemoryTripRepository(InMemoryTripStore())

@pytest.fixture
async def session_factory():
    engine = build_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_tables(engine)
    yield build_session_factory(engine)
    await engine.dispose()

@pytest.fixture
def sql_repo(session_factory):
    return SqlTripRepository(session_factory)

@pytest.fixture(params=["memory", "sql"])
def trip_repo(request, memory_repo, sql_repo):
    return memory_repo if request.param == "memory" else sql_repo

@pytest.fixture(params=["memory", "sql"])
def token_store(request, session_factory):
    if request.param == "memory":
        return InMemoryUserTokenStore()
    return SqlUserTokenStore(session_factory)

@pytest.fixture
def push_client():
    return FakePushClient()

@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        ENVIRONMENT="development",
        DATABASE_URL=None,
        FIREBASE_PROJECT_ID=None,
        FIREBASE_CLIENT_EMAIL=None,
        FIREBASE_PRIVATE_KEY=None,
        EVENT_WEBHOOK_SECRET=EVENT_SECRET,
    )

@pytest.fixture
def app(test_settings, push_client):
    return create_app(test_settings, push_client=push_client)

@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c

def auth_header(uid: str = "driver-1", name: str = "Sami") -> Dict[str, str]:
    return {"Authorization": f"Bearer mock:{uid}::{name}"}
