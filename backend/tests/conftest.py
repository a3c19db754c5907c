import os

# Point settings at a throwaway database before the app modules build their engine.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_SCHEMA", "false")

from threading import Lock  # noqa: E402
import time  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.api.deps import get_db, get_push_gateway  # noqa: E402
from app.core.exceptions import PushDeliveryError  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.main import app  # noqa: E402
from app.services.push_gateway import PushGateway, PushResult  # noqa: E402
from app.services.schedule_store import class_locks  # noqa: E402


class FakePushGateway(PushGateway):
    name = "fake"

    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.rejected_handles: set[str] = set()
        self.raising_handles: set[str] = set()
        self.timeout_handles: set[str] = set()
        self.delay_seconds = 0.0
        self._lock = Lock()

    def send(self, push_handle, title, body, payload):
        if self.delay_seconds:
            time.sleep(self.delay_seconds)
        if push_handle in self.timeout_handles:
            raise PushDeliveryError("Push gateway timed out", details={"timeout_seconds": 0.1})
        with self._lock:
            self.sent.append({"handle": push_handle, "title": title, "body": body, "payload": payload})
        if push_handle in self.raising_handles:
            raise PushDeliveryError("connection reset by push provider")
        if push_handle in self.rejected_handles:
            return PushResult(ok=False, error="NotRegistered")
        return PushResult(ok=True, provider_response={"success": 1})

    def handles(self) -> list[str]:
        with self._lock:
            return [item["handle"] for item in self.sent]


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def push_gateway():
    return FakePushGateway()


@pytest.fixture()
def client(session_factory, push_gateway):
    class_locks.clear()

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_push_gateway] = lambda: push_gateway

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    class_locks.clear()
