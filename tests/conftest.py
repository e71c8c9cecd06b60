import os

os.environ["ENV"] = "test"
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("APP_URL", "https://watch.example.com")
os.environ.setdefault("ADMIN_EMAIL", "admin@example.com")
os.environ.setdefault("MODERATOR_EMAILS", "moderator@example.com")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from devicewatch.main import app
from devicewatch.db import Base, get_db
from devicewatch.models.option import Option
from devicewatch.models.user import User, UserRole
from devicewatch.services import device_watch
from devicewatch.services.cache import MemoryCache, reset_cache
from devicewatch.services.device_watch import DevicePolicy, DeviceWatcher, Identity
from devicewatch.services.options import INSTALLED_TIME

# Use SQLite in-memory for test DB
TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"
# For in-memory SQLite we must use a StaticPool so multiple connections share the
# same in-memory database (TestClient requests vs test DB setup).
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Dependency override
def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db


class RecordingMailer:
    """Stands in for SendGrid; keeps every message handed to it."""

    def __init__(self):
        self.sent = []

    def __call__(self, recipients, subject, body, headers, html=None):
        self.sent.append({
            "recipients": list(recipients),
            "subject": subject,
            "body": body,
            "headers": dict(headers),
            "html": html,
        })
        return True


class FakeStore:
    """In-memory persistent store with the same create-if-absent contract."""

    def __init__(self, values=None):
        self.values = dict(values or {})

    def get_or_create(self, key, default):
        if key not in self.values:
            self.values[key] = str(default() if callable(default) else default)
        return self.values[key]


class RecordingTransport:
    def __init__(self, fail=False):
        self.cookies = []
        self.fail = fail

    def set(self, name, value, expires, path, domain, secure, http_only):
        if self.fail:
            raise RuntimeError("headers already sent")
        self.cookies.append({
            "name": name,
            "value": value,
            "expires": expires,
            "path": path,
            "domain": domain,
            "secure": secure,
            "http_only": http_only,
        })


@pytest.fixture(autouse=True)
def setup_test_db():
    # recreate schema for each test to ensure isolation
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


@pytest.fixture
def outbox():
    return RecordingMailer()


@pytest.fixture
def policy():
    return DevicePolicy.from_settings(hostname_lookup=lambda address: "client.example.net")


@pytest.fixture(autouse=True)
def watcher(monkeypatch, policy, outbox):
    """Process-wide watcher with an isolated cache and no real email."""
    reset_cache()
    instance = DeviceWatcher(policy, cache=MemoryCache(), mailer=outbox)
    monkeypatch.setattr(device_watch, "_watcher", instance)
    yield instance
    device_watch.reset_device_watcher()
    reset_cache()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def past_grace(db_session):
    """Install time far enough back that notifications are enforced."""
    db_session.add(Option(key=INSTALLED_TIME, value="1000000000"))
    db_session.commit()


@pytest.fixture
def admin_user(db_session):
    user = User(
        id="admin-1",
        display_name="Admin One",
        login="admin1",
        email="admin1@example.com",
        role=UserRole.admin,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def identity():
    return Identity(
        id="42",
        display_name="Jane Editor",
        login_name="jeditor",
        email="jane@example.com",
        role="editor",
    )


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def transport():
    return RecordingTransport()
