"""Shared fixtures: in-memory database, private change hub, API client."""
import os
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite://")
_TMP = tempfile.mkdtemp(prefix="nfc-card-")
os.environ.setdefault("DATA_DIR", _TMP)
os.environ.setdefault("SQLITE_PATH", os.path.join(_TMP, "app.db"))
os.environ.setdefault("STORAGE_DIR", os.path.join(_TMP, "storage"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from nfc_card import models  # noqa: F401
from nfc_card.core.auth import UserContext, get_current_user
from nfc_card.core.config import settings
from nfc_card.core.database import Base, get_db, get_session_factory
from nfc_card.core.realtime import ChangeHub, get_hub
from nfc_card.main import app
from nfc_card.services.profiles import create_profile


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def hub():
    return ChangeHub()


@pytest.fixture
def no_retry_delay(monkeypatch):
    monkeypatch.setattr(settings, "read_retry_delay_seconds", 0.0)


@pytest.fixture
def make_profile(db, hub):
    """Create profiles through the service layer."""
    counter = {"n": 0}

    def _make(**fields):
        counter["n"] += 1
        data = {"email": f"user{counter['n']}@example.com", "name": f"User {counter['n']}"}
        data.update(fields)
        return create_profile(db, data, hub=hub)

    return _make


@pytest.fixture
def storage_dir(tmp_path, monkeypatch):
    path = tmp_path / "storage"
    monkeypatch.setattr(settings, "storage_dir", str(path))
    monkeypatch.setattr(settings, "storage_backend", "local")
    return path


@pytest.fixture
def client(session_factory, hub, storage_dir):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_hub] = lambda: hub
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login():
    """Act as the signed-in Supabase user with the given email."""

    def _login(email, user_id="auth-user-1"):
        app.dependency_overrides[get_current_user] = lambda: UserContext(
            user_id=user_id, email=email, claims={"sub": user_id, "email": email}
        )

    yield _login
    app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture
def admin(make_profile, login):
    profile = make_profile(email="admin@example.com", name="Admin", is_admin=True, is_verified=True)
    login(profile.email, user_id="auth-admin")
    return profile
