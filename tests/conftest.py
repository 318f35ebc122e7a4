"""
Shared fixtures: in-memory SQLite, a TestClient with dependency overrides,
and helpers for profiles and bearer tokens.
"""
import os
import tempfile

# Must be set before any app module reads configuration
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("STRIPE_BASIC_PRICE_ID", "price_basic")
os.environ.setdefault("STRIPE_PREMIUM_PRICE_ID", "price_premium")
os.environ.setdefault("STRIPE_CREDITS_100_PRICE_ID", "price_credits_100")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")
os.environ.setdefault("STORAGE_LOCAL_PATH", tempfile.mkdtemp(prefix="cv-analyzer-test-"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.db.base import Base
from app.db.session import get_db
from app.db.models.user import Profile
from app.db.models.admin_user import AdminUser
from app.core.security import hash_password, create_access_token
from app.storage.base import get_storage
from app.storage.local import LocalStorage

# Setup in-memory SQLite database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


def override_get_db():
    """Override get_db dependency for testing."""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(root=str(tmp_path / "blobs"), public_base_url="http://testserver/files")


@pytest.fixture
def client(db, storage):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_profile(db):
    """Factory for profiles; returns the committed Profile."""
    def _make(
        email="user@example.com",
        credits=10,
        subscription_status="free",
        is_blocked=False,
        admin_role=None,
        password="testpass123",
        **fields,
    ):
        profile = Profile(
            email=email,
            full_name=fields.pop("full_name", "Test User"),
            password_hash=hash_password(password),
            credits=credits,
            subscription_status=subscription_status,
            is_blocked=is_blocked,
            **fields,
        )
        db.add(profile)
        db.commit()
        if admin_role:
            db.add(AdminUser(user_id=profile.id, role=admin_role, permissions=[]))
            db.commit()
        db.refresh(profile)
        return profile

    return _make


@pytest.fixture
def profile(make_profile):
    return make_profile()


@pytest.fixture
def super_admin(make_profile):
    return make_profile(email="admin@example.com", admin_role="super_admin")


@pytest.fixture
def auth_headers():
    """Returns a function building a bearer header for a profile."""
    def _headers(profile: Profile) -> dict:
        token = create_access_token(profile.id, profile.session_version)
        return {"Authorization": f"Bearer {token}"}

    return _headers
