"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mediahub.main import app
from mediahub.config import Settings, get_settings
from mediahub.db.base import Base
from mediahub.db.session import get_db
from mediahub.api.v1.dependencies import get_blob_storage, get_identity_provider
from mediahub.auth.identity_provider import IdentityProvider, code_challenge_s256
from mediahub.models.user import AccountTier, User
from mediahub.schemas.user import ExternalProfile
from mediahub.services.exceptions import CapabilityIssuerError, IdentityProviderError
from mediahub.services.identity_service import generate_user_id
from mediahub.services.session_service import SessionService
from mediahub.storage.blob_storage import BlobStorage, SignedUpload


# In-memory SQLite for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FrozenClock:
    """Controllable stand-in for ``utcnow``."""

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class MockBlobStorage(BlobStorage):
    """Mock blob storage for testing."""

    def __init__(self, expires_in: int = 600):
        self._storage = {}
        self.expires_in = expires_in
        self.sign_calls = []
        self.list_calls = []
        self.fail_signing = False

    def put(self, key: str, data: bytes = b"") -> None:
        """Simulate a client PUT landing in the bucket."""
        self._storage[key] = data

    def sign_upload(self, key: str, content_type: str, content_length: int) -> SignedUpload:
        self.sign_calls.append((key, content_type, content_length))
        if self.fail_signing:
            raise CapabilityIssuerError()
        return SignedUpload(url=f"http://mock-storage/{key}?expires={self.expires_in}", expires_in=self.expires_in)

    def list_keys(self, prefix: str) -> list[str]:
        self.list_calls.append(prefix)
        return [key for key in self._storage if key.startswith(prefix)]


class FakeIdentityProvider(IdentityProvider):
    """Identity provider that hands back a fixed profile."""

    def __init__(self):
        self.profile = ExternalProfile(
            external_id="google-oauth2|1001",
            email="test@example.com",
            name="Test User",
            picture="https://example.com/avatar.png",
            email_verified=True,
        )
        self.fail = False
        self.exchanges = []

    def authorization_url(self, state: str, code_verifier: str) -> str:
        return (
            f"https://idp.test/authorize?state={state}"
            f"&code_challenge={code_challenge_s256(code_verifier)}&code_challenge_method=S256"
        )

    def fetch_profile(self, code: str, code_verifier: str) -> ExternalProfile:
        self.exchanges.append((code, code_verifier))
        if self.fail:
            raise IdentityProviderError()
        return self.profile


@pytest.fixture(scope="function")
def test_settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        DATABASE_URL=SQLALCHEMY_DATABASE_URL,
        ENVIRONMENT="test",
        GOOGLE_CLIENT_ID="test-client-id",
        GOOGLE_CLIENT_SECRET="test-client-secret",
    )


@pytest.fixture(scope="function")
def clock():
    """Frozen clock starting at a fixed instant."""
    return FrozenClock()


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database session for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def session_factory(db_session):
    """Session factory bound to the test database, for code that opens its own sessions."""
    return TestingSessionLocal


@pytest.fixture(scope="function")
def mock_blob_storage():
    """Create a mock blob storage for testing."""
    return MockBlobStorage()


@pytest.fixture(scope="function")
def identity_provider():
    """Create a fake identity provider for testing."""
    return FakeIdentityProvider()


@pytest.fixture(scope="function")
def client(db_session, mock_blob_storage, identity_provider, test_settings):
    """Create a test client with overridden dependencies."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_storage] = lambda: mock_blob_storage
    app.dependency_overrides[get_identity_provider] = lambda: identity_provider
    app.dependency_overrides[get_settings] = lambda: test_settings

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    """Factory inserting a user directly into the database."""
    counter = {"n": 0}

    def _make_user(tier: AccountTier = AccountTier.FREE, email: Optional[str] = None) -> User:
        counter["n"] += 1
        user = User(
            id=generate_user_id(),
            external_id=f"google-oauth2|test-{counter['n']}",
            email=email or f"user{counter['n']}@example.com",
            name=f"User {counter['n']}",
            tier=tier,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def test_user(make_user):
    """A regular FREE tier user."""
    return make_user()


@pytest.fixture
def other_user(make_user):
    """A second user that does not own the test user's uploads."""
    return make_user()


@pytest.fixture
def admin_user(make_user):
    """A user on the ADMIN tier."""
    return make_user(tier=AccountTier.ADMIN)


@pytest.fixture
def login(db_session, test_settings):
    """Factory opening a session for a user and returning request headers carrying its cookie."""

    def _login(user: User) -> dict:
        session = SessionService(db_session, test_settings).create_session(user.id)
        return {"Cookie": f"{test_settings.SESSION_COOKIE_NAME}={session.id}"}

    return _login


@pytest.fixture
def auth_headers(login, test_user):
    """Return cookie headers for requests made as the test user."""
    return login(test_user)
