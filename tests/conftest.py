import os
import tempfile

# Settings are read at import time; configure the test environment first
os.environ["ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-access-secret"
os.environ["REFRESH_SECRET_KEY"] = "test-refresh-secret"
os.environ["GOOGLE_CLIENT_ID"] = "test-client-id.apps.googleusercontent.com"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="lox-auth-logs-")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from typing import Generator

from main import app
from core.database import Base
from models.users import User
from services.identity_verifier import IdentityAssertion, InvalidIdentityToken
from utils.clock import utcnow
from utils.deps import get_db, get_identity_verifier
from utils.hashing import get_password_hash

TEST_PASSWORD = "TestPassword123!"

engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool
)

TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


class FakeIdentityVerifier:
    """Stands in for Google: maps known ID tokens to assertions."""

    provider = "google"

    def __init__(self):
        self.assertions = {}
        self.calls = []

    def register(self, id_token, **fields):
        defaults = {
            "subject_id": "google-sub-1",
            "email": "oauth@example.com",
            "name": "OAuth User",
            "avatar_url": "https://example.com/avatar.png",
            "email_verified": True,
        }
        defaults.update(fields)
        self.assertions[id_token] = IdentityAssertion(**defaults)

    async def verify(self, id_token):
        self.calls.append(id_token)
        if id_token not in self.assertions:
            raise InvalidIdentityToken("Invalid Google token")
        return self.assertions[id_token]


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """
    Fresh, empty database for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def identity_verifier() -> FakeIdentityVerifier:
    return FakeIdentityVerifier()


@pytest.fixture
async def client(session: Session, identity_verifier: FakeIdentityVerifier):
    """
    HTTP client bound to the app with the test database and fake Google.
    """
    def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_verifier] = lambda: identity_verifier

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def verified_user(session: Session) -> User:
    user = User(
        email="verified@example.com",
        full_name="Verified User",
        password_hash=get_password_hash(TEST_PASSWORD),
        email_verified_at=utcnow()
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
async def signed_in(client, verified_user):
    """Session payload for verified_user."""
    response = await client.post("/api/v1/auth/signin", json={
        "email": verified_user.email,
        "password": TEST_PASSWORD
    })
    assert response.status_code == 200
    return response.json()["session"]
