import os

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("ENV", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("SESSION_SECRET_KEY", "test-session-secret")
os.environ.setdefault("LOG_DIR", "logs")

import pytest
from urllib.parse import urlencode, urlparse, parse_qs
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator

from main import app
from core.database import Base
from models.users import User
from services.google_oauth import OAuthIdentity
from utils.deps import get_db, get_oauth_client
from utils.hashing import get_password_hash

# SYNC SQLite for testing (matches sync service layer)
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

TEST_PASSWORD = "TestPassword123"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False}
)

TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


class FakeOAuthClient:
    """
    Stands in for Google: returns a fixed identity, or raises `error`.
    """

    def __init__(self):
        self.identity = OAuthIdentity(
            external_id="google-sub-123",
            email="oauth.user@example.com",
            display_name="OAuth User"
        )
        self.error: Exception | None = None
        self.exchanged_codes: list[str] = []

    def get_authorization_url(self, redirect_uri: str, state: str, prompt: str | None = None) -> str:
        params = {"redirect_uri": redirect_uri, "state": state}
        if prompt:
            params["prompt"] = prompt
        return f"https://idp.test/authorize?{urlencode(params)}"

    async def exchange_code(self, code: str, redirect_uri: str) -> OAuthIdentity:
        self.exchanged_codes.append(code)
        if self.error:
            raise self.error
        return self.identity


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """
    Creates a fresh, empty database for each test.
    """
    Base.metadata.create_all(bind=engine)
    
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
    
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def fake_oauth() -> FakeOAuthClient:
    return FakeOAuthClient()


@pytest.fixture
async def client(session: Session, fake_oauth: FakeOAuthClient):
    """
    Yields an HTTP client that interacts with the app using the test
    database and the fake identity provider. Cookies (and so the OAuth
    session) persist across requests made with the same client.
    """
    def override_get_db():
        try:
            yield session
        finally:
            pass  # Session cleanup handled by session fixture
    
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_oauth_client] = lambda: fake_oauth
    
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac
    
    app.dependency_overrides.clear()


def make_user(session: Session, email: str, approved: bool = True, is_admin: bool = False,
              password: str | None = TEST_PASSWORD, google_id: str | None = None) -> User:
    user = User(
        email=email,
        display_name=email.split("@")[0],
        hashed_password=get_password_hash(password) if password else None,
        google_id=google_id,
        approved=approved,
        is_admin=is_admin
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def approved_user(session: Session) -> User:
    return make_user(session, "approved@example.com")


@pytest.fixture
def unapproved_user(session: Session) -> User:
    return make_user(session, "pending@example.com", approved=False)


@pytest.fixture
def admin_user(session: Session) -> User:
    return make_user(session, "admin@example.com", is_admin=True)


@pytest.fixture
def login(client: AsyncClient):
    """
    Returns a coroutine function that logs in and returns the token body.
    """
    async def _login(email: str, password: str = TEST_PASSWORD) -> dict:
        response = await client.post("/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return response.json()

    return _login


@pytest.fixture
def user_factory(session: Session):
    def _make(email: str, **kwargs) -> User:
        return make_user(session, email, **kwargs)

    return _make


def parse_redirect(response) -> tuple[str, dict]:
    """
    Split a redirect Location into (scheme://host/path, single-valued query).
    """
    assert response.status_code == 302, response.text
    location = urlparse(response.headers["location"])
    query = {k: v[0] for k, v in parse_qs(location.query).items()}
    return f"{location.scheme}://{location.netloc}{location.path}", query
