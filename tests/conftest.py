import os

# Test configuration must be in place before core.config is imported
os.environ.setdefault("ENV", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("TOKEN_HASH_ROUNDS", "4")
os.environ.setdefault("STORE_TIMEOUT_SECONDS", "30")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("MAIL_USERNAME", "test")
os.environ.setdefault("MAIL_PASSWORD", "test")
os.environ.setdefault("MAIL_FROM", "noreply@example.com")
os.environ.setdefault("MAIL_SERVER", "localhost")
os.environ.setdefault("MAIL_PORT", "587")

from contextlib import contextmanager
from typing import Generator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from core.config import settings
from core.database import Base, create_db_engine, create_session_factory
from main import app
from models.credentials import Credential
from models.users import User, new_id
from services.auth_service import AuthService
from utils.deps import get_auth_service
from utils.hashing import SecretHasher

TEST_PASSWORD = "TestPassword123!"

# SQLite file database; BEGIN IMMEDIATE lets threaded tests exercise write serialization
engine = create_db_engine(settings.DATABASE_URL, timeout_seconds=settings.STORE_TIMEOUT_SECONDS)


@pytest.fixture
def session_factory() -> Generator[sessionmaker, None, None]:
    """
    Creates a fresh, empty database for each test.
    """
    Base.metadata.create_all(bind=engine)
    yield create_session_factory(engine)
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def auth_service(session_factory) -> AuthService:
    return AuthService.from_settings(session_factory, settings)


@pytest.fixture
def token_service(auth_service):
    return auth_service.tokens


@pytest.fixture
def make_user(session_factory):
    """
    Inserts a user with a password credential and returns the (detached) User.
    """
    hasher = SecretHasher(rounds=4)

    def _make_user(email: str = "user@example.com", password: str = TEST_PASSWORD,
                   name: str = "Test User", verified: bool = True) -> User:
        with session_factory.begin() as db:
            user = User(id=new_id(), email=email, name=name, is_verified=verified)
            db.add(user)
            db.flush()
            db.add(Credential(user_id=user.id, password_hash=hasher.hash(password)))
        return user

    return _make_user


@pytest.fixture
def verified_user(make_user) -> User:
    return make_user(email="verified@example.com")


@pytest.fixture
def count_rows(session_factory):
    """Counts rows of a model matching the given criteria, in a short-lived session."""
    def _count(model, *criteria) -> int:
        with session_factory() as db:
            return db.scalar(select(func.count()).select_from(model).where(*criteria))
    return _count


@pytest.fixture
def inject_fault():
    """
    Makes the store fail on every statement starting with ``prefix``
    (e.g. "INSERT INTO refresh_tokens") while the context is active.
    """
    @contextmanager
    def _inject(prefix: str):
        def _before(conn, cursor, statement, parameters, context, executemany):
            if statement.lstrip().upper().startswith(prefix.upper()):
                raise OperationalError(statement, parameters, Exception("injected fault"))

        event.listen(engine, "before_cursor_execute", _before)
        try:
            yield
        finally:
            event.remove(engine, "before_cursor_execute", _before)

    return _inject


@pytest.fixture
async def client(auth_service):
    """
    Yields an HTTP client wired to the app with the test auth service.
    """
    app.dependency_overrides[get_auth_service] = lambda: auth_service

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


async def login(client, email: str, password: str = TEST_PASSWORD):
    return await client.post("/auth/login", json={"email": email, "password": password})


@pytest.fixture
def login_as():
    return login


def cleared_cookies(response) -> set[str]:
    """Names of the cookies a response deletes."""
    return {
        header.split("=", 1)[0]
        for header in response.headers.get_list("set-cookie")
        if "max-age=0" in header.lower()
    }


def session_cookie(token: str) -> dict:
    """Explicit Cookie header, for replaying a token the client jar no longer holds."""
    return {"Cookie": f"session_token={token}"}
