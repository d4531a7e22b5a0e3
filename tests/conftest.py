import os
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

# Test-only settings, applied before the app modules read the environment.
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-at-least-32-characters-long")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from passlib.hash import bcrypt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app import email_service
from app.database import Base, get_async_session
from app.limiter import limiter
from app.main import app
from app.models.manager_model import Manager
from app.models.post_model import Post
from app.models.user_model import User
from app.models.verification_code import VerificationCode
from app.utils.token_utils import create_access_token

TEST_PASSWORD = "secret123"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def sent_codes(monkeypatch):
    """Capture outgoing verification emails instead of talking to SMTP."""
    outbox = []

    def fake_send(to_email: str, code: str):
        outbox.append((to_email, code))

    monkeypatch.setattr(email_service, "send_verification_code", fake_send)
    return outbox


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client with the session dependency pointed at the test DB."""

    async def override_get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_get_session
    limiter.enabled = False

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def make_user(
    session: AsyncSession,
    username: str,
    email: str,
    password: str = TEST_PASSWORD,
    **extra,
) -> User:
    user = User(username=username, email=email, password=bcrypt.hash(password), verified=True, **extra)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def make_post(session: AsyncSession, user: User, **fields) -> Post:
    values = {
        "title": "Subletting for spring",
        "content": "Room near the quad, available January.",
        "category": "Housing",
        "is_anonymous": False,
    }
    values.update(fields)
    post = Post(user_id=user.id, **values)
    session.add(post)
    await session.commit()
    await session.refresh(post)
    return post


async def make_code(
    session: AsyncSession,
    email: str,
    code: str = "123456",
    code_type: str = "register",
    expires_in: timedelta = timedelta(minutes=10),
) -> VerificationCode:
    row = VerificationCode(
        email=email,
        code=code,
        type=code_type,
        expires_at=datetime.now(timezone.utc) + expires_in,
    )
    session.add(row)
    await session.commit()
    return row


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest_asyncio.fixture
async def alice(db_session) -> User:
    return await make_user(db_session, "alice", "alice@illinois.edu")


@pytest_asyncio.fixture
async def bob(db_session) -> User:
    return await make_user(db_session, "bob", "bob@illinois.edu")


@pytest_asyncio.fixture
async def manager(db_session) -> User:
    user = await make_user(db_session, "mod", "mod@illinois.edu")
    db_session.add(Manager(email=user.email))
    await db_session.commit()
    return user
