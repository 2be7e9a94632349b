import os
import uuid

# Settings are read at import time, so the test environment goes first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ALGORITHM", "HS256")
os.environ.setdefault("ACCESS_TOKEN_EXPIRE_MINUTES", "30")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.ai_feature.orchestrator import Orchestrator
from app.api.endpoints.messages import get_orchestrator
from app.core.security import create_access_token, hash_password
from app.main import app
from app.core import models
from app.core.database import Base, get_db
from fakes import FakeExecutor, ScriptedModel

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def scripted_model():
    return ScriptedModel()


@pytest.fixture
def fake_executor():
    return FakeExecutor()


# =========================
# Database
# =========================
# One in-memory database per test
@pytest_asyncio.fixture(scope="function")
async def test_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine):
    session_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


# Client
@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, scripted_model, fake_executor):
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_orchestrator] = lambda: Orchestrator(
        scripted_model, fake_executor
    )

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# User
@pytest_asyncio.fixture(scope="function")
async def test_user(db_session: AsyncSession):
    # Generate unique email for each test to avoid duplicates
    unique_email = f"test_{uuid.uuid4().hex[:8]}@example.com"
    user = models.User(
        email=unique_email, password=hash_password("password123"), role="member"
    )

    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture(scope="function")
async def other_user(db_session: AsyncSession):
    user = models.User(
        email=f"other_{uuid.uuid4().hex[:8]}@example.com",
        password=hash_password("password123"),
        role="member",
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


# Token for user
@pytest_asyncio.fixture(scope="function")
async def auth_headers_user(test_user):
    token = create_access_token({"user_id": test_user.id})
    return {"Authorization": f"Bearer {token}"}


# Conversation
@pytest_asyncio.fixture(scope="function")
async def test_conversation(db_session: AsyncSession, test_user):
    conversation = models.Conversation(user_id=test_user.id, title="New conversation")
    db_session.add(conversation)
    await db_session.commit()
    await db_session.refresh(conversation)
    return conversation
