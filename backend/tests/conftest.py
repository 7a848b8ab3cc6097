from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from examhall.db import Base, get_async_session
from examhall.models import user_model, exam_model, exam_session_model  # noqa: F401
from examhall.models.user_model import UserRole

from .factories import make_user


@pytest_asyncio.fixture
async def engine(tmp_path):
    # file-backed so separate sessions get separate connections and real transactions
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'examhall_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def instructor(db):
    return await make_user(db, UserRole.INSTRUCTOR, name="Instructor")


@pytest_asyncio.fixture
async def student(db):
    return await make_user(db, UserRole.STUDENT, name="Student")


@pytest_asyncio.fixture
async def other_student(db):
    return await make_user(db, UserRole.STUDENT, name="Other Student")


class ActingUser:
    """Stands in for the identity provider in HTTP tests."""

    def __init__(self):
        self.user = None

    def __call__(self):
        return self.user


@pytest.fixture
def acting_user():
    return ActingUser()


@pytest_asyncio.fixture
async def client(session_maker, acting_user) -> AsyncGenerator[AsyncClient, None]:
    from examhall.app import app
    from examhall.security import current_active_user

    async def override_get_async_session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[current_active_user] = acting_user
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
