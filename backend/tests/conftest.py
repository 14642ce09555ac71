"""Shared fixtures: in-memory SQLite database, users, an IT/HQ approval chain."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("EMAIL_ENABLED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import prflow.models  # noqa: E402,F401
from prflow.core.security import get_password_hash  # noqa: E402
from prflow.db.base import Base  # noqa: E402
from prflow.db.session import get_db  # noqa: E402
from prflow.main import app  # noqa: E402
from prflow.models import ApprovalWorkflow, User  # noqa: E402
from tests.helpers import TEST_PASSWORD  # noqa: E402


_HASHED = get_password_hash(TEST_PASSWORD)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


def _user(employee_number: str, name: str, role: str) -> User:
    return User(
        employee_number=employee_number,
        full_name=name,
        email=f"{name.lower()}@example.com",
        department="IT",
        location="HQ",
        role=role,
        hashed_password=_HASHED,
    )


@pytest.fixture
async def users(db):
    """admin, alice & bob (approvers), carol (approver outside the chain), riley (requester), sam (requester)."""
    people = {
        "admin": _user("E0001", "Admin", "admin"),
        "alice": _user("E0002", "Alice", "approver"),
        "bob": _user("E0003", "Bob", "approver"),
        "carol": _user("E0004", "Carol", "approver"),
        "riley": _user("E0005", "Riley", "requester"),
        "sam": _user("E0006", "Sam", "requester"),
    }
    db.add_all(people.values())
    await db.commit()
    # Detached, so a test's rollback does not expire them.
    for person in people.values():
        db.expunge(person)
    return people


@pytest.fixture
async def workflow(db, users):
    """IT/HQ: level 1 Alice, level 2 Bob."""
    db.add_all([
        ApprovalWorkflow(department="IT", location="HQ", approval_level=1, approver_id=users["alice"].id),
        ApprovalWorkflow(department="IT", location="HQ", approval_level=2, approver_id=users["bob"].id),
    ])
    await db.commit()


@pytest.fixture
async def client(session_maker):
    async def _get_test_db():
        async with session_maker() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
