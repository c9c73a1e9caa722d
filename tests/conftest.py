"""Shared test fixtures."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from app.core.auth import Actor
from app.core.config import Settings
from app.core.database import enable_sqlite_transactions
from app.handlers import ledger
from app.handlers.members import create_member
from app.models.member import FamilyMember, FamilyMemberCreate


@pytest.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh SQLite database per test."""
    # Short busy timeout so a blocked writer fails fast
    engine = enable_sqlite_transactions(create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}",
        connect_args={"timeout": 0.5},
    ))
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """Session handed to the code under test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings() -> Settings:
    return Settings(
        ACTOR_TOKENS={
            "admin-token": {"id": "admin-1", "name": "Admin One", "role": "ADMIN"},
            "super-token": {"id": "super-1", "name": "Super One", "role": "SUPER_ADMIN"},
            "member-token": {"id": "member-1", "name": "Member One", "role": "MEMBER"},
        }
    )


@pytest.fixture
def admin() -> Actor:
    return Actor(id="admin-1", name="Admin One", role="ADMIN")


@pytest.fixture
def member_actor() -> Actor:
    return Actor(id="member-1", name="Member One", role="MEMBER")


@pytest.fixture
async def member_id(session: AsyncSession, admin: Actor) -> str:
    """A tracked member living in Riyadh."""
    member = await create_member(session, FamilyMemberCreate(
        first_name="Khalid",
        father_name="Saad",
        family_name="Al-Shaye",
        gender="Male",
        generation=3,
        birth_year=1980,
        city="Riyadh",
        phone="0500000000",
    ), admin)
    return member.id


@pytest.fixture
def fetch_member(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[str], Awaitable[FamilyMember | None]]:
    """Read a member through an independent session."""

    async def _fetch(member_id: str) -> FamilyMember | None:
        async with session_factory() as fresh:
            return await fresh.get(FamilyMember, member_id)

    return _fetch


@pytest.fixture
def ledger_count(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[str], Awaitable[int]]:
    """Count a member's change records through an independent session."""

    async def _count(member_id: str) -> int:
        async with session_factory() as fresh:
            return await ledger.count_by_entity(fresh, member_id)

    return _count
