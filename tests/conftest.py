"""Pytest configuration and fixtures for StitchDesk tests.

Database tests run against a file-backed SQLite database per test so that
several sessions can share it (the conversion race tests need two).
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from stitchdesk.attachments import LocalFileStorage
from stitchdesk.config import reset_config
from stitchdesk.db.models import Base
from stitchdesk.db.seed import seed_symbols
from stitchdesk.db.users import create_user
from stitchdesk.models import Actor, OrderCreate, QuoteCreate, Role, ServiceType, Unit
from stitchdesk.symbols import SymbolResolver, load_resolver


@pytest.fixture(autouse=True)
def app_env(monkeypatch, tmp_path: Path):
    """Minimal environment so ``get_config()`` works in every test."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'config.db'}")
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.delenv("DEFAULT_CURRENCY", raising=False)
    monkeypatch.delenv("MAX_UPLOAD_BYTES", raising=False)
    monkeypatch.delenv("ALLOWED_MIME_TYPES", raising=False)
    reset_config()
    yield
    reset_config()


@pytest_asyncio.fixture()
async def engine(tmp_path: Path) -> AsyncEngine:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'stitchdesk.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def symbols(session_factory) -> SymbolResolver:
    """Seeded and committed symbol table."""
    async with session_factory() as session:
        await seed_symbols(session)
        await session.commit()
        return await load_resolver(session)


@pytest_asyncio.fixture()
async def users(session_factory) -> dict[str, int]:
    """One admin and two customers, committed."""
    async with session_factory() as session:
        admin = await create_user(session, "admin@stitchdesk.test", "Ada Admin", Role.ADMIN)
        alice = await create_user(
            session, "alice@example.com", "Alice", Role.CUSTOMER, company="Alice Apparel"
        )
        bob = await create_user(session, "bob@example.com", "Bob", Role.CUSTOMER)
        await session.commit()
        return {"admin": admin.id, "alice": alice.id, "bob": bob.id}


@pytest_asyncio.fixture()
async def db_session(session_factory, symbols, users) -> AsyncSession:
    session = session_factory()
    try:
        yield session
    finally:
        await session.close()


@pytest.fixture
def admin(users) -> Actor:
    return Actor(user_id=users["admin"], role=Role.ADMIN)


@pytest.fixture
def alice(users) -> Actor:
    return Actor(user_id=users["alice"], role=Role.CUSTOMER)


@pytest.fixture
def bob(users) -> Actor:
    return Actor(user_id=users["bob"], role=Role.CUSTOMER)


@pytest.fixture
def storage(tmp_path: Path) -> LocalFileStorage:
    return LocalFileStorage(tmp_path / "uploads")


@pytest.fixture
def order_payload() -> OrderCreate:
    return OrderCreate(
        order_type=ServiceType.DIGITIZING,
        design_name="Team Crest",
        height=Decimal("3.50"),
        width=Decimal("4.00"),
        unit=Unit.INCH,
        number_of_colors=5,
        fabric="Pique",
        placement=["Left Chest"],
        required_format=["DST", "PES"],
        instruction="Keep the lettering crisp",
    )


@pytest.fixture
def quote_payload() -> QuoteCreate:
    return QuoteCreate(
        quote_type=ServiceType.DIGITIZING,
        design_name="Club Badge",
        height=Decimal("2.00"),
        width=Decimal("2.00"),
        unit=Unit.CM,
        number_of_colors=3,
        fabric="Twill",
        placement=["Cap Front"],
        required_format=["DST"],
    )
