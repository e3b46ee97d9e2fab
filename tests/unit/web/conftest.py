"""Fixtures for route tests.

Routes run against the real application with the database, symbol table and
file storage dependencies pointed at the per-test fixtures. The lifespan hook
is not triggered, so startup validation stays out of the way.
"""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from stitchdesk.web.app import app
from stitchdesk.web.dependencies import get_db, get_storage, get_symbols

_ORDER_BODY = {
    "order_type": "DIGITIZING",
    "design_name": "Team Crest",
    "height": "3.5",
    "width": "4",
    "unit": "inch",
    "number_of_colors": 5,
    "fabric": "Pique",
    "placement": ["Left Chest"],
    "required_format": ["DST", "PES"],
}

_QUOTE_BODY = {
    "quote_type": "VECTOR",
    "design_name": "Club Badge",
    "unit": "cm",
    "color_type": "Spot",
    "required_format": ["AI"],
}


def headers_for(user_id: int, role: str = "CUSTOMER") -> dict[str, str]:
    return {"X-User-Id": str(user_id), "X-User-Role": role}


@pytest_asyncio.fixture()
async def client(session_factory, symbols, users, storage):
    async def _db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_symbols] = lambda: symbols
    app.dependency_overrides[get_storage] = lambda: storage
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def order_body() -> dict:
    return dict(_ORDER_BODY)


@pytest.fixture
def quote_body() -> dict:
    return dict(_QUOTE_BODY)


@pytest.fixture
def admin_headers(users) -> dict[str, str]:
    return headers_for(users["admin"], "ADMIN")


@pytest.fixture
def alice_headers(users) -> dict[str, str]:
    return headers_for(users["alice"])


@pytest.fixture
def bob_headers(users) -> dict[str, str]:
    return headers_for(users["bob"])
