"""Shared dependencies for StitchDesk web routes.

Dependencies are injected using FastAPI's Depends() system. One request is
one unit of work: ``get_db`` commits when the handler returns and rolls back
when it raises.

Usage:
    from fastapi import Depends
    from stitchdesk.web.dependencies import get_actor, get_db, get_symbols

    @router.get("/orders/{order_id}")
    async def read_order(
        order_id: int,
        actor: Actor = Depends(get_actor),
        db: AsyncSession = Depends(get_db),
        symbols: SymbolResolver = Depends(get_symbols),
    ):
        ...
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from stitchdesk.attachments import FileStorage, LocalFileStorage
from stitchdesk.auth import parse_role
from stitchdesk.config import get_config
from stitchdesk.db.connection import get_session
from stitchdesk.models import Actor
from stitchdesk.symbols import SymbolCache, SymbolResolver

# Global singletons
_symbol_cache: SymbolCache | None = None
_storage: FileStorage | None = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Database session for the request, committed on success."""
    async with get_session() as session:
        yield session


def get_symbol_cache() -> SymbolCache:
    global _symbol_cache
    if _symbol_cache is None:
        _symbol_cache = SymbolCache(ttl_minutes=get_config().symbol_cache_ttl_minutes)
    return _symbol_cache


async def get_symbols(db: AsyncSession = Depends(get_db)) -> SymbolResolver:
    """Current symbol table snapshot, reloaded once its TTL runs out."""
    return await get_symbol_cache().get(db)


def get_storage() -> FileStorage:
    global _storage
    if _storage is None:
        _storage = LocalFileStorage(get_config().upload.upload_dir)
    return _storage


def get_actor(
    x_user_id: int | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Actor:
    """Caller identity as forwarded by the authenticating gateway.

    Raises:
        HTTPException: 401 when either header is missing
        Forbidden: When the role is not a known role
    """
    if x_user_id is None or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return Actor(user_id=x_user_id, role=parse_role(x_user_role))
