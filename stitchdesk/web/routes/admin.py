"""Admin routes.

Routes:
- GET /api/admin/stats  - User totals and order/quote counts per status
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from stitchdesk.models import Actor
from stitchdesk.stats import collect_stats
from stitchdesk.symbols import SymbolResolver
from stitchdesk.web.dependencies import get_actor, get_db, get_symbols
from stitchdesk.web.models import success

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/stats")
async def portal_stats(
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
    actor: Actor = Depends(get_actor),
):
    stats = await collect_stats(db, symbols, actor)
    return success(stats.to_dict())
