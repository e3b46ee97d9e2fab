"""Lookup routes: symbol values for populating client-side choices.

Routes:
- GET /api/lookups             - Every active category with its values
- GET /api/lookups/{category}  - Values of one category
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from stitchdesk.errors import NotFound
from stitchdesk.symbols import SymbolEntry, SymbolResolver
from stitchdesk.web.dependencies import get_symbols
from stitchdesk.web.models import success

router = APIRouter(prefix="/api/lookups", tags=["lookups"])


def _entry(entry: SymbolEntry) -> dict:
    return {
        "id": entry.id,
        "value": entry.symbol,
        "label": entry.label,
        "display_order": entry.display_order,
    }


@router.get("")
async def all_lookups(symbols: SymbolResolver = Depends(get_symbols)):
    return success(
        {category: [_entry(e) for e in symbols.values(category)] for category in symbols.categories()}
    )


@router.get("/{category}")
async def category_lookups(category: str, symbols: SymbolResolver = Depends(get_symbols)):
    values = symbols.values(category)
    if not values:
        raise NotFound(f"Lookup category not found: {category}")
    return success([_entry(e) for e in values])
