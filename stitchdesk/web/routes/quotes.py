"""Quote routes.

Routes:
- POST   /api/quotes                     - Create a quote
- GET    /api/quotes                     - List quotes (admins: all, customers: own)
- GET    /api/quotes/mine                - List the caller's quotes
- GET    /api/quotes/number/{quote_no}   - Get a quote by its number
- GET    /api/quotes/{quote_id}          - Get a quote
- PUT    /api/quotes/{quote_id}          - Edit a quote
- PUT    /api/quotes/{quote_id}/pricing  - Price a pending quote (admin)
- POST   /api/quotes/{quote_id}/revision - Ask for a priced quote to be revised
- PATCH  /api/quotes/{quote_id}/status   - Reject or reopen (admin)
- POST   /api/quotes/{quote_id}/convert  - Convert a priced quote into an order
- DELETE /api/quotes/{quote_id}          - Delete a quote and its files (admin)
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from stitchdesk.attachments import FileStorage
from stitchdesk.conversion import convert_quote
from stitchdesk.models import Actor, QuoteCreate, QuotePricing, QuoteStatus, QuoteUpdate, ServiceType
from stitchdesk.quotes import (
    QuoteFilters,
    QuotePage,
    create_quote,
    delete_quote,
    get_quote,
    get_quote_by_number,
    list_my_quotes,
    list_quotes,
    request_revision,
    set_pricing,
    update_quote,
    update_quote_status,
)
from stitchdesk.symbols import SymbolResolver
from stitchdesk.web.dependencies import get_actor, get_db, get_storage, get_symbols
from stitchdesk.web.models import OrderOut, QuoteOut, QuoteStatusChange, success

router = APIRouter(prefix="/api/quotes", tags=["quotes"])


def _quote_filters(
    user_id: int | None = None,
    quote_type: ServiceType | None = None,
    status: QuoteStatus | None = None,
    exclude_status: list[QuoteStatus] = Query(default=[]),
    is_urgent: bool | None = None,
    search: str | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> QuoteFilters:
    return QuoteFilters(
        user_id=user_id,
        quote_type=quote_type,
        status=status,
        exclude_statuses=exclude_status,
        is_urgent=is_urgent,
        search=search,
        from_date=from_date,
        to_date=to_date,
        limit=limit,
        offset=offset,
    )


def _page(page: QuotePage) -> dict:
    return success(
        [QuoteOut.model_validate(q) for q in page.quotes],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create(
    payload: QuoteCreate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
):
    quote = await create_quote(db, symbols, actor, payload)
    return success(QuoteOut.model_validate(quote), "Quote created successfully")


@router.get("")
async def list_all(
    filters: QuoteFilters = Depends(_quote_filters),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
):
    return _page(await list_quotes(db, symbols, actor, filters))


@router.get("/mine")
async def list_mine(
    filters: QuoteFilters = Depends(_quote_filters),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
):
    return _page(await list_my_quotes(db, symbols, actor, filters))


@router.get("/number/{quote_no}")
async def read_by_number(
    quote_no: str,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
):
    quote = await get_quote_by_number(db, symbols, actor, quote_no)
    return success(QuoteOut.model_validate(quote))


@router.get("/{quote_id}")
async def read(
    quote_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
):
    quote = await get_quote(db, symbols, actor, quote_id)
    return success(QuoteOut.model_validate(quote))


@router.put("/{quote_id}")
async def update(
    quote_id: int,
    payload: QuoteUpdate,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
):
    quote = await update_quote(db, symbols, actor, quote_id, payload)
    return success(QuoteOut.model_validate(quote), "Quote updated successfully")


@router.put("/{quote_id}/pricing")
async def price(
    quote_id: int,
    pricing: QuotePricing,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
):
    quote = await set_pricing(db, symbols, actor, quote_id, pricing)
    return success(QuoteOut.model_validate(quote), "Quote priced successfully")


@router.post("/{quote_id}/revision")
async def revision(
    quote_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
):
    quote = await request_revision(db, symbols, actor, quote_id)
    return success(QuoteOut.model_validate(quote), "Revision requested")


@router.patch("/{quote_id}/status")
async def change_status(
    quote_id: int,
    body: QuoteStatusChange,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
):
    quote = await update_quote_status(db, symbols, actor, quote_id, body.status)
    return success(QuoteOut.model_validate(quote), "Quote status updated successfully")


@router.post("/{quote_id}/convert")
async def convert(
    quote_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
):
    quote, order = await convert_quote(db, symbols, quote_id, actor)
    return success(
        {"quote": QuoteOut.model_validate(quote), "order": OrderOut.model_validate(order)},
        "Quote converted to order successfully",
    )


@router.delete("/{quote_id}")
async def delete(
    quote_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
    storage: FileStorage = Depends(get_storage),
):
    await delete_quote(db, symbols, storage, actor, quote_id)
    return success(None, "Quote deleted successfully")
