"""Database queries for quotes."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Select, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from stitchdesk.db.models import QuoteModel
from stitchdesk.design import design_column_values
from stitchdesk.models import OwnerSummary, QuoteCreate, QuoteStatus, ServiceType, Unit
from stitchdesk.numbering import QUOTE_PREFIX, allocate_number
from stitchdesk.quotes.models import QuoteFilters, QuoteRecord
from stitchdesk.symbols import (
    QUOTE_STATUS_CATEGORIES,
    SERVICE_TYPE_CATEGORIES,
    UNIT_CATEGORIES,
    SymbolResolver,
)


async def fetch_quote(
    session: AsyncSession, quote_id: int, for_update: bool = False
) -> QuoteModel | None:
    """Load one quote; ``for_update`` takes a row lock and re-reads the row."""
    stmt = select(QuoteModel).where(QuoteModel.id == quote_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    return (await session.execute(stmt)).scalar_one_or_none()


async def fetch_quote_by_number(session: AsyncSession, quote_no: str) -> QuoteModel | None:
    stmt = select(QuoteModel).where(QuoteModel.quote_no == quote_no)
    return (await session.execute(stmt)).scalar_one_or_none()


async def insert_quote(
    session: AsyncSession, symbols: SymbolResolver, owner_id: int, payload: QuoteCreate
) -> QuoteModel:
    quote = QuoteModel(
        user_id=owner_id,
        quote_no=await allocate_number(session, QuoteModel.quote_no, QUOTE_PREFIX),
        service_type_id=symbols.resolve_member(SERVICE_TYPE_CATEGORIES, payload.quote_type),
        status_id=symbols.resolve_member(QUOTE_STATUS_CATEGORIES, QuoteStatus.PENDING),
        **design_column_values(payload, symbols),
    )
    session.add(quote)
    await session.flush()
    return quote


async def compare_and_set_status(
    session: AsyncSession,
    quote_id: int,
    expected_status_id: int,
    new_status_id: int,
    **values: Any,
) -> bool:
    """Write the new status (plus ``values``) only if the row still holds the expected one."""
    stmt = (
        update(QuoteModel)
        .where(QuoteModel.id == quote_id, QuoteModel.status_id == expected_status_id)
        .values(status_id=new_status_id, updated_at=datetime.now(timezone.utc), **values)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount == 1


def _apply_filters(stmt: Select, symbols: SymbolResolver, filters: QuoteFilters) -> Select:
    if filters.user_id is not None:
        stmt = stmt.where(QuoteModel.user_id == filters.user_id)
    if filters.quote_type is not None:
        stmt = stmt.where(
            QuoteModel.service_type_id.in_(
                symbols.resolve_all(SERVICE_TYPE_CATEGORIES, filters.quote_type)
            )
        )
    if filters.status is not None:
        stmt = stmt.where(
            QuoteModel.status_id.in_(symbols.resolve_all(QUOTE_STATUS_CATEGORIES, filters.status))
        )
    if filters.exclude_statuses:
        excluded = [
            status_id
            for s in filters.exclude_statuses
            for status_id in symbols.resolve_all(QUOTE_STATUS_CATEGORIES, s)
        ]
        stmt = stmt.where(QuoteModel.status_id.not_in(excluded))
    if filters.is_urgent is not None:
        stmt = stmt.where(QuoteModel.is_urgent.is_(filters.is_urgent))
    if filters.search:
        term = f"%{filters.search.strip()}%"
        stmt = stmt.where(or_(QuoteModel.quote_no.ilike(term), QuoteModel.design_name.ilike(term)))
    if filters.from_date is not None:
        stmt = stmt.where(QuoteModel.created_at >= filters.from_date)
    if filters.to_date is not None:
        stmt = stmt.where(QuoteModel.created_at <= filters.to_date)
    return stmt


async def find_quotes(
    session: AsyncSession, symbols: SymbolResolver, filters: QuoteFilters
) -> list[QuoteModel]:
    stmt = _apply_filters(select(QuoteModel), symbols, filters)
    stmt = (
        stmt.order_by(QuoteModel.created_at.desc(), QuoteModel.id.desc())
        .limit(filters.limit)
        .offset(filters.offset)
    )
    return list((await session.execute(stmt)).scalars().all())


async def count_quotes(
    session: AsyncSession, symbols: SymbolResolver, filters: QuoteFilters
) -> int:
    stmt = _apply_filters(select(func.count(QuoteModel.id)), symbols, filters)
    return int(await session.scalar(stmt) or 0)


def to_quote_record(
    symbols: SymbolResolver, model: QuoteModel, owner: OwnerSummary | None = None
) -> QuoteRecord:
    return QuoteRecord(
        id=model.id,
        quote_no=model.quote_no,
        user_id=model.user_id,
        quote_type=symbols.reverse_member(
            model.service_type_id, ServiceType, SERVICE_TYPE_CATEGORIES
        ),
        status=symbols.reverse_member(model.status_id, QuoteStatus, QUOTE_STATUS_CATEGORIES),
        design_name=model.design_name,
        height=model.height,
        width=model.width,
        unit=(
            symbols.reverse_member(model.unit_id, Unit, UNIT_CATEGORIES)
            if model.unit_id is not None
            else None
        ),
        number_of_colors=model.number_of_colors,
        fabric=model.fabric,
        color_type=model.color_type,
        placement=model.placement,
        required_format=model.required_format,
        instruction=model.instruction,
        is_urgent=bool(model.is_urgent),
        price=model.price,
        currency=model.currency,
        remarks=model.remarks,
        priced_at=model.priced_at,
        converted_order_id=model.converted_order_id,
        created_at=model.created_at,
        updated_at=model.updated_at,
        user=owner,
    )
