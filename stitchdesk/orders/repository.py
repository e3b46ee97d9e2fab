"""Database queries for orders."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Select, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from stitchdesk.db.models import OrderModel
from stitchdesk.design import design_column_values
from stitchdesk.models import OrderCreate, OrderStatus, OwnerSummary, ServiceType, Unit
from stitchdesk.numbering import ORDER_PREFIX, allocate_number
from stitchdesk.orders.models import OrderFilters, OrderRecord
from stitchdesk.symbols import (
    ORDER_STATUS_CATEGORIES,
    SERVICE_TYPE_CATEGORIES,
    UNIT_CATEGORIES,
    SymbolResolver,
)


async def fetch_order(
    session: AsyncSession, order_id: int, for_update: bool = False
) -> OrderModel | None:
    """Load one order; ``for_update`` takes a row lock and re-reads the row."""
    stmt = select(OrderModel).where(OrderModel.id == order_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    return (await session.execute(stmt)).scalar_one_or_none()


async def fetch_order_by_number(session: AsyncSession, order_no: str) -> OrderModel | None:
    stmt = select(OrderModel).where(OrderModel.order_no == order_no)
    return (await session.execute(stmt)).scalar_one_or_none()


async def insert_order(
    session: AsyncSession,
    symbols: SymbolResolver,
    owner_id: int,
    payload: OrderCreate,
    status: OrderStatus = OrderStatus.IN_PROGRESS,
) -> OrderModel:
    """Insert an order row and flush it so the id is available."""
    order = OrderModel(
        user_id=owner_id,
        order_no=await allocate_number(session, OrderModel.order_no, ORDER_PREFIX),
        service_type_id=symbols.resolve_member(SERVICE_TYPE_CATEGORIES, payload.order_type),
        status_id=symbols.resolve_member(ORDER_STATUS_CATEGORIES, status),
        **design_column_values(payload, symbols),
    )
    session.add(order)
    await session.flush()
    return order


async def compare_and_set_status(
    session: AsyncSession,
    order_id: int,
    expected_status_id: int,
    new_status_id: int,
) -> bool:
    """Write ``new_status_id`` only if the row still holds ``expected_status_id``."""
    stmt = (
        update(OrderModel)
        .where(OrderModel.id == order_id, OrderModel.status_id == expected_status_id)
        .values(status_id=new_status_id, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount == 1


def _apply_filters(stmt: Select, symbols: SymbolResolver, filters: OrderFilters) -> Select:
    if filters.user_id is not None:
        stmt = stmt.where(OrderModel.user_id == filters.user_id)
    if filters.order_type is not None:
        stmt = stmt.where(
            OrderModel.service_type_id.in_(
                symbols.resolve_all(SERVICE_TYPE_CATEGORIES, filters.order_type)
            )
        )
    if filters.status is not None:
        stmt = stmt.where(
            OrderModel.status_id.in_(symbols.resolve_all(ORDER_STATUS_CATEGORIES, filters.status))
        )
    if filters.exclude_statuses:
        excluded = [
            status_id
            for s in filters.exclude_statuses
            for status_id in symbols.resolve_all(ORDER_STATUS_CATEGORIES, s)
        ]
        stmt = stmt.where(OrderModel.status_id.not_in(excluded))
    if filters.is_urgent is not None:
        stmt = stmt.where(OrderModel.is_urgent.is_(filters.is_urgent))
    if filters.search:
        term = f"%{filters.search.strip()}%"
        stmt = stmt.where(or_(OrderModel.order_no.ilike(term), OrderModel.design_name.ilike(term)))
    if filters.from_date is not None:
        stmt = stmt.where(OrderModel.created_at >= filters.from_date)
    if filters.to_date is not None:
        stmt = stmt.where(OrderModel.created_at <= filters.to_date)
    return stmt


async def find_orders(
    session: AsyncSession, symbols: SymbolResolver, filters: OrderFilters
) -> list[OrderModel]:
    stmt = _apply_filters(select(OrderModel), symbols, filters)
    stmt = (
        stmt.order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
        .limit(filters.limit)
        .offset(filters.offset)
    )
    return list((await session.execute(stmt)).scalars().all())


async def count_orders(
    session: AsyncSession, symbols: SymbolResolver, filters: OrderFilters
) -> int:
    stmt = _apply_filters(select(func.count(OrderModel.id)), symbols, filters)
    return int(await session.scalar(stmt) or 0)


def to_order_record(
    symbols: SymbolResolver, model: OrderModel, owner: OwnerSummary | None = None
) -> OrderRecord:
    return OrderRecord(
        id=model.id,
        order_no=model.order_no,
        user_id=model.user_id,
        order_type=symbols.reverse_member(
            model.service_type_id, ServiceType, SERVICE_TYPE_CATEGORIES
        ),
        status=symbols.reverse_member(model.status_id, OrderStatus, ORDER_STATUS_CATEGORIES),
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
        created_at=model.created_at,
        updated_at=model.updated_at,
        user=owner,
    )
