"""Order state machine and guarded order operations.

States: PENDING -> IN_PROGRESS | CANCELLED, IN_PROGRESS -> COMPLETED | CANCELLED.
COMPLETED and CANCELLED are terminal, for admins too. Orders are created
IN_PROGRESS; PENDING exists for rows imported from older data.

Status changes lock the order row and write with a compare-and-set on the
status that was read, so a concurrent change surfaces as an error instead of
being overwritten.
"""

from __future__ import annotations

from dataclasses import replace

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stitchdesk.attachments.registry import OrderRef, remove_all_for
from stitchdesk.attachments.storage import FileStorage
from stitchdesk.auth import (
    can_change_status,
    ensure_can_change_status,
    ensure_can_mutate,
    ensure_can_view,
)
from stitchdesk.core.logging import get_logger
from stitchdesk.db.users import load_owners
from stitchdesk.db.models import OrderModel, QuoteModel
from stitchdesk.design import (
    apply_design_changes,
    collect_changes,
    needs_type_validation,
    validate_design_fields,
    validate_merged,
)
from stitchdesk.errors import Forbidden, InvalidOperation, InvalidTransition, NotFound
from stitchdesk.models import Actor, OrderCreate, OrderStatus, OrderUpdate, ServiceType
from stitchdesk.orders.models import OrderFilters, OrderPage, OrderRecord
from stitchdesk.orders.repository import (
    compare_and_set_status,
    count_orders as _count_orders,
    fetch_order,
    fetch_order_by_number,
    find_orders,
    insert_order,
    to_order_record,
)
from stitchdesk.symbols import ORDER_STATUS_CATEGORIES, SERVICE_TYPE_CATEGORIES, SymbolResolver

logger = get_logger(__name__)

INITIAL_ORDER_STATUS = OrderStatus.IN_PROGRESS

TERMINAL_ORDER_STATES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.IN_PROGRESS, OrderStatus.CANCELLED}),
    OrderStatus.IN_PROGRESS: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def validate_order_transition(current: OrderStatus, requested: OrderStatus) -> None:
    """Raises InvalidTransition unless ``current -> requested`` is in the table."""
    if requested not in ORDER_TRANSITIONS[current]:
        raise InvalidTransition(current.value, requested.value)


def _status_of(symbols: SymbolResolver, model: OrderModel) -> OrderStatus:
    return symbols.reverse_member(model.status_id, OrderStatus, ORDER_STATUS_CATEGORIES)


def _kind_of(symbols: SymbolResolver, model: OrderModel) -> ServiceType:
    return symbols.reverse_member(model.service_type_id, ServiceType, SERVICE_TYPE_CATEGORIES)


async def _load(session: AsyncSession, order_id: int, for_update: bool = False) -> OrderModel:
    order = await fetch_order(session, order_id, for_update=for_update)
    if order is None:
        raise NotFound("Order not found")
    return order


async def _to_record(
    session: AsyncSession, symbols: SymbolResolver, model: OrderModel
) -> OrderRecord:
    owners = await load_owners(session, [model.user_id])
    return to_order_record(symbols, model, owners.get(model.user_id))


async def _write_status(
    session: AsyncSession,
    symbols: SymbolResolver,
    order: OrderModel,
    current: OrderStatus,
    requested: OrderStatus,
) -> None:
    if _status_of(symbols, order) is not current:
        raise InvalidOperation("Order status was changed by another request; reload and retry")
    expected_id = order.status_id
    new_id = symbols.resolve_member(ORDER_STATUS_CATEGORIES, requested)
    if not await compare_and_set_status(session, order.id, expected_id, new_id):
        raise InvalidOperation("Order status was changed by another request; reload and retry")
    await session.refresh(order)


# ============================================================================
# Create / read
# ============================================================================


async def create_order(
    session: AsyncSession,
    symbols: SymbolResolver,
    actor: Actor,
    payload: OrderCreate,
) -> OrderRecord:
    """Create an order owned by ``actor``, starting IN_PROGRESS.

    Raises:
        ValidationError: If a type-specific required field is missing
    """
    validate_design_fields(
        payload.order_type, payload.number_of_colors, payload.fabric, payload.color_type
    )

    order = await insert_order(session, symbols, actor.user_id, payload, INITIAL_ORDER_STATUS)
    await session.refresh(order)

    logger.info(
        "order_created",
        order_id=order.id,
        order_no=order.order_no,
        user_id=actor.user_id,
        order_type=payload.order_type.value,
    )
    return await _to_record(session, symbols, order)


async def get_order(
    session: AsyncSession, symbols: SymbolResolver, actor: Actor, order_id: int
) -> OrderRecord:
    order = await _load(session, order_id)
    ensure_can_view(actor, order.user_id, "order")
    return await _to_record(session, symbols, order)


async def get_order_by_number(
    session: AsyncSession, symbols: SymbolResolver, actor: Actor, order_no: str
) -> OrderRecord:
    order = await fetch_order_by_number(session, order_no)
    if order is None:
        raise NotFound("Order not found")
    ensure_can_view(actor, order.user_id, "order")
    return await _to_record(session, symbols, order)


def _scope(actor: Actor, filters: OrderFilters | None) -> OrderFilters:
    filters = filters or OrderFilters()
    if not actor.is_admin:
        filters = replace(filters, user_id=actor.user_id)
    return filters


async def list_orders(
    session: AsyncSession,
    symbols: SymbolResolver,
    actor: Actor,
    filters: OrderFilters | None = None,
) -> OrderPage:
    """Newest first. Non-admins only ever see their own orders."""
    filters = _scope(actor, filters)
    rows = await find_orders(session, symbols, filters)
    total = await _count_orders(session, symbols, filters)
    owners = await load_owners(session, (row.user_id for row in rows))

    return OrderPage(
        orders=[to_order_record(symbols, row, owners.get(row.user_id)) for row in rows],
        total=total,
        limit=filters.limit,
        offset=filters.offset,
    )


async def list_my_orders(
    session: AsyncSession,
    symbols: SymbolResolver,
    actor: Actor,
    filters: OrderFilters | None = None,
) -> OrderPage:
    filters = replace(filters or OrderFilters(), user_id=actor.user_id)
    return await list_orders(session, symbols, actor, filters)


async def count_orders(
    session: AsyncSession,
    symbols: SymbolResolver,
    actor: Actor,
    filters: OrderFilters | None = None,
) -> int:
    return await _count_orders(session, symbols, _scope(actor, filters))


# ============================================================================
# Mutations
# ============================================================================


async def update_order(
    session: AsyncSession,
    symbols: SymbolResolver,
    actor: Actor,
    order_id: int,
    payload: OrderUpdate,
) -> OrderRecord:
    """Edit design fields; admins may also move the status along the table.

    Raises:
        NotFound: If the order does not exist
        Forbidden: If the actor may not edit the order, or a non-admin sends a status
        ValidationError: If the merged fields break the type-specific rule
        InvalidTransition: If an admin requests a status the table does not allow
    """
    changes = collect_changes(payload)
    requested_status: OrderStatus | None = changes.pop("status", None)

    if requested_status is not None and not can_change_status(actor):
        logger.warning("order_status_change_denied", order_id=order_id, user_id=actor.user_id)
        raise Forbidden("Only admins can change order status")

    order = await _load(session, order_id, for_update=True)
    current = _status_of(symbols, order)
    ensure_can_mutate(actor, order.user_id, current, "order")

    if needs_type_validation(changes, "order_type"):
        validate_merged(order, changes, _kind_of(symbols, order), "order_type", "order")

    if "order_type" in changes:
        order.service_type_id = symbols.resolve_member(
            SERVICE_TYPE_CATEGORIES, changes["order_type"]
        )
    touched = apply_design_changes(order, changes, symbols)
    await session.flush()

    if requested_status is not None and requested_status is not current:
        validate_order_transition(current, requested_status)
        await _write_status(session, symbols, order, current, requested_status)
        logger.info(
            "order_status_changed",
            order_id=order.id,
            from_status=current.value,
            to_status=requested_status.value,
            user_id=actor.user_id,
        )
    else:
        await session.refresh(order)

    logger.info("order_updated", order_id=order.id, fields=touched, user_id=actor.user_id)
    return await _to_record(session, symbols, order)


async def update_order_status(
    session: AsyncSession,
    symbols: SymbolResolver,
    actor: Actor,
    order_id: int,
    status: OrderStatus,
) -> OrderRecord:
    """Admin-only explicit status change.

    Raises:
        Forbidden: If the actor is not an admin
        NotFound: If the order does not exist
        InvalidTransition: If the move is not in the transition table
    """
    ensure_can_change_status(actor, "order")

    order = await _load(session, order_id, for_update=True)
    current = _status_of(symbols, order)
    validate_order_transition(current, status)
    await _write_status(session, symbols, order, current, status)

    logger.info(
        "order_status_changed",
        order_id=order.id,
        from_status=current.value,
        to_status=status.value,
        user_id=actor.user_id,
    )
    return await _to_record(session, symbols, order)


async def cancel_order(
    session: AsyncSession, symbols: SymbolResolver, actor: Actor, order_id: int
) -> OrderRecord:
    """Owner or admin cancels a non-terminal order.

    Raises:
        Forbidden: If the actor neither owns the order nor is an admin
        InvalidTransition: If the order is already COMPLETED or CANCELLED
    """
    order = await _load(session, order_id, for_update=True)
    ensure_can_view(actor, order.user_id, "order")

    current = _status_of(symbols, order)
    if current in TERMINAL_ORDER_STATES:
        raise InvalidTransition(
            current.value,
            OrderStatus.CANCELLED.value,
            f"Cannot cancel an order that is already {current.value}",
        )
    await _write_status(session, symbols, order, current, OrderStatus.CANCELLED)

    logger.info("order_cancelled", order_id=order.id, from_status=current.value, user_id=actor.user_id)
    return await _to_record(session, symbols, order)


async def delete_order(
    session: AsyncSession,
    symbols: SymbolResolver,
    storage: FileStorage,
    actor: Actor,
    order_id: int,
) -> None:
    """Admin-only delete; the order's attachments go with it.

    Raises:
        Forbidden: If the actor is not an admin
        NotFound: If the order does not exist
        InvalidOperation: If a converted quote points at the order
    """
    if not actor.is_admin:
        raise Forbidden("Only admins can delete orders")

    order = await _load(session, order_id, for_update=True)

    source_quote = await session.scalar(
        select(QuoteModel.id).where(QuoteModel.converted_order_id == order.id)
    )
    if source_quote is not None:
        raise InvalidOperation("Cannot delete an order created from a quote")

    removed = await remove_all_for(session, symbols, storage, OrderRef(order.id))
    await session.delete(order)
    await session.flush()

    logger.info(
        "order_deleted",
        order_id=order_id,
        order_no=order.order_no,
        attachments_removed=removed,
        user_id=actor.user_id,
    )
