"""Quote state machine, pricing and guarded quote operations.

    PENDING --set_pricing--> PRICED --convert--> CONVERTED
       ^                       |
       |                request_revision
       |                       v
       +------ reopen --- REVISION_REQUESTED

Any non-terminal quote except a converted one can be REJECTED by an admin.
CONVERTED and REJECTED are terminal. PRICED is only reached through
``set_pricing`` and CONVERTED only through ``stitchdesk.conversion``.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from stitchdesk.attachments.registry import QuoteRef, remove_all_for
from stitchdesk.attachments.storage import FileStorage
from stitchdesk.auth import ensure_can_change_status, ensure_can_mutate, ensure_can_view
from stitchdesk.config import get_config
from stitchdesk.core.logging import get_logger
from stitchdesk.db.models import QuoteModel
from stitchdesk.db.users import load_owners
from stitchdesk.design import (
    apply_design_changes,
    collect_changes,
    needs_type_validation,
    validate_design_fields,
    validate_merged,
)
from stitchdesk.errors import Forbidden, InvalidOperation, InvalidTransition, NotFound
from stitchdesk.models import Actor, QuoteCreate, QuotePricing, QuoteStatus, QuoteUpdate, ServiceType
from stitchdesk.quotes.models import QuoteFilters, QuotePage, QuoteRecord
from stitchdesk.quotes.repository import (
    compare_and_set_status,
    count_quotes as _count_quotes,
    fetch_quote,
    fetch_quote_by_number,
    find_quotes,
    insert_quote,
    to_quote_record,
)
from stitchdesk.symbols import QUOTE_STATUS_CATEGORIES, SERVICE_TYPE_CATEGORIES, SymbolResolver

logger = get_logger(__name__)

TERMINAL_QUOTE_STATES = frozenset({QuoteStatus.CONVERTED, QuoteStatus.REJECTED})

# Moves available through the admin status action
QUOTE_TRANSITIONS: dict[QuoteStatus, frozenset[QuoteStatus]] = {
    QuoteStatus.PENDING: frozenset({QuoteStatus.REJECTED}),
    QuoteStatus.PRICED: frozenset({QuoteStatus.REJECTED}),
    QuoteStatus.REVISION_REQUESTED: frozenset({QuoteStatus.PENDING, QuoteStatus.REJECTED}),
    QuoteStatus.CONVERTED: frozenset(),
    QuoteStatus.REJECTED: frozenset(),
}


def validate_quote_transition(current: QuoteStatus, requested: QuoteStatus) -> None:
    if requested not in QUOTE_TRANSITIONS[current]:
        raise InvalidTransition(current.value, requested.value)


def quote_status_of(symbols: SymbolResolver, model: QuoteModel) -> QuoteStatus:
    return symbols.reverse_member(model.status_id, QuoteStatus, QUOTE_STATUS_CATEGORIES)


def _kind_of(symbols: SymbolResolver, model: QuoteModel) -> ServiceType:
    return symbols.reverse_member(model.service_type_id, ServiceType, SERVICE_TYPE_CATEGORIES)


async def load_quote(session: AsyncSession, quote_id: int, for_update: bool = False) -> QuoteModel:
    quote = await fetch_quote(session, quote_id, for_update=for_update)
    if quote is None:
        raise NotFound("Quote not found")
    return quote


async def quote_record(
    session: AsyncSession, symbols: SymbolResolver, model: QuoteModel
) -> QuoteRecord:
    owners = await load_owners(session, [model.user_id])
    return to_quote_record(symbols, model, owners.get(model.user_id))


async def write_quote_status(
    session: AsyncSession,
    symbols: SymbolResolver,
    quote: QuoteModel,
    current: QuoteStatus,
    requested: QuoteStatus,
    **values,
) -> None:
    """Compare-and-set the status, then reload ``quote``.

    Raises:
        InvalidOperation: If the row no longer holds the status id read under the lock
    """
    if quote_status_of(symbols, quote) is not current:
        raise InvalidOperation("Quote status was changed by another request; reload and retry")
    expected_id = quote.status_id
    new_id = symbols.resolve_member(QUOTE_STATUS_CATEGORIES, requested)
    if not await compare_and_set_status(session, quote.id, expected_id, new_id, **values):
        raise InvalidOperation("Quote status was changed by another request; reload and retry")
    await session.refresh(quote)


# ============================================================================
# Create / read
# ============================================================================


async def create_quote(
    session: AsyncSession,
    symbols: SymbolResolver,
    actor: Actor,
    payload: QuoteCreate,
) -> QuoteRecord:
    """Create a PENDING quote owned by ``actor``.

    Raises:
        ValidationError: If a type-specific required field is missing
    """
    validate_design_fields(
        payload.quote_type,
        payload.number_of_colors,
        payload.fabric,
        payload.color_type,
        noun="quote",
    )

    quote = await insert_quote(session, symbols, actor.user_id, payload)
    await session.refresh(quote)

    logger.info(
        "quote_created",
        quote_id=quote.id,
        quote_no=quote.quote_no,
        user_id=actor.user_id,
        quote_type=payload.quote_type.value,
    )
    return await quote_record(session, symbols, quote)


async def get_quote(
    session: AsyncSession, symbols: SymbolResolver, actor: Actor, quote_id: int
) -> QuoteRecord:
    quote = await load_quote(session, quote_id)
    ensure_can_view(actor, quote.user_id, "quote")
    return await quote_record(session, symbols, quote)


async def get_quote_by_number(
    session: AsyncSession, symbols: SymbolResolver, actor: Actor, quote_no: str
) -> QuoteRecord:
    quote = await fetch_quote_by_number(session, quote_no)
    if quote is None:
        raise NotFound("Quote not found")
    ensure_can_view(actor, quote.user_id, "quote")
    return await quote_record(session, symbols, quote)


def _scope(actor: Actor, filters: QuoteFilters | None) -> QuoteFilters:
    filters = filters or QuoteFilters()
    if not actor.is_admin:
        filters = replace(filters, user_id=actor.user_id)
    return filters


async def list_quotes(
    session: AsyncSession,
    symbols: SymbolResolver,
    actor: Actor,
    filters: QuoteFilters | None = None,
) -> QuotePage:
    """Newest first. Non-admins only ever see their own quotes."""
    filters = _scope(actor, filters)
    rows = await find_quotes(session, symbols, filters)
    total = await _count_quotes(session, symbols, filters)
    owners = await load_owners(session, (row.user_id for row in rows))

    return QuotePage(
        quotes=[to_quote_record(symbols, row, owners.get(row.user_id)) for row in rows],
        total=total,
        limit=filters.limit,
        offset=filters.offset,
    )


async def list_my_quotes(
    session: AsyncSession,
    symbols: SymbolResolver,
    actor: Actor,
    filters: QuoteFilters | None = None,
) -> QuotePage:
    filters = replace(filters or QuoteFilters(), user_id=actor.user_id)
    return await list_quotes(session, symbols, actor, filters)


async def count_quotes(
    session: AsyncSession,
    symbols: SymbolResolver,
    actor: Actor,
    filters: QuoteFilters | None = None,
) -> int:
    return await _count_quotes(session, symbols, _scope(actor, filters))


# ============================================================================
# Mutations
# ============================================================================


async def update_quote(
    session: AsyncSession,
    symbols: SymbolResolver,
    actor: Actor,
    quote_id: int,
    payload: QuoteUpdate,
) -> QuoteRecord:
    """Edit design fields.

    Customers may edit their own quotes while PENDING. Admins may edit any
    quote that is not CONVERTED or REJECTED.

    Raises:
        NotFound: If the quote does not exist
        Forbidden: If the actor may not edit the quote
        InvalidOperation: If an admin edits a terminal quote
        ValidationError: If the merged fields break the type-specific rule
    """
    changes = collect_changes(payload)

    quote = await load_quote(session, quote_id, for_update=True)
    current = quote_status_of(symbols, quote)
    ensure_can_mutate(actor, quote.user_id, current, "quote")
    if current in TERMINAL_QUOTE_STATES:
        raise InvalidOperation(f"Cannot edit a {current.value} quote")

    if needs_type_validation(changes, "quote_type"):
        validate_merged(quote, changes, _kind_of(symbols, quote), "quote_type", "quote")

    if "quote_type" in changes:
        quote.service_type_id = symbols.resolve_member(
            SERVICE_TYPE_CATEGORIES, changes["quote_type"]
        )
    touched = apply_design_changes(quote, changes, symbols)
    await session.flush()
    await session.refresh(quote)

    logger.info("quote_updated", quote_id=quote.id, fields=touched, user_id=actor.user_id)
    return await quote_record(session, symbols, quote)


async def set_pricing(
    session: AsyncSession,
    symbols: SymbolResolver,
    actor: Actor,
    quote_id: int,
    pricing: QuotePricing,
    default_currency: str | None = None,
) -> QuoteRecord:
    """Admin prices a PENDING quote, moving it to PRICED.

    Re-pricing is refused so a price the customer may already be looking at
    is never silently replaced; reopen the quote through a revision instead.

    Raises:
        Forbidden: If the actor is not an admin
        NotFound: If the quote does not exist
        InvalidOperation: If the quote is not PENDING
    """
    if not actor.is_admin:
        raise Forbidden("Only admins can price quotes")

    quote = await load_quote(session, quote_id, for_update=True)
    current = quote_status_of(symbols, quote)
    if current is not QuoteStatus.PENDING:
        raise InvalidOperation(f"Can only price pending quotes (quote is {current.value})")

    currency = pricing.currency or default_currency or get_config().pricing.default_currency
    await write_quote_status(
        session,
        symbols,
        quote,
        current,
        QuoteStatus.PRICED,
        price=pricing.price,
        currency=currency,
        remarks=pricing.remarks,
        priced_at=datetime.now(timezone.utc),
    )

    logger.info(
        "quote_priced",
        quote_id=quote.id,
        price=str(pricing.price),
        currency=currency,
        user_id=actor.user_id,
    )
    return await quote_record(session, symbols, quote)


async def request_revision(
    session: AsyncSession, symbols: SymbolResolver, actor: Actor, quote_id: int
) -> QuoteRecord:
    """Owner or admin asks for a priced quote to be reworked.

    Raises:
        Forbidden: If the actor neither owns the quote nor is an admin
        InvalidTransition: If the quote is not PRICED
    """
    quote = await load_quote(session, quote_id, for_update=True)
    ensure_can_view(actor, quote.user_id, "quote")

    current = quote_status_of(symbols, quote)
    if current is not QuoteStatus.PRICED:
        raise InvalidTransition(
            current.value,
            QuoteStatus.REVISION_REQUESTED.value,
            "Can only request a revision of a priced quote",
        )
    await write_quote_status(session, symbols, quote, current, QuoteStatus.REVISION_REQUESTED)

    logger.info("quote_revision_requested", quote_id=quote.id, user_id=actor.user_id)
    return await quote_record(session, symbols, quote)


async def update_quote_status(
    session: AsyncSession,
    symbols: SymbolResolver,
    actor: Actor,
    quote_id: int,
    status: QuoteStatus,
) -> QuoteRecord:
    """Admin-only explicit status change (reject, or reopen a revision).

    The existing price is kept when a revision is reopened to PENDING.

    Raises:
        Forbidden: If the actor is not an admin
        NotFound: If the quote does not exist
        InvalidTransition: If the move is not in the transition table
    """
    ensure_can_change_status(actor, "quote")

    quote = await load_quote(session, quote_id, for_update=True)
    current = quote_status_of(symbols, quote)
    validate_quote_transition(current, status)
    await write_quote_status(session, symbols, quote, current, status)

    logger.info(
        "quote_status_changed",
        quote_id=quote.id,
        from_status=current.value,
        to_status=status.value,
        user_id=actor.user_id,
    )
    return await quote_record(session, symbols, quote)


async def delete_quote(
    session: AsyncSession,
    symbols: SymbolResolver,
    storage: FileStorage,
    actor: Actor,
    quote_id: int,
) -> None:
    """Admin-only delete; the quote's attachments go with it.

    Raises:
        Forbidden: If the actor is not an admin
        NotFound: If the quote does not exist
        InvalidOperation: If the quote has been converted
    """
    if not actor.is_admin:
        raise Forbidden("Only admins can delete quotes")

    quote = await load_quote(session, quote_id, for_update=True)
    if quote.converted_order_id is not None:
        raise InvalidOperation("Cannot delete a converted quote")

    removed = await remove_all_for(session, symbols, storage, QuoteRef(quote.id))
    await session.delete(quote)
    await session.flush()

    logger.info(
        "quote_deleted",
        quote_id=quote_id,
        quote_no=quote.quote_no,
        attachments_removed=removed,
        user_id=actor.user_id,
    )
