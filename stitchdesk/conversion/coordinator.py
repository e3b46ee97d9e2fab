"""Turn a priced quote into a new order.

The quote is claimed first with a compare-and-set PRICED -> CONVERTED, so of
two concurrent conversions only one gets past the claim. The order insert and
the ``converted_order_id`` link follow in the same transaction; if anything
after the claim fails the session is rolled back, leaving the quote PRICED
and no order behind.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from stitchdesk.auth import can_view
from stitchdesk.core.logging import get_logger
from stitchdesk.db.models import QuoteModel
from stitchdesk.db.users import load_owners
from stitchdesk.errors import Forbidden, InvalidOperation
from stitchdesk.models import Actor, OrderCreate, QuoteStatus, ServiceType, Unit
from stitchdesk.orders import repository as order_repository
from stitchdesk.orders.lifecycle import INITIAL_ORDER_STATUS
from stitchdesk.orders.models import OrderRecord
from stitchdesk.quotes.lifecycle import load_quote, quote_status_of, write_quote_status
from stitchdesk.quotes.models import QuoteRecord
from stitchdesk.quotes.repository import to_quote_record
from stitchdesk.symbols import SERVICE_TYPE_CATEGORIES, UNIT_CATEGORIES, SymbolResolver

logger = get_logger(__name__)


def order_payload_from_quote(symbols: SymbolResolver, quote: QuoteModel) -> OrderCreate:
    """Copy the quote's kind and design attributes into an order payload."""
    return OrderCreate(
        order_type=symbols.reverse_member(
            quote.service_type_id, ServiceType, SERVICE_TYPE_CATEGORIES
        ),
        design_name=quote.design_name,
        height=quote.height,
        width=quote.width,
        unit=(
            symbols.reverse_member(quote.unit_id, Unit, UNIT_CATEGORIES)
            if quote.unit_id is not None
            else None
        ),
        number_of_colors=quote.number_of_colors,
        fabric=quote.fabric,
        color_type=quote.color_type,
        placement=quote.placement,
        required_format=quote.required_format,
        instruction=quote.instruction,
        is_urgent=bool(quote.is_urgent),
    )


async def convert_quote(
    session: AsyncSession,
    symbols: SymbolResolver,
    quote_id: int,
    actor: Actor,
) -> tuple[QuoteRecord, OrderRecord]:
    """Convert a PRICED quote into an IN_PROGRESS order owned by the quote owner.

    Raises:
        NotFound: If the quote does not exist
        Forbidden: If the actor neither owns the quote nor is an admin
        InvalidOperation: If the quote is not PRICED, including when another
            conversion claimed it first
    """
    quote = await load_quote(session, quote_id, for_update=True)
    if not can_view(actor, quote.user_id):
        logger.warning("quote_conversion_denied", quote_id=quote_id, user_id=actor.user_id)
        raise Forbidden("You do not have permission to convert this quote")

    if quote_status_of(symbols, quote) is not QuoteStatus.PRICED:
        raise InvalidOperation("Can only convert priced quotes")

    payload = order_payload_from_quote(symbols, quote)

    try:
        try:
            await write_quote_status(
                session, symbols, quote, QuoteStatus.PRICED, QuoteStatus.CONVERTED
            )
        except InvalidOperation as exc:
            raise InvalidOperation("Can only convert priced quotes") from exc

        order = await order_repository.insert_order(
            session, symbols, quote.user_id, payload, INITIAL_ORDER_STATUS
        )
        quote.converted_order_id = order.id
        await session.flush()
        await session.refresh(quote)
        await session.refresh(order)
    except Exception:
        await session.rollback()
        logger.warning("quote_conversion_rolled_back", quote_id=quote_id, user_id=actor.user_id)
        raise

    logger.info(
        "quote_converted",
        quote_id=quote.id,
        quote_no=quote.quote_no,
        order_id=order.id,
        order_no=order.order_no,
        user_id=actor.user_id,
    )

    owners = await load_owners(session, [quote.user_id])
    owner = owners.get(quote.user_id)
    return (
        to_quote_record(symbols, quote, owner),
        order_repository.to_order_record(symbols, order, owner),
    )
