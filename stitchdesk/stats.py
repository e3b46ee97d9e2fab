"""Portal-wide counts for the admin dashboard and the ``stats`` command."""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from stitchdesk.db.users import count_users
from stitchdesk.errors import Forbidden
from stitchdesk.models import Actor, OrderStatus, QuoteStatus
from stitchdesk.orders import OrderFilters, count_orders
from stitchdesk.quotes import QuoteFilters, count_quotes
from stitchdesk.symbols import SymbolResolver


@dataclass
class PortalStats:
    users_total: int
    users_active: int
    orders_total: int
    quotes_total: int
    orders_by_status: dict[OrderStatus, int] = field(default_factory=dict)
    quotes_by_status: dict[QuoteStatus, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "users": {"total": self.users_total, "active": self.users_active},
            "orders": {
                "total": self.orders_total,
                "by_status": {s.value: n for s, n in self.orders_by_status.items()},
            },
            "quotes": {
                "total": self.quotes_total,
                "by_status": {s.value: n for s, n in self.quotes_by_status.items()},
            },
        }


async def collect_stats(
    session: AsyncSession, symbols: SymbolResolver, actor: Actor
) -> PortalStats:
    """Count users, and orders and quotes per status.

    Raises:
        Forbidden: If the actor is not an admin
    """
    if not actor.is_admin:
        raise Forbidden("Admin access required")

    users_total, users_active = await count_users(session)
    stats = PortalStats(
        users_total=users_total,
        users_active=users_active,
        orders_total=await count_orders(session, symbols, actor),
        quotes_total=await count_quotes(session, symbols, actor),
    )
    for order_status in OrderStatus:
        stats.orders_by_status[order_status] = await count_orders(
            session, symbols, actor, OrderFilters(status=order_status)
        )
    for quote_status in QuoteStatus:
        stats.quotes_by_status[quote_status] = await count_quotes(
            session, symbols, actor, QuoteFilters(status=quote_status)
        )
    return stats
