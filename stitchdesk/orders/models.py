"""Order data structures returned to callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from stitchdesk.models import OrderStatus, OwnerSummary, ServiceType, Unit


@dataclass(slots=True)
class OrderRecord:
    id: int
    order_no: str
    user_id: int
    order_type: ServiceType
    status: OrderStatus
    design_name: str
    height: Decimal | None
    width: Decimal | None
    unit: Unit | None
    number_of_colors: int | None
    fabric: str | None
    color_type: str | None
    placement: list[str] | None
    required_format: list[str] | None
    instruction: str | None
    is_urgent: bool
    created_at: datetime
    updated_at: datetime
    user: OwnerSummary | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)


@dataclass(slots=True)
class OrderFilters:
    """List filters. ``user_id`` is forced to the caller for non-admins."""

    user_id: int | None = None
    order_type: ServiceType | None = None
    status: OrderStatus | None = None
    exclude_statuses: list[OrderStatus] = field(default_factory=list)
    is_urgent: bool | None = None
    search: str | None = None  # order number or design name
    from_date: datetime | None = None
    to_date: datetime | None = None
    limit: int = 10
    offset: int = 0


@dataclass(slots=True)
class OrderPage:
    orders: list[OrderRecord]
    total: int
    limit: int
    offset: int
