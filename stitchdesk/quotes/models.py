"""Quote data structures returned to callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from stitchdesk.models import OwnerSummary, QuoteStatus, ServiceType, Unit


@dataclass(slots=True)
class QuoteRecord:
    id: int
    quote_no: str
    user_id: int
    quote_type: ServiceType
    status: QuoteStatus
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
    price: Decimal | None
    currency: str | None
    remarks: str | None
    priced_at: datetime | None
    converted_order_id: int | None
    created_at: datetime
    updated_at: datetime
    user: OwnerSummary | None = None

    @property
    def is_converted(self) -> bool:
        return self.converted_order_id is not None


@dataclass(slots=True)
class QuoteFilters:
    """List filters. ``user_id`` is forced to the caller for non-admins."""

    user_id: int | None = None
    quote_type: ServiceType | None = None
    status: QuoteStatus | None = None
    exclude_statuses: list[QuoteStatus] = field(default_factory=list)
    is_urgent: bool | None = None
    search: str | None = None  # quote number or design name
    from_date: datetime | None = None
    to_date: datetime | None = None
    limit: int = 10
    offset: int = 0


@dataclass(slots=True)
class QuotePage:
    quotes: list[QuoteRecord]
    total: int
    limit: int
    offset: int
