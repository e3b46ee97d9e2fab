"""Category chains used by each categorical field.

Each chain is tried in order; anything after the first entry is a fallback
kept for rows seeded before the category families were split. Resolving
through a fallback is logged so seed gaps stay visible.
"""

from __future__ import annotations

from enum import Enum

from stitchdesk.models import EntityType, FileRole, OrderStatus, QuoteStatus, ServiceType, Unit

# Orders and quotes share the service-type family; ``order_type`` is the older name.
SERVICE_TYPE_CATEGORIES: tuple[str, ...] = ("service_type", "order_type")

ORDER_STATUS_CATEGORIES: tuple[str, ...] = ("order_status",)

# Quote statuses fall back to ``order_status`` for the overlapping PENDING value.
QUOTE_STATUS_CATEGORIES: tuple[str, ...] = ("quote_status", "order_status")

UNIT_CATEGORIES: tuple[str, ...] = ("measurement_unit", "unit")

ENTITY_TYPE_CATEGORIES: tuple[str, ...] = ("entity_type",)

FILE_ROLE_CATEGORIES: tuple[str, ...] = ("file_role",)

# Every member of each enum must resolve through its chain at startup.
EXPECTED_SYMBOLS: dict[tuple[str, ...], type[Enum]] = {
    SERVICE_TYPE_CATEGORIES: ServiceType,
    ORDER_STATUS_CATEGORIES: OrderStatus,
    QUOTE_STATUS_CATEGORIES: QuoteStatus,
    UNIT_CATEGORIES: Unit,
    ENTITY_TYPE_CATEGORIES: EntityType,
    FILE_ROLE_CATEGORIES: FileRole,
}
