"""Order lifecycle: creation, guarded edits and status transitions."""

from stitchdesk.orders.lifecycle import (
    INITIAL_ORDER_STATUS,
    ORDER_TRANSITIONS,
    TERMINAL_ORDER_STATES,
    cancel_order,
    count_orders,
    create_order,
    delete_order,
    get_order,
    get_order_by_number,
    list_my_orders,
    list_orders,
    update_order,
    update_order_status,
    validate_order_transition,
)
from stitchdesk.orders.models import OrderFilters, OrderPage, OrderRecord

__all__ = [
    "INITIAL_ORDER_STATUS",
    "ORDER_TRANSITIONS",
    "TERMINAL_ORDER_STATES",
    "OrderFilters",
    "OrderPage",
    "OrderRecord",
    "cancel_order",
    "count_orders",
    "create_order",
    "delete_order",
    "get_order",
    "get_order_by_number",
    "list_my_orders",
    "list_orders",
    "update_order",
    "update_order_status",
    "validate_order_transition",
]
