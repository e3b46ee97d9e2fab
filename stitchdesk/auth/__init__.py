"""Authorization rules shared by orders, quotes and attachments."""

from stitchdesk.auth.guard import (
    can_change_status,
    can_mutate,
    can_view,
    ensure_can_change_status,
    ensure_can_mutate,
    ensure_can_view,
    is_locked_for_customer,
    parse_role,
)

__all__ = [
    "can_change_status",
    "can_mutate",
    "can_view",
    "ensure_can_change_status",
    "ensure_can_mutate",
    "ensure_can_view",
    "is_locked_for_customer",
    "parse_role",
]
