"""Allow/deny decisions for reading, editing and re-stating resources.

Rules:
- ``ADMIN`` may view and mutate anything and change any status.
- Any other role may view and mutate only what it owns, and never sets a
  status directly; its status changes go through named lifecycle actions
  (cancel, convert, request revision).
- Owners may not mutate a resource whose state is locked for customers:
  orders once ``COMPLETED``/``CANCELLED``, quotes once they leave ``PENDING``.
"""

from __future__ import annotations

from stitchdesk.errors import Forbidden
from stitchdesk.models import Actor, OrderStatus, QuoteStatus, Role

_LOCKED_ORDER_STATES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})


def parse_role(value: str) -> Role:
    """Parse a role string strictly.

    Raises:
        Forbidden: For anything other than a known role
    """
    try:
        return Role(value.strip().upper())
    except (ValueError, AttributeError) as exc:
        raise Forbidden(f"Unknown role: {value!r}") from exc


def is_locked_for_customer(state: OrderStatus | QuoteStatus) -> bool:
    """Whether a non-admin owner may no longer edit a resource in ``state``."""
    if isinstance(state, OrderStatus):
        return state in _LOCKED_ORDER_STATES
    if isinstance(state, QuoteStatus):
        return state is not QuoteStatus.PENDING
    raise TypeError(f"Unsupported resource state: {state!r}")


def can_view(actor: Actor, owner_id: int) -> bool:
    if actor.role is Role.ADMIN:
        return True
    if actor.role is Role.CUSTOMER:
        return actor.user_id == owner_id
    raise TypeError(f"Unhandled role: {actor.role!r}")


def can_mutate(actor: Actor, owner_id: int, state: OrderStatus | QuoteStatus) -> bool:
    if actor.role is Role.ADMIN:
        return True
    if actor.role is Role.CUSTOMER:
        return actor.user_id == owner_id and not is_locked_for_customer(state)
    raise TypeError(f"Unhandled role: {actor.role!r}")


def can_change_status(actor: Actor) -> bool:
    if actor.role is Role.ADMIN:
        return True
    if actor.role is Role.CUSTOMER:
        return False
    raise TypeError(f"Unhandled role: {actor.role!r}")


def ensure_can_view(actor: Actor, owner_id: int, noun: str = "resource") -> None:
    if not can_view(actor, owner_id):
        raise Forbidden(f"You do not have permission to view this {noun}")


def ensure_can_mutate(
    actor: Actor, owner_id: int, state: OrderStatus | QuoteStatus, noun: str = "resource"
) -> None:
    if can_mutate(actor, owner_id, state):
        return
    if can_view(actor, owner_id):
        raise Forbidden(f"Cannot update a {noun} in status {state.value}")
    raise Forbidden(f"You do not have permission to update this {noun}")


def ensure_can_change_status(actor: Actor, noun: str = "resource") -> None:
    if not can_change_status(actor):
        raise Forbidden(f"Only admins can change {noun} status")
