"""Request and response schemas for the StitchDesk HTTP API.

Domain payloads (``OrderCreate``, ``QuotePricing``, ...) live in
``stitchdesk.models``; this module only holds the API-specific shapes.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict

from stitchdesk.attachments import AttachmentRecord, entity_type_of
from stitchdesk.models import EntityType, FileRole, OrderStatus, QuoteStatus, ServiceType, Unit


# ============================================================================
# Requests
# ============================================================================


class OrderStatusChange(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: OrderStatus


class QuoteStatusChange(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: QuoteStatus


# ============================================================================
# Responses
# ============================================================================


class OwnerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    company: str | None = None


class _DesignOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    status: str
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
    user: OwnerOut | None = None


class OrderOut(_DesignOut):
    order_no: str
    order_type: ServiceType
    status: OrderStatus


class QuoteOut(_DesignOut):
    quote_no: str
    quote_type: ServiceType
    status: QuoteStatus
    price: Decimal | None
    currency: str | None
    remarks: str | None
    priced_at: datetime | None
    converted_order_id: int | None


class AttachmentOut(BaseModel):
    id: int
    entity_type: EntityType
    entity_id: int
    file_role: FileRole
    original_name: str
    stored_name: str
    mime_type: str
    size: int
    uploaded_by: int
    created_at: datetime

    @classmethod
    def from_record(cls, record: AttachmentRecord) -> AttachmentOut:
        return cls(
            id=record.id,
            entity_type=entity_type_of(record.entity),
            entity_id=record.entity.id,
            file_role=record.file_role,
            original_name=record.original_name,
            stored_name=record.stored_name,
            mime_type=record.mime_type,
            size=record.size,
            uploaded_by=record.uploaded_by,
            created_at=record.created_at,
        )


def success(data: Any, message: str | None = None, **extra: Any) -> dict[str, Any]:
    """Standard success envelope: ``{"status": "success", "data": ...}``."""
    body: dict[str, Any] = {"status": "success", "data": data}
    if message:
        body["message"] = message
    body.update(extra)
    return body
