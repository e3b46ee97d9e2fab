"""StitchDesk domain types and request payloads.

Categorical fields are closed enums here and surrogate ids in the database;
``stitchdesk.symbols`` translates between the two.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Role(str, Enum):
    """Actor roles. Parsing an unknown role string fails instead of defaulting."""

    ADMIN = "ADMIN"
    CUSTOMER = "CUSTOMER"


class ServiceType(str, Enum):
    """Kind of design work, shared by orders and quotes."""

    DIGITIZING = "DIGITIZING"
    VECTOR = "VECTOR"
    PATCHES = "PATCHES"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class QuoteStatus(str, Enum):
    PENDING = "PENDING"
    PRICED = "PRICED"
    REVISION_REQUESTED = "REVISION_REQUESTED"
    CONVERTED = "CONVERTED"
    REJECTED = "REJECTED"


class Unit(str, Enum):
    INCH = "inch"
    CM = "cm"


class EntityType(str, Enum):
    ORDER = "ORDER"
    QUOTE = "QUOTE"


class FileRole(str, Enum):
    CUSTOMER_UPLOAD = "CUSTOMER_UPLOAD"
    ADMIN_RESPONSE = "ADMIN_RESPONSE"
    ATTACHMENT = "ATTACHMENT"


@dataclass(frozen=True, slots=True)
class Actor:
    """Authenticated caller as forwarded by the gateway."""

    user_id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


# ============================================================================
# Request payloads
# ============================================================================


class DesignFields(BaseModel):
    """Design attributes common to orders and quotes."""

    model_config = ConfigDict(extra="forbid")

    design_name: str = Field(..., min_length=1, max_length=255)
    height: Decimal | None = Field(default=None, gt=0)
    width: Decimal | None = Field(default=None, gt=0)
    unit: Unit | None = None
    number_of_colors: int | None = Field(default=None, ge=1)
    fabric: str | None = None
    color_type: str | None = None
    placement: list[str] | None = None
    required_format: list[str] | None = None
    instruction: str | None = None
    is_urgent: bool = False

    @field_validator("design_name")
    @classmethod
    def strip_design_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("design_name must not be blank")
        return v


class OrderCreate(DesignFields):
    order_type: ServiceType


class QuoteCreate(DesignFields):
    quote_type: ServiceType


class DesignUpdate(BaseModel):
    """Partial update of design attributes; unset fields are left untouched."""

    model_config = ConfigDict(extra="forbid")

    design_name: str | None = Field(default=None, min_length=1, max_length=255)
    height: Decimal | None = Field(default=None, gt=0)
    width: Decimal | None = Field(default=None, gt=0)
    unit: Unit | None = None
    number_of_colors: int | None = Field(default=None, ge=1)
    fabric: str | None = None
    color_type: str | None = None
    placement: list[str] | None = None
    required_format: list[str] | None = None
    instruction: str | None = None
    is_urgent: bool | None = None

    @field_validator("design_name")
    @classmethod
    def strip_design_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("design_name must not be blank")
        return v


class OrderUpdate(DesignUpdate):
    order_type: ServiceType | None = None
    # Accepted only so non-admin attempts can be rejected explicitly.
    status: OrderStatus | None = None


class QuoteUpdate(DesignUpdate):
    quote_type: ServiceType | None = None


class QuotePricing(BaseModel):
    model_config = ConfigDict(extra="forbid")

    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    remarks: str | None = None

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str | None) -> str | None:
        return v.upper() if v else v


# Fields whose change forces type-specific validation
TYPE_SENSITIVE_FIELDS = frozenset({"number_of_colors", "fabric", "color_type"})


@dataclass(frozen=True, slots=True)
class OwnerSummary:
    """Owner details attached to detail and list responses."""

    id: int
    name: str
    email: str
    company: str | None = None
