"""SQLAlchemy async database models for StitchDesk.

Categorical columns (service type, status, unit, entity type, file role) are
foreign keys into ``symbol_values``; see ``stitchdesk.symbols``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class SymbolCategoryModel(Base):
    """Named group of symbolic values (e.g. ``order_status``)."""

    __tablename__ = "symbol_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    values: Mapped[list[SymbolValueModel]] = relationship(
        back_populates="category", cascade="all, delete-orphan"
    )


class SymbolValueModel(Base):
    """One symbolic value; its ``id`` is the surrogate stored on entity rows."""

    __tablename__ = "symbol_values"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("symbol_categories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    symbol: Mapped[str] = mapped_column(String(64), nullable=False)
    display_label: Mapped[str] = mapped_column(String(128), nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    category: Mapped[SymbolCategoryModel] = relationship(back_populates="values")

    __table_args__ = (
        # Case-sensitive uniqueness; retired values must be renamed before reuse
        UniqueConstraint("category_id", "symbol", name="uq_symbol_values_category_symbol"),
    )


class UserModel(Base):
    """Portal account. Credentials live with the authentication gateway."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    company: Mapped[str | None] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="CUSTOMER")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("role IN ('ADMIN', 'CUSTOMER')", name="check_users_role"),
    )


class _DesignColumns:
    """Design attribute columns shared by orders and quotes."""

    design_name: Mapped[str] = mapped_column(String(255), nullable=False)
    height: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    width: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    number_of_colors: Mapped[int | None] = mapped_column(Integer)
    fabric: Mapped[str | None] = mapped_column(String(128))
    color_type: Mapped[str | None] = mapped_column(String(128))
    placement: Mapped[list | None] = mapped_column(JSON)
    required_format: Mapped[list | None] = mapped_column(JSON)
    instruction: Mapped[str | None] = mapped_column(Text)
    is_urgent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )


class OrderModel(_DesignColumns, Base):
    """Design request being fulfilled by staff."""

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    order_no: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)

    service_type_id: Mapped[int] = mapped_column(ForeignKey("symbol_values.id"), nullable=False)
    status_id: Mapped[int] = mapped_column(ForeignKey("symbol_values.id"), nullable=False, index=True)
    unit_id: Mapped[int | None] = mapped_column(ForeignKey("symbol_values.id"))

    __table_args__ = (
        Index("idx_orders_user_created", "user_id", "created_at"),
    )


class QuoteModel(_DesignColumns, Base):
    """Price inquiry; becomes an order through conversion."""

    __tablename__ = "quotes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    quote_no: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)

    service_type_id: Mapped[int] = mapped_column(ForeignKey("symbol_values.id"), nullable=False)
    status_id: Mapped[int] = mapped_column(ForeignKey("symbol_values.id"), nullable=False, index=True)
    unit_id: Mapped[int | None] = mapped_column(ForeignKey("symbol_values.id"))

    # Pricing (set by staff)
    price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    currency: Mapped[str | None] = mapped_column(String(3))
    remarks: Mapped[str | None] = mapped_column(Text)
    priced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Set exactly once, at conversion
    converted_order_id: Mapped[int | None] = mapped_column(
        ForeignKey("orders.id"), unique=True
    )

    __table_args__ = (
        Index("idx_quotes_user_created", "user_id", "created_at"),
        CheckConstraint("price IS NULL OR price > 0", name="check_quotes_price_positive"),
    )


class FileAttachmentModel(Base):
    """Uploaded file owned by exactly one order or quote.

    ``entity_type_id`` selects which table ``entity_id`` points into, so there
    is no database-level foreign key on ``entity_id``.
    """

    __tablename__ = "file_attachments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_type_id: Mapped[int] = mapped_column(ForeignKey("symbol_values.id"), nullable=False)
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False)
    file_role_id: Mapped[int] = mapped_column(ForeignKey("symbol_values.id"), nullable=False)

    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    stored_name: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_path: Mapped[str] = mapped_column(Text, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(128), nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False)

    uploaded_by: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    __table_args__ = (
        Index("idx_file_attachments_entity", "entity_type_id", "entity_id"),
        CheckConstraint("size >= 0", name="check_file_attachments_size"),
    )
