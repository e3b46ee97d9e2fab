"""Design attributes shared by orders and quotes.

Holds the type-specific required-field rule and the mapping between payload
fields and entity columns (including the unit symbol column).
"""

from __future__ import annotations

from typing import Any

from stitchdesk.errors import ValidationError
from stitchdesk.models import TYPE_SENSITIVE_FIELDS, DesignFields, ServiceType, Unit
from stitchdesk.symbols import UNIT_CATEGORIES, SymbolResolver

# Plain columns copied verbatim between payloads, orders and quotes
DESIGN_COLUMNS: tuple[str, ...] = (
    "design_name",
    "height",
    "width",
    "number_of_colors",
    "fabric",
    "color_type",
    "placement",
    "required_format",
    "instruction",
    "is_urgent",
)


def validate_design_fields(
    service_type: ServiceType,
    number_of_colors: int | None,
    fabric: str | None,
    color_type: str | None,
    noun: str = "order",
) -> None:
    """DIGITIZING/PATCHES need colour count and fabric; VECTOR needs colour type.

    Raises:
        ValidationError: Naming the first missing field
    """
    if service_type in (ServiceType.DIGITIZING, ServiceType.PATCHES):
        if not number_of_colors:
            raise ValidationError(
                f"Number of colors is required for {service_type.value} {noun}s",
                errors={"number_of_colors": "required"},
            )
        if not fabric or not fabric.strip():
            raise ValidationError(
                f"Fabric is required for {service_type.value} {noun}s",
                errors={"fabric": "required"},
            )
    elif service_type is ServiceType.VECTOR:
        if not color_type or not color_type.strip():
            raise ValidationError(
                f"Color type is required for {service_type.value} {noun}s",
                errors={"color_type": "required"},
            )
    else:
        raise TypeError(f"Unhandled service type: {service_type!r}")


def needs_type_validation(changes: dict[str, Any], kind_field: str) -> bool:
    """Whether an update touches the kind or any type-sensitive field."""
    return kind_field in changes or bool(TYPE_SENSITIVE_FIELDS & changes.keys())


def validate_merged(
    model: Any,
    changes: dict[str, Any],
    current_kind: ServiceType,
    kind_field: str,
    noun: str,
) -> None:
    """Validate the row as it would look after ``changes`` are applied."""
    kind = changes.get(kind_field) or current_kind

    def merged(name: str) -> Any:
        return changes[name] if name in changes else getattr(model, name)

    validate_design_fields(
        kind,
        merged("number_of_colors"),
        merged("fabric"),
        merged("color_type"),
        noun=noun,
    )


def resolve_unit(symbols: SymbolResolver, unit: Unit | None) -> int | None:
    return symbols.resolve_member(UNIT_CATEGORIES, unit) if unit is not None else None


def design_column_values(payload: DesignFields, symbols: SymbolResolver) -> dict[str, Any]:
    """Column values for inserting a row from a create payload."""
    values = {name: getattr(payload, name) for name in DESIGN_COLUMNS}
    values["unit_id"] = resolve_unit(symbols, payload.unit)
    return values


def apply_design_changes(model: Any, changes: dict[str, Any], symbols: SymbolResolver) -> list[str]:
    """Copy design changes onto ``model``; returns the names of touched fields."""
    touched: list[str] = []
    for name in DESIGN_COLUMNS:
        if name in changes:
            setattr(model, name, changes[name])
            touched.append(name)
    if "unit" in changes:
        model.unit_id = resolve_unit(symbols, changes["unit"])
        touched.append("unit")
    return touched


_NON_NULLABLE = ("design_name", "is_urgent", "order_type", "quote_type")


def collect_changes(payload: Any) -> dict[str, Any]:
    """Fields explicitly set on an update payload.

    Explicit nulls on non-nullable fields mean "leave unchanged".
    """
    changes = payload.model_dump(exclude_unset=True)
    for name in _NON_NULLABLE:
        if name in changes and changes[name] is None:
            del changes[name]
    return changes
