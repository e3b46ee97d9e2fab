"""Symbolic-enumeration resolution (lookup table <-> closed enums)."""

from stitchdesk.symbols.categories import (
    ENTITY_TYPE_CATEGORIES,
    EXPECTED_SYMBOLS,
    FILE_ROLE_CATEGORIES,
    ORDER_STATUS_CATEGORIES,
    QUOTE_STATUS_CATEGORIES,
    SERVICE_TYPE_CATEGORIES,
    UNIT_CATEGORIES,
)
from stitchdesk.symbols.resolver import SymbolCache, SymbolEntry, SymbolResolver, load_resolver

__all__ = [
    "ENTITY_TYPE_CATEGORIES",
    "EXPECTED_SYMBOLS",
    "FILE_ROLE_CATEGORIES",
    "ORDER_STATUS_CATEGORIES",
    "QUOTE_STATUS_CATEGORIES",
    "SERVICE_TYPE_CATEGORIES",
    "UNIT_CATEGORIES",
    "SymbolCache",
    "SymbolEntry",
    "SymbolResolver",
    "load_resolver",
]
