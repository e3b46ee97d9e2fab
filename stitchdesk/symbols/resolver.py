"""Resolve (category, symbol) pairs to surrogate ids and back.

Entity rows store categorical fields as ``symbol_values.id``; everything above
the persistence layer works with the closed enums in ``stitchdesk.models``.
A ``SymbolResolver`` is an immutable snapshot of the active reference rows,
so lookups are pure and need no locking.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stitchdesk.db.models import SymbolCategoryModel, SymbolValueModel
from stitchdesk.errors import UnknownSymbol

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


@dataclass(frozen=True, slots=True)
class SymbolEntry:
    id: int
    category: str
    symbol: str
    label: str
    display_order: int


class SymbolResolver:
    """Snapshot of active symbolic values with lookups in both directions."""

    def __init__(self, entries: Iterable[SymbolEntry]):
        self._by_key: dict[tuple[str, str], SymbolEntry] = {}
        self._by_id: dict[int, SymbolEntry] = {}
        self._by_category: dict[str, list[SymbolEntry]] = defaultdict(list)

        for entry in entries:
            key = (entry.category, entry.symbol)
            if key in self._by_key:
                raise ValueError(f"Duplicate active symbol {entry.category}:{entry.symbol}")
            self._by_key[key] = entry
            self._by_id[entry.id] = entry
            self._by_category[entry.category].append(entry)

        for values in self._by_category.values():
            values.sort(key=lambda e: (e.display_order, e.symbol))

    def __len__(self) -> int:
        return len(self._by_id)

    def resolve(self, category: str, symbol: str) -> int:
        """Return the surrogate id for ``symbol`` in ``category``.

        Raises:
            UnknownSymbol: If no active value matches
        """
        entry = self._by_key.get((category, symbol))
        if entry is None:
            raise UnknownSymbol(
                f"Lookup not found: {category}:{symbol}", missing=[(category, symbol)]
            )
        return entry.id

    def reverse(self, surrogate_id: int) -> tuple[str, str]:
        """Return the ``(category, symbol)`` pair for a surrogate id.

        Raises:
            UnknownSymbol: If the id is not an active value
        """
        entry = self._by_id.get(surrogate_id)
        if entry is None:
            raise UnknownSymbol(f"Lookup id not found: {surrogate_id}")
        return entry.category, entry.symbol

    def resolve_with_fallback(self, categories: Sequence[str], symbol: str) -> int:
        """Try each category in order and return the first match.

        Raises:
            UnknownSymbol: If no category in the chain has the symbol
        """
        if not categories:
            raise ValueError("At least one category is required")

        for position, category in enumerate(categories):
            entry = self._by_key.get((category, symbol))
            if entry is None:
                continue
            if position > 0:
                logger.warning(
                    "symbol_fallback_used symbol=%s primary=%s resolved_in=%s",
                    symbol,
                    categories[0],
                    category,
                )
            return entry.id

        raise UnknownSymbol(
            f"Lookup not found: {'/'.join(categories)}:{symbol}",
            missing=[(categories[0], symbol)],
        )

    def resolve_member(self, categories: Sequence[str], member: Enum) -> int:
        """Resolve an enum member through a category chain."""
        return self.resolve_with_fallback(categories, member.value)

    def resolve_all(self, categories: Sequence[str], member: Enum) -> list[int]:
        """Every id the chain holds for ``member``, primary category first.

        Rows may carry any of them, so filters match on the whole list.

        Raises:
            UnknownSymbol: If no category in the chain has the symbol
        """
        ids = [
            self._by_key[(category, member.value)].id
            for category in categories
            if (category, member.value) in self._by_key
        ]
        if not ids:
            raise UnknownSymbol(
                f"Lookup not found: {'/'.join(categories)}:{member.value}",
                missing=[(categories[0], member.value)],
            )
        return ids

    def reverse_member(
        self, surrogate_id: int, enum_type: type[E], categories: Sequence[str] | None = None
    ) -> E:
        """Map a surrogate id back onto ``enum_type``.

        Raises:
            UnknownSymbol: If the id is unknown, belongs to a category outside
                ``categories``, or names a symbol the enum does not define
        """
        category, symbol = self.reverse(surrogate_id)
        if categories is not None and category not in categories:
            raise UnknownSymbol(
                f"Lookup id {surrogate_id} belongs to {category}, expected one of {list(categories)}"
            )
        try:
            return enum_type(symbol)
        except ValueError as exc:
            raise UnknownSymbol(
                f"Symbol {category}:{symbol} is not a valid {enum_type.__name__}"
            ) from exc

    def values(self, category: str) -> list[SymbolEntry]:
        """Active values of ``category`` in display order."""
        return list(self._by_category.get(category, ()))

    def categories(self) -> list[str]:
        return sorted(self._by_category)

    def verify(self, expected: Mapping[tuple[str, ...], type[Enum]]) -> None:
        """Check that every enum member resolves through its category chain.

        Raises:
            UnknownSymbol: Listing every missing (category, symbol) pair
        """
        missing: list[tuple[str, str]] = []
        for categories, enum_type in expected.items():
            for member in enum_type:
                if not any((c, member.value) in self._by_key for c in categories):
                    missing.append((categories[0], member.value))

        if missing:
            listed = ", ".join(f"{c}:{s}" for c, s in missing)
            raise UnknownSymbol(f"Symbol table is missing seeded values: {listed}", missing=missing)


async def load_resolver(session: AsyncSession) -> SymbolResolver:
    """Build a resolver from the active rows of the symbol tables."""
    stmt = (
        select(SymbolValueModel, SymbolCategoryModel.name)
        .join(SymbolCategoryModel, SymbolValueModel.category_id == SymbolCategoryModel.id)
        .where(SymbolValueModel.is_active.is_(True), SymbolCategoryModel.is_active.is_(True))
    )
    rows = await session.execute(stmt)

    entries = [
        SymbolEntry(
            id=value.id,
            category=category_name,
            symbol=value.symbol,
            label=value.display_label,
            display_order=value.display_order,
        )
        for value, category_name in rows.all()
    ]
    logger.debug("Loaded %d symbol values", len(entries))
    return SymbolResolver(entries)


class SymbolCache:
    """Holds a resolver snapshot and reloads it once the TTL has passed."""

    def __init__(self, ttl_minutes: int = 60, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_minutes * 60
        self._clock = clock
        self._resolver: SymbolResolver | None = None
        self._loaded_at: float | None = None

    def _is_valid(self) -> bool:
        if self._resolver is None or self._loaded_at is None:
            return False
        return (self._clock() - self._loaded_at) < self.ttl_seconds

    async def get(self, session: AsyncSession) -> SymbolResolver:
        if not self._is_valid():
            await self.refresh(session)
        assert self._resolver is not None
        return self._resolver

    async def refresh(self, session: AsyncSession) -> SymbolResolver:
        self._resolver = await load_resolver(session)
        self._loaded_at = self._clock()
        logger.info("Symbol cache refreshed with %d values", len(self._resolver))
        return self._resolver

    def clear(self) -> None:
        self._resolver = None
        self._loaded_at = None
