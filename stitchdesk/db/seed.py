"""Reference data seeding for the symbol tables.

Seeding is idempotent: existing categories and values are left alone, missing
ones are added. Labels and display order can be edited in the database later;
the symbols themselves are fixed by the enums in ``stitchdesk.models``.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stitchdesk.db.models import SymbolCategoryModel, SymbolValueModel
from stitchdesk.models import EntityType, FileRole, OrderStatus, QuoteStatus, ServiceType, Unit

logger = logging.getLogger(__name__)


def _labelled(members) -> list[tuple[str, str]]:
    return [(m.value, m.value.replace("_", " ").title()) for m in members]


# category name -> (description, [(symbol, label), ...]) in display order
SEED_CATEGORIES: dict[str, tuple[str, list[tuple[str, str]]]] = {
    "service_type": ("Kind of design work", _labelled(ServiceType)),
    "order_type": ("Legacy alias of service_type", _labelled(ServiceType)),
    "order_status": ("Order lifecycle states", _labelled(OrderStatus)),
    "quote_status": ("Quote lifecycle states", _labelled(QuoteStatus)),
    "measurement_unit": ("Design dimension units", [("inch", "Inch"), ("cm", "Centimeter")]),
    "unit": ("Legacy alias of measurement_unit", [(u.value, u.value) for u in Unit]),
    "entity_type": ("Attachment parent kinds", _labelled(EntityType)),
    "file_role": ("Attachment roles", _labelled(FileRole)),
}


async def seed_symbols(
    session: AsyncSession,
    categories: dict[str, tuple[str, list[tuple[str, str]]]] | None = None,
) -> int:
    """Insert missing categories and values.

    Returns:
        int: Number of symbol values inserted
    """
    categories = categories if categories is not None else SEED_CATEGORIES
    inserted = 0

    for name, (description, values) in categories.items():
        result = await session.execute(
            select(SymbolCategoryModel).where(SymbolCategoryModel.name == name)
        )
        category = result.scalar_one_or_none()
        if category is None:
            category = SymbolCategoryModel(name=name, description=description, is_active=True)
            session.add(category)
            await session.flush()

        existing = await session.execute(
            select(SymbolValueModel.symbol).where(SymbolValueModel.category_id == category.id)
        )
        present = set(existing.scalars().all())

        for order, (symbol, label) in enumerate(values, start=1):
            if symbol in present:
                continue
            session.add(
                SymbolValueModel(
                    category_id=category.id,
                    symbol=symbol,
                    display_label=label,
                    display_order=order,
                    is_active=True,
                )
            )
            inserted += 1

    await session.flush()
    logger.info("Seeded %d symbol values across %d categories", inserted, len(categories))
    return inserted
