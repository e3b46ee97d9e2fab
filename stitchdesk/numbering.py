"""Human-facing order and quote numbers.

Format: ``<PREFIX>-<YYYYMMDD>-<NNNN>`` with four random digits. The unique
constraint on the number column is the final guard; allocation just avoids
handing out a number that is already taken.
"""

from __future__ import annotations

import random
from datetime import date, datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

ORDER_PREFIX = "TP"
QUOTE_PREFIX = "QT"

MAX_ATTEMPTS = 20


def format_number(prefix: str, day: date, sequence: int) -> str:
    return f"{prefix}-{day:%Y%m%d}-{sequence:04d}"


async def allocate_number(
    session: AsyncSession,
    column: InstrumentedAttribute,
    prefix: str,
    today: date | None = None,
    rng: random.Random | None = None,
) -> str:
    """Pick a number for ``prefix`` that ``column`` does not hold yet.

    Raises:
        RuntimeError: If every attempt collides (the day's space is nearly full)
    """
    today = today or datetime.now(timezone.utc).date()
    rng = rng or random.Random()

    for _ in range(MAX_ATTEMPTS):
        candidate = format_number(prefix, today, rng.randrange(10000))
        taken = await session.scalar(select(func.count()).where(column == candidate))
        if not taken:
            return candidate

    raise RuntimeError(f"Could not allocate a unique {prefix} number for {today:%Y-%m-%d}")
