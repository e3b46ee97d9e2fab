"""Startup validation for StitchDesk.

Fail fast when the database is unreachable or the symbol table is missing
values the closed enums expect. A missing symbol would otherwise only show up
as an UnknownSymbol error on the first request that needs it.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stitchdesk.config import get_config
from stitchdesk.db.models import UserModel
from stitchdesk.errors import UnknownSymbol
from stitchdesk.symbols import EXPECTED_SYMBOLS, SymbolResolver, load_resolver

logger = logging.getLogger(__name__)


class StartupValidationError(Exception):
    """Raised when startup validation fails."""

    pass


async def validate_database_connection(session: AsyncSession) -> None:
    """Validate database connection and schema.

    Raises:
        StartupValidationError: If the database cannot be queried
    """
    try:
        result = await session.execute(select(func.count()).select_from(UserModel))
        user_count = result.scalar()
        logger.info("Database connection OK (%d users)", user_count)
    except SQLAlchemyError as e:
        raise StartupValidationError(
            f"Database connection failed: {e}. "
            "Check DATABASE_URL and run `stitchdesk init`."
        ) from e


async def validate_symbol_table(session: AsyncSession) -> SymbolResolver:
    """Check every enum member resolves through its category chain.

    Returns:
        SymbolResolver: The verified snapshot

    Raises:
        StartupValidationError: Listing every missing symbol
    """
    resolver = await load_resolver(session)
    try:
        resolver.verify(EXPECTED_SYMBOLS)
    except UnknownSymbol as e:
        raise StartupValidationError(
            f"{e.message}. Run `stitchdesk seed-symbols` to add the missing values."
        ) from e

    logger.info(
        "Symbol table OK (%d values in %d categories)",
        len(resolver),
        len(resolver.categories()),
    )
    return resolver


def validate_upload_config() -> None:
    """Warn about upload settings that will make every upload fail."""
    upload = get_config().upload
    if not upload.allowed_mime_types:
        logger.warning("ALLOWED_MIME_TYPES is empty; every upload will be rejected")
    if upload.max_bytes <= 0:
        logger.warning("MAX_UPLOAD_BYTES is %d; every upload will be rejected", upload.max_bytes)
    logger.info("Upload directory: %s", upload.upload_dir)


async def run_all_validations(session: AsyncSession) -> SymbolResolver:
    """Run all startup validations.

    Raises:
        StartupValidationError: If any critical validation fails
    """
    logger.info("Running startup validations...")

    validate_upload_config()
    await validate_database_connection(session)
    resolver = await validate_symbol_table(session)

    logger.info("All startup validations passed")
    return resolver
