"""Database layer for StitchDesk with async SQLAlchemy."""

from stitchdesk.db.connection import close_db, get_engine, get_session, init_db
from stitchdesk.db.models import (
    Base,
    FileAttachmentModel,
    OrderModel,
    QuoteModel,
    SymbolCategoryModel,
    SymbolValueModel,
    UserModel,
)

__all__ = [
    "Base",
    "FileAttachmentModel",
    "OrderModel",
    "QuoteModel",
    "SymbolCategoryModel",
    "SymbolValueModel",
    "UserModel",
    "close_db",
    "get_engine",
    "get_session",
    "init_db",
]
