"""HTTP route modules for the StitchDesk API."""

from stitchdesk.web.routes import admin, files, health, lookups, orders, quotes

__all__ = ["admin", "files", "health", "lookups", "orders", "quotes"]
