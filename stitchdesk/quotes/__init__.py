"""Quote lifecycle: pricing, revisions and guarded edits."""

from stitchdesk.quotes.lifecycle import (
    QUOTE_TRANSITIONS,
    TERMINAL_QUOTE_STATES,
    count_quotes,
    create_quote,
    delete_quote,
    get_quote,
    get_quote_by_number,
    list_my_quotes,
    list_quotes,
    request_revision,
    set_pricing,
    update_quote,
    update_quote_status,
    validate_quote_transition,
)
from stitchdesk.quotes.models import QuoteFilters, QuotePage, QuoteRecord

__all__ = [
    "QUOTE_TRANSITIONS",
    "TERMINAL_QUOTE_STATES",
    "QuoteFilters",
    "QuotePage",
    "QuoteRecord",
    "count_quotes",
    "create_quote",
    "delete_quote",
    "get_quote",
    "get_quote_by_number",
    "list_my_quotes",
    "list_quotes",
    "request_revision",
    "set_pricing",
    "update_quote",
    "update_quote_status",
    "validate_quote_transition",
]
