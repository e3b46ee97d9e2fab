"""Quote to order conversion."""

from stitchdesk.conversion.coordinator import convert_quote, order_payload_from_quote

__all__ = ["convert_quote", "order_payload_from_quote"]
