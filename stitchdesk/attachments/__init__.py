"""Files attached to orders and quotes."""

from stitchdesk.attachments.registry import (
    AttachmentRecord,
    EntityRef,
    OrderRef,
    QuoteRef,
    UploadedFile,
    attach,
    entity_ref,
    entity_type_of,
    list_for,
    list_uploaded_by,
    remove,
    remove_all_for,
    resolve_for_download,
    validate_upload,
)
from stitchdesk.attachments.storage import FileStorage, LocalFileStorage, generate_stored_name

__all__ = [
    "AttachmentRecord",
    "EntityRef",
    "FileStorage",
    "LocalFileStorage",
    "OrderRef",
    "QuoteRef",
    "UploadedFile",
    "attach",
    "entity_ref",
    "entity_type_of",
    "generate_stored_name",
    "list_for",
    "list_uploaded_by",
    "remove",
    "remove_all_for",
    "resolve_for_download",
    "validate_upload",
]
