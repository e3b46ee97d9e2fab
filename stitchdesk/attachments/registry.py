"""File attachments owned by an order or a quote.

A parent is referenced as ``OrderRef(id)`` or ``QuoteRef(id)``; every place
that needs the parent's table or entity type goes through ``_parent_spec`` so
a new parent kind fails loudly instead of being treated as one of the others.

Visibility follows the lifecycle rules: admins and the parent's owner see all
of a parent's files, anyone else only the files they uploaded themselves.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stitchdesk.attachments.storage import FileStorage, generate_stored_name
from stitchdesk.auth import can_view
from stitchdesk.config import UploadConfig, get_config
from stitchdesk.core.logging import get_logger
from stitchdesk.db.models import FileAttachmentModel, OrderModel, QuoteModel
from stitchdesk.errors import Forbidden, NotFound, ValidationError
from stitchdesk.models import Actor, EntityType, FileRole
from stitchdesk.symbols import ENTITY_TYPE_CATEGORIES, FILE_ROLE_CATEGORIES, SymbolResolver

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class OrderRef:
    id: int


@dataclass(frozen=True, slots=True)
class QuoteRef:
    id: int


EntityRef = Union[OrderRef, QuoteRef]


@dataclass(frozen=True, slots=True)
class _ParentSpec:
    entity_type: EntityType
    model: type
    noun: str
    folder: str


def _parent_spec(entity: EntityRef) -> _ParentSpec:
    if isinstance(entity, OrderRef):
        return _ParentSpec(EntityType.ORDER, OrderModel, "order", f"orders/{entity.id}")
    if isinstance(entity, QuoteRef):
        return _ParentSpec(EntityType.QUOTE, QuoteModel, "quote", f"quotes/{entity.id}")
    raise TypeError(f"Unsupported attachment parent: {entity!r}")


def entity_type_of(entity: EntityRef) -> EntityType:
    return _parent_spec(entity).entity_type


def entity_ref(entity_type: EntityType, entity_id: int) -> EntityRef:
    if entity_type is EntityType.ORDER:
        return OrderRef(entity_id)
    if entity_type is EntityType.QUOTE:
        return QuoteRef(entity_id)
    raise TypeError(f"Unsupported entity type: {entity_type!r}")


@dataclass(slots=True)
class UploadedFile:
    """Upload as received from the client, before validation."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(slots=True)
class AttachmentRecord:
    id: int
    entity: EntityRef
    file_role: FileRole
    original_name: str
    stored_name: str
    storage_path: str
    mime_type: str
    size: int
    uploaded_by: int
    created_at: datetime


def _to_record(symbols: SymbolResolver, row: FileAttachmentModel) -> AttachmentRecord:
    entity_type = symbols.reverse_member(row.entity_type_id, EntityType, ENTITY_TYPE_CATEGORIES)
    return AttachmentRecord(
        id=row.id,
        entity=entity_ref(entity_type, row.entity_id),
        file_role=symbols.reverse_member(row.file_role_id, FileRole, FILE_ROLE_CATEGORIES),
        original_name=row.original_name,
        stored_name=row.stored_name,
        storage_path=row.storage_path,
        mime_type=row.mime_type,
        size=row.size,
        uploaded_by=row.uploaded_by,
        created_at=row.created_at,
    )


async def _parent_owner(session: AsyncSession, entity: EntityRef) -> int:
    spec = _parent_spec(entity)
    owner_id = await session.scalar(select(spec.model.user_id).where(spec.model.id == entity.id))
    if owner_id is None:
        raise NotFound(f"{spec.noun.capitalize()} not found")
    return owner_id


async def _rows_for(
    session: AsyncSession, symbols: SymbolResolver, entity: EntityRef
) -> list[FileAttachmentModel]:
    entity_type_id = symbols.resolve_member(ENTITY_TYPE_CATEGORIES, _parent_spec(entity).entity_type)
    stmt = (
        select(FileAttachmentModel)
        .where(
            FileAttachmentModel.entity_type_id == entity_type_id,
            FileAttachmentModel.entity_id == entity.id,
        )
        .order_by(FileAttachmentModel.created_at, FileAttachmentModel.id)
    )
    return list((await session.execute(stmt)).scalars().all())


async def _load_row(session: AsyncSession, file_id: int) -> FileAttachmentModel:
    row = await session.get(FileAttachmentModel, file_id)
    if row is None:
        raise NotFound("File not found")
    return row


def validate_upload(upload: UploadedFile, config: UploadConfig) -> None:
    """Raises ValidationError for an empty, oversized or disallowed upload."""
    if not upload.filename:
        raise ValidationError("No file provided")
    if upload.content_type not in config.allowed_mime_types:
        raise ValidationError(
            f"File type {upload.content_type} not allowed. "
            f"Allowed types: {', '.join(config.allowed_mime_types)}",
            errors={"file": "mime_type"},
        )
    if upload.size > config.max_bytes:
        raise ValidationError(
            f"File size {upload.size} exceeds maximum allowed size of {config.max_bytes} bytes",
            errors={"file": "size"},
        )


def _role_for(actor: Actor, requested: FileRole | None) -> FileRole:
    default = FileRole.ADMIN_RESPONSE if actor.is_admin else FileRole.CUSTOMER_UPLOAD
    if requested is None or requested is default or requested is FileRole.ATTACHMENT:
        return requested or default
    raise Forbidden(f"Cannot tag an upload as {requested.value}")


async def attach(
    session: AsyncSession,
    symbols: SymbolResolver,
    storage: FileStorage,
    entity: EntityRef,
    actor: Actor,
    upload: UploadedFile,
    role: FileRole | None = None,
    upload_config: UploadConfig | None = None,
) -> AttachmentRecord:
    """Store an upload against an order or quote.

    Admin uploads are tagged ADMIN_RESPONSE and owner uploads CUSTOMER_UPLOAD;
    ATTACHMENT is used only when asked for.

    Raises:
        NotFound: If the parent does not exist
        Forbidden: If the actor neither owns the parent nor is an admin
        ValidationError: If the upload breaks the type or size limits
    """
    spec = _parent_spec(entity)
    owner_id = await _parent_owner(session, entity)
    if not can_view(actor, owner_id):
        logger.warning(
            "attachment_upload_denied", entity=spec.noun, entity_id=entity.id, user_id=actor.user_id
        )
        raise Forbidden(f"You do not have permission to upload files to this {spec.noun}")

    validate_upload(upload, upload_config or get_config().upload)
    file_role = _role_for(actor, role)

    stored_name = generate_stored_name(upload.filename)
    key = await storage.save(spec.folder, stored_name, upload.data)

    row = FileAttachmentModel(
        entity_type_id=symbols.resolve_member(ENTITY_TYPE_CATEGORIES, spec.entity_type),
        entity_id=entity.id,
        file_role_id=symbols.resolve_member(FILE_ROLE_CATEGORIES, file_role),
        original_name=upload.filename,
        stored_name=stored_name,
        storage_path=key,
        mime_type=upload.content_type,
        size=upload.size,
        uploaded_by=actor.user_id,
    )
    session.add(row)
    try:
        await session.flush()
    except Exception:
        await storage.delete(key)
        raise

    logger.info(
        "attachment_uploaded",
        file_id=row.id,
        entity=spec.noun,
        entity_id=entity.id,
        file_role=file_role.value,
        size=upload.size,
        user_id=actor.user_id,
    )
    return _to_record(symbols, row)


async def list_for(
    session: AsyncSession, symbols: SymbolResolver, entity: EntityRef, actor: Actor
) -> list[AttachmentRecord]:
    """Files of one parent visible to ``actor``.

    Raises:
        NotFound: If the parent does not exist
        Forbidden: If the actor can see none of the parent's files
    """
    owner_id = await _parent_owner(session, entity)
    rows = await _rows_for(session, symbols, entity)

    if not can_view(actor, owner_id):
        rows = [row for row in rows if row.uploaded_by == actor.user_id]
        if not rows:
            raise Forbidden(
                f"You do not have permission to view files for this {_parent_spec(entity).noun}"
            )
    return [_to_record(symbols, row) for row in rows]


async def list_uploaded_by(
    session: AsyncSession, symbols: SymbolResolver, actor: Actor
) -> list[AttachmentRecord]:
    stmt = (
        select(FileAttachmentModel)
        .where(FileAttachmentModel.uploaded_by == actor.user_id)
        .order_by(FileAttachmentModel.created_at.desc(), FileAttachmentModel.id.desc())
    )
    rows = (await session.execute(stmt)).scalars().all()
    return [_to_record(symbols, row) for row in rows]


async def resolve_for_download(
    session: AsyncSession,
    symbols: SymbolResolver,
    storage: FileStorage,
    file_id: int,
    actor: Actor,
) -> AttachmentRecord:
    """Check access to a file and that its bytes still exist.

    A missing storage object is reported as NotFound, same as a missing row.

    Raises:
        NotFound: If the row, its parent or the stored object is missing
        Forbidden: If the actor may not see the file
    """
    row = await _load_row(session, file_id)
    record = _to_record(symbols, row)
    owner_id = await _parent_owner(session, record.entity)

    if not (can_view(actor, owner_id) or row.uploaded_by == actor.user_id):
        logger.warning("attachment_download_denied", file_id=file_id, user_id=actor.user_id)
        raise Forbidden("You do not have permission to access this file")

    if not storage.exists(row.storage_path):
        logger.warning("attachment_missing_from_storage", file_id=file_id, key=row.storage_path)
        raise NotFound("File not found")
    return record


async def remove(
    session: AsyncSession,
    symbols: SymbolResolver,
    storage: FileStorage,
    file_id: int,
    actor: Actor,
) -> None:
    """Admins or the uploader delete a file and its stored bytes.

    Raises:
        NotFound: If the file does not exist
        Forbidden: If the actor is neither admin nor uploader
    """
    row = await _load_row(session, file_id)
    if not (actor.is_admin or row.uploaded_by == actor.user_id):
        raise Forbidden("You do not have permission to delete this file")

    key = row.storage_path
    await session.delete(row)
    await session.flush()
    await storage.delete(key)

    logger.info("attachment_deleted", file_id=file_id, user_id=actor.user_id)


async def remove_all_for(
    session: AsyncSession, symbols: SymbolResolver, storage: FileStorage, entity: EntityRef
) -> int:
    """Delete every file of a parent; called when the parent itself is deleted."""
    rows = await _rows_for(session, symbols, entity)
    keys = [row.storage_path for row in rows]
    for row in rows:
        await session.delete(row)
    await session.flush()

    for key in keys:
        await storage.delete(key)
    return len(rows)
