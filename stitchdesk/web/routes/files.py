"""File attachment routes.

Routes:
- POST   /api/files/orders/{order_id}/upload - Upload a file to an order
- POST   /api/files/quotes/{quote_id}/upload - Upload a file to a quote
- GET    /api/files/orders/{order_id}        - List an order's files
- GET    /api/files/quotes/{quote_id}        - List a quote's files
- GET    /api/files/mine                     - List files the caller uploaded
- GET    /api/files/{file_id}/download       - Download a file
- DELETE /api/files/{file_id}                - Delete a file
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from stitchdesk.attachments import (
    EntityRef,
    FileStorage,
    OrderRef,
    QuoteRef,
    UploadedFile,
    attach,
    list_for,
    list_uploaded_by,
    remove,
    resolve_for_download,
)
from stitchdesk.models import Actor, FileRole
from stitchdesk.symbols import SymbolResolver
from stitchdesk.web.dependencies import get_actor, get_db, get_storage, get_symbols
from stitchdesk.web.models import AttachmentOut, success

router = APIRouter(prefix="/api/files", tags=["files"])


async def _upload(
    entity: EntityRef,
    file: UploadFile,
    role: FileRole | None,
    actor: Actor,
    db: AsyncSession,
    symbols: SymbolResolver,
    storage: FileStorage,
) -> dict:
    upload = UploadedFile(
        filename=file.filename or "",
        content_type=file.content_type or "application/octet-stream",
        data=await file.read(),
    )
    record = await attach(db, symbols, storage, entity, actor, upload, role=role)
    return success(AttachmentOut.from_record(record), "File uploaded successfully")


@router.post("/orders/{order_id}/upload", status_code=status.HTTP_201_CREATED)
async def upload_order_file(
    order_id: int,
    file: UploadFile = File(...),
    role: FileRole | None = Form(default=None),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
    storage: FileStorage = Depends(get_storage),
):
    return await _upload(OrderRef(order_id), file, role, actor, db, symbols, storage)


@router.post("/quotes/{quote_id}/upload", status_code=status.HTTP_201_CREATED)
async def upload_quote_file(
    quote_id: int,
    file: UploadFile = File(...),
    role: FileRole | None = Form(default=None),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
    storage: FileStorage = Depends(get_storage),
):
    return await _upload(QuoteRef(quote_id), file, role, actor, db, symbols, storage)


@router.get("/orders/{order_id}")
async def order_files(
    order_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
):
    records = await list_for(db, symbols, OrderRef(order_id), actor)
    return success([AttachmentOut.from_record(r) for r in records])


@router.get("/quotes/{quote_id}")
async def quote_files(
    quote_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
):
    records = await list_for(db, symbols, QuoteRef(quote_id), actor)
    return success([AttachmentOut.from_record(r) for r in records])


@router.get("/mine")
async def my_files(
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
):
    records = await list_uploaded_by(db, symbols, actor)
    return success([AttachmentOut.from_record(r) for r in records])


@router.get("/{file_id}/download")
async def download(
    file_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
    storage: FileStorage = Depends(get_storage),
):
    record = await resolve_for_download(db, symbols, storage, file_id, actor)
    return FileResponse(
        storage.path_for(record.storage_path),
        media_type=record.mime_type,
        filename=record.original_name,
    )


@router.delete("/{file_id}")
async def delete(
    file_id: int,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    symbols: SymbolResolver = Depends(get_symbols),
    storage: FileStorage = Depends(get_storage),
):
    await remove(db, symbols, storage, file_id, actor)
    return success(None, "File deleted successfully")
