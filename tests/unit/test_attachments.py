"""Tests for attachment visibility, role tagging and storage handling."""

from __future__ import annotations

import re

import pytest

from stitchdesk.attachments import (
    LocalFileStorage,
    OrderRef,
    QuoteRef,
    UploadedFile,
    attach,
    entity_ref,
    generate_stored_name,
    list_for,
    list_uploaded_by,
    remove,
    resolve_for_download,
)
from stitchdesk.config import UploadConfig
from stitchdesk.errors import Forbidden, NotFound, ValidationError
from stitchdesk.models import EntityType, FileRole
from stitchdesk.orders import create_order
from stitchdesk.quotes import create_quote


def _png(name: str = "artwork.png") -> UploadedFile:
    return UploadedFile(filename=name, content_type="image/png", data=b"\x89PNG\r\n\x1a\n")


class TestStoredNames:
    def test_format(self):
        name = generate_stored_name("Team Logo.final.PNG", now_ms=1700000000000)

        assert re.fullmatch(r"Team Logo\.final_1700000000000_[a-z0-9]{11}\.PNG", name)

    def test_directory_parts_are_dropped(self):
        name = generate_stored_name("../../etc/passwd")

        assert name.startswith("passwd_")
        assert "/" not in name

    def test_names_are_unique(self):
        assert generate_stored_name("a.png", now_ms=1) != generate_stored_name("a.png", now_ms=1)


class TestLocalStorage:
    @pytest.mark.asyncio
    async def test_save_exists_delete(self, tmp_path):
        storage = LocalFileStorage(tmp_path)

        key = await storage.save("orders/1", "a.png", b"data")

        assert key == "orders/1/a.png"
        assert storage.exists(key)
        assert storage.path_for(key).read_bytes() == b"data"
        assert await storage.delete(key) is True
        assert await storage.delete(key) is False
        assert not storage.exists(key)

    def test_keys_cannot_escape_root(self, tmp_path):
        storage = LocalFileStorage(tmp_path / "uploads")

        with pytest.raises(ValueError):
            storage.path_for("../secrets.txt")
        assert storage.exists("../secrets.txt") is False


class TestEntityRefs:
    def test_entity_ref_from_type(self):
        assert entity_ref(EntityType.ORDER, 3) == OrderRef(3)
        assert entity_ref(EntityType.QUOTE, 3) == QuoteRef(3)
        assert OrderRef(3) != QuoteRef(3)

    @pytest.mark.asyncio
    async def test_unknown_parent_kind(self, db_session, symbols, storage, admin):
        with pytest.raises(TypeError):
            await attach(db_session, symbols, storage, ("ORDER", 1), admin, _png())


class TestAttach:
    @pytest.mark.asyncio
    async def test_owner_upload_tagged_customer(
        self, db_session, symbols, storage, alice, order_payload
    ):
        order = await create_order(db_session, symbols, alice, order_payload)

        record = await attach(db_session, symbols, storage, OrderRef(order.id), alice, _png())

        assert record.file_role is FileRole.CUSTOMER_UPLOAD
        assert record.entity == OrderRef(order.id)
        assert record.original_name == "artwork.png"
        assert record.size == 8
        assert record.storage_path.startswith(f"orders/{order.id}/")
        assert storage.exists(record.storage_path)

    @pytest.mark.asyncio
    async def test_stored_bytes_removed_when_row_insert_fails(
        self, db_session, symbols, storage, alice, order_payload, monkeypatch
    ):
        order = await create_order(db_session, symbols, alice, order_payload)

        async def broken_flush(*args, **kwargs):
            raise RuntimeError("attachment table unavailable")

        monkeypatch.setattr(db_session, "flush", broken_flush)

        with pytest.raises(RuntimeError, match="attachment table unavailable"):
            await attach(db_session, symbols, storage, OrderRef(order.id), alice, _png())

        assert list((storage.root / "orders" / str(order.id)).iterdir()) == []

    @pytest.mark.asyncio
    async def test_admin_upload_tagged_response(
        self, db_session, symbols, storage, alice, admin, quote_payload
    ):
        quote = await create_quote(db_session, symbols, alice, quote_payload)

        record = await attach(db_session, symbols, storage, QuoteRef(quote.id), admin, _png())

        assert record.file_role is FileRole.ADMIN_RESPONSE
        assert record.storage_path.startswith(f"quotes/{quote.id}/")

    @pytest.mark.asyncio
    async def test_attachment_role_only_when_requested(
        self, db_session, symbols, storage, alice, order_payload
    ):
        order = await create_order(db_session, symbols, alice, order_payload)

        record = await attach(
            db_session, symbols, storage, OrderRef(order.id), alice, _png(), role=FileRole.ATTACHMENT
        )
        assert record.file_role is FileRole.ATTACHMENT

        with pytest.raises(Forbidden):
            await attach(
                db_session,
                symbols,
                storage,
                OrderRef(order.id),
                alice,
                _png(),
                role=FileRole.ADMIN_RESPONSE,
            )

    @pytest.mark.asyncio
    async def test_missing_parent(self, db_session, symbols, storage, admin):
        with pytest.raises(NotFound, match="Quote not found"):
            await attach(db_session, symbols, storage, QuoteRef(77), admin, _png())

    @pytest.mark.asyncio
    async def test_stranger_cannot_upload(
        self, db_session, symbols, storage, alice, bob, order_payload
    ):
        order = await create_order(db_session, symbols, alice, order_payload)

        with pytest.raises(Forbidden):
            await attach(db_session, symbols, storage, OrderRef(order.id), bob, _png())

    @pytest.mark.asyncio
    async def test_disallowed_type(self, db_session, symbols, storage, alice, order_payload):
        order = await create_order(db_session, symbols, alice, order_payload)
        upload = UploadedFile("run.sh", "application/x-sh", b"#!/bin/sh")

        with pytest.raises(ValidationError, match="not allowed"):
            await attach(db_session, symbols, storage, OrderRef(order.id), alice, upload)

    @pytest.mark.asyncio
    async def test_oversized_upload(self, db_session, symbols, storage, alice, order_payload):
        order = await create_order(db_session, symbols, alice, order_payload)
        limits = UploadConfig(max_bytes=4)

        with pytest.raises(ValidationError, match="exceeds"):
            await attach(
                db_session, symbols, storage, OrderRef(order.id), alice, _png(), upload_config=limits
            )
        assert not storage.root.exists() or not any(storage.root.rglob("*.png"))


class TestVisibility:
    @pytest.mark.asyncio
    async def test_stranger_cannot_download_owner_file(
        self, db_session, symbols, storage, alice, bob, quote_payload
    ):
        quote = await create_quote(db_session, symbols, alice, quote_payload)
        record = await attach(db_session, symbols, storage, QuoteRef(quote.id), alice, _png())

        with pytest.raises(Forbidden):
            await resolve_for_download(db_session, symbols, storage, record.id, bob)

    @pytest.mark.asyncio
    async def test_owner_and_admin_download(
        self, db_session, symbols, storage, alice, admin, quote_payload
    ):
        quote = await create_quote(db_session, symbols, alice, quote_payload)
        record = await attach(db_session, symbols, storage, QuoteRef(quote.id), admin, _png())

        for actor in (alice, admin):
            found = await resolve_for_download(db_session, symbols, storage, record.id, actor)
            assert found.id == record.id

    @pytest.mark.asyncio
    async def test_missing_storage_object_is_not_found(
        self, db_session, symbols, storage, alice, order_payload
    ):
        order = await create_order(db_session, symbols, alice, order_payload)
        record = await attach(db_session, symbols, storage, OrderRef(order.id), alice, _png())
        storage.path_for(record.storage_path).unlink()

        with pytest.raises(NotFound):
            await resolve_for_download(db_session, symbols, storage, record.id, alice)

    @pytest.mark.asyncio
    async def test_missing_file_row(self, db_session, symbols, storage, admin):
        with pytest.raises(NotFound):
            await resolve_for_download(db_session, symbols, storage, 123, admin)

    @pytest.mark.asyncio
    async def test_list_for_owner_and_stranger(
        self, db_session, symbols, storage, alice, bob, admin, order_payload
    ):
        order = await create_order(db_session, symbols, alice, order_payload)
        await attach(db_session, symbols, storage, OrderRef(order.id), alice, _png("a.png"))
        await attach(db_session, symbols, storage, OrderRef(order.id), admin, _png("b.png"))

        owner_view = await list_for(db_session, symbols, OrderRef(order.id), alice)
        assert [r.original_name for r in owner_view] == ["a.png", "b.png"]

        with pytest.raises(Forbidden):
            await list_for(db_session, symbols, OrderRef(order.id), bob)

    @pytest.mark.asyncio
    async def test_list_uploaded_by(self, db_session, symbols, storage, alice, admin, order_payload):
        order = await create_order(db_session, symbols, alice, order_payload)
        await attach(db_session, symbols, storage, OrderRef(order.id), alice, _png("mine.png"))
        await attach(db_session, symbols, storage, OrderRef(order.id), admin, _png("theirs.png"))

        mine = await list_uploaded_by(db_session, symbols, alice)

        assert [r.original_name for r in mine] == ["mine.png"]


class TestRemove:
    @pytest.mark.asyncio
    async def test_uploader_removes(self, db_session, symbols, storage, alice, order_payload):
        order = await create_order(db_session, symbols, alice, order_payload)
        record = await attach(db_session, symbols, storage, OrderRef(order.id), alice, _png())

        await remove(db_session, symbols, storage, record.id, alice)

        assert not storage.exists(record.storage_path)
        with pytest.raises(NotFound):
            await remove(db_session, symbols, storage, record.id, alice)

    @pytest.mark.asyncio
    async def test_owner_cannot_remove_admin_file(
        self, db_session, symbols, storage, alice, admin, order_payload
    ):
        order = await create_order(db_session, symbols, alice, order_payload)
        record = await attach(db_session, symbols, storage, OrderRef(order.id), admin, _png())

        with pytest.raises(Forbidden):
            await remove(db_session, symbols, storage, record.id, alice)

        await remove(db_session, symbols, storage, record.id, admin)
