"""Tests for the quote state machine, pricing and guarded quote operations."""

from __future__ import annotations

import re
from decimal import Decimal

import pytest

from stitchdesk.attachments import QuoteRef, UploadedFile, attach
from stitchdesk.conversion import convert_quote
from stitchdesk.db.models import FileAttachmentModel, QuoteModel
from stitchdesk.errors import (
    Forbidden,
    InvalidOperation,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from stitchdesk.models import QuoteCreate, QuotePricing, QuoteStatus, QuoteUpdate, ServiceType
from stitchdesk.quotes import (
    QuoteFilters,
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

PRICE = QuotePricing(price=Decimal("100.00"), remarks="Includes two revisions")


class TestTransitionTable:
    @pytest.mark.parametrize(
        "current, requested",
        [
            (QuoteStatus.PENDING, QuoteStatus.REJECTED),
            (QuoteStatus.PRICED, QuoteStatus.REJECTED),
            (QuoteStatus.REVISION_REQUESTED, QuoteStatus.PENDING),
            (QuoteStatus.REVISION_REQUESTED, QuoteStatus.REJECTED),
        ],
    )
    def test_allowed(self, current, requested):
        validate_quote_transition(current, requested)

    @pytest.mark.parametrize(
        "current, requested",
        [
            (QuoteStatus.PENDING, QuoteStatus.PRICED),
            (QuoteStatus.PRICED, QuoteStatus.CONVERTED),
            (QuoteStatus.CONVERTED, QuoteStatus.REJECTED),
            (QuoteStatus.REJECTED, QuoteStatus.PENDING),
        ],
    )
    def test_rejected(self, current, requested):
        with pytest.raises(InvalidTransition):
            validate_quote_transition(current, requested)


class TestCreateAndRead:
    @pytest.mark.asyncio
    async def test_created_pending(self, db_session, symbols, alice, quote_payload):
        quote = await create_quote(db_session, symbols, alice, quote_payload)

        assert quote.status is QuoteStatus.PENDING
        assert re.fullmatch(r"QT-\d{8}-\d{4}", quote.quote_no)
        assert quote.price is None
        assert quote.converted_order_id is None

    @pytest.mark.asyncio
    async def test_digitizing_without_fabric_fails(self, db_session, symbols, alice):
        payload = QuoteCreate(
            quote_type=ServiceType.DIGITIZING, design_name="Badge", number_of_colors=4
        )

        with pytest.raises(ValidationError) as exc_info:
            await create_quote(db_session, symbols, alice, payload)

        assert exc_info.value.errors == {"fabric": "required"}
        assert "quotes" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_stranger_cannot_view(self, db_session, symbols, alice, bob, quote_payload):
        quote = await create_quote(db_session, symbols, alice, quote_payload)

        with pytest.raises(Forbidden):
            await get_quote(db_session, symbols, bob, quote.id)
        with pytest.raises(Forbidden):
            await get_quote_by_number(db_session, symbols, bob, quote.quote_no)

    @pytest.mark.asyncio
    async def test_missing_quote(self, db_session, symbols, admin):
        with pytest.raises(NotFound):
            await get_quote(db_session, symbols, admin, 404)

    @pytest.mark.asyncio
    async def test_listing_scoped_to_owner(self, db_session, symbols, alice, bob, admin, quote_payload):
        await create_quote(db_session, symbols, alice, quote_payload)
        await create_quote(db_session, symbols, bob, quote_payload)

        assert (await list_quotes(db_session, symbols, admin)).total == 2
        assert (await list_quotes(db_session, symbols, alice)).total == 1
        assert (await list_my_quotes(db_session, symbols, bob)).quotes[0].user_id == bob.user_id
        assert await count_quotes(db_session, symbols, admin, QuoteFilters(status=QuoteStatus.PENDING)) == 2


class TestPricing:
    @pytest.mark.asyncio
    async def test_admin_prices_pending_quote(self, db_session, symbols, alice, admin, quote_payload):
        quote = await create_quote(db_session, symbols, alice, quote_payload)

        priced = await set_pricing(db_session, symbols, admin, quote.id, PRICE)

        assert priced.status is QuoteStatus.PRICED
        assert priced.price == Decimal("100.00")
        assert priced.currency == "USD"
        assert priced.remarks == "Includes two revisions"
        assert priced.priced_at is not None

    @pytest.mark.asyncio
    async def test_explicit_currency(self, db_session, symbols, alice, admin, quote_payload):
        quote = await create_quote(db_session, symbols, alice, quote_payload)

        priced = await set_pricing(
            db_session, symbols, admin, quote.id, QuotePricing(price=Decimal("45.5"), currency="eur")
        )

        assert priced.currency == "EUR"

    @pytest.mark.asyncio
    async def test_customer_cannot_price(self, db_session, symbols, alice, quote_payload):
        quote = await create_quote(db_session, symbols, alice, quote_payload)

        with pytest.raises(Forbidden):
            await set_pricing(db_session, symbols, alice, quote.id, PRICE)

    @pytest.mark.asyncio
    async def test_repricing_rejected(self, db_session, symbols, alice, admin, quote_payload):
        quote = await create_quote(db_session, symbols, alice, quote_payload)
        await set_pricing(db_session, symbols, admin, quote.id, PRICE)

        with pytest.raises(InvalidOperation):
            await set_pricing(
                db_session, symbols, admin, quote.id, QuotePricing(price=Decimal("80.00"))
            )

        assert (await get_quote(db_session, symbols, admin, quote.id)).price == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_row_stored_under_fallback_category_is_priced(
        self, db_session, symbols, alice, admin, quote_payload
    ):
        quote = await create_quote(db_session, symbols, alice, quote_payload)
        row = await db_session.get(QuoteModel, quote.id)
        row.status_id = symbols.resolve("order_status", "PENDING")
        await db_session.flush()

        pending = await list_quotes(db_session, symbols, admin, QuoteFilters(status=QuoteStatus.PENDING))
        assert [q.id for q in pending.quotes] == [quote.id]

        priced = await set_pricing(db_session, symbols, admin, quote.id, QuotePricing(price=Decimal("10.00")))

        assert priced.status is QuoteStatus.PRICED
        assert await count_quotes(db_session, symbols, admin, QuoteFilters(status=QuoteStatus.PENDING)) == 0

    def test_price_must_be_positive(self):
        with pytest.raises(ValueError):
            QuotePricing(price=Decimal("0"))


class TestUpdate:
    @pytest.mark.asyncio
    async def test_owner_edits_pending(self, db_session, symbols, alice, quote_payload):
        quote = await create_quote(db_session, symbols, alice, quote_payload)

        updated = await update_quote(
            db_session, symbols, alice, quote.id, QuoteUpdate(number_of_colors=6)
        )

        assert updated.number_of_colors == 6

    @pytest.mark.asyncio
    async def test_owner_locked_after_pricing(self, db_session, symbols, alice, admin, quote_payload):
        quote = await create_quote(db_session, symbols, alice, quote_payload)
        await set_pricing(db_session, symbols, admin, quote.id, PRICE)

        with pytest.raises(Forbidden):
            await update_quote(db_session, symbols, alice, quote.id, QuoteUpdate(instruction="x"))

    @pytest.mark.asyncio
    async def test_admin_edits_priced_quote(self, db_session, symbols, alice, admin, quote_payload):
        quote = await create_quote(db_session, symbols, alice, quote_payload)
        await set_pricing(db_session, symbols, admin, quote.id, PRICE)

        updated = await update_quote(
            db_session, symbols, admin, quote.id, QuoteUpdate(instruction="Use thread chart B")
        )

        assert updated.instruction == "Use thread chart B"
        assert updated.status is QuoteStatus.PRICED

    @pytest.mark.asyncio
    async def test_admin_cannot_edit_terminal_quote(
        self, db_session, symbols, alice, admin, quote_payload
    ):
        quote = await create_quote(db_session, symbols, alice, quote_payload)
        await update_quote_status(db_session, symbols, admin, quote.id, QuoteStatus.REJECTED)

        with pytest.raises(InvalidOperation):
            await update_quote(db_session, symbols, admin, quote.id, QuoteUpdate(instruction="x"))

    @pytest.mark.asyncio
    async def test_type_change_revalidated(self, db_session, symbols, alice, quote_payload):
        quote = await create_quote(db_session, symbols, alice, quote_payload)

        with pytest.raises(ValidationError):
            await update_quote(
                db_session, symbols, alice, quote.id, QuoteUpdate(quote_type=ServiceType.VECTOR)
            )

    @pytest.mark.asyncio
    async def test_stranger_cannot_edit(self, db_session, symbols, alice, bob, quote_payload):
        quote = await create_quote(db_session, symbols, alice, quote_payload)

        with pytest.raises(Forbidden):
            await update_quote(db_session, symbols, bob, quote.id, QuoteUpdate(instruction="x"))


class TestRevisionAndStatus:
    @pytest.mark.asyncio
    async def test_revision_round_trip_keeps_price(
        self, db_session, symbols, alice, admin, quote_payload
    ):
        quote = await create_quote(db_session, symbols, alice, quote_payload)
        await set_pricing(db_session, symbols, admin, quote.id, PRICE)

        revised = await request_revision(db_session, symbols, alice, quote.id)
        assert revised.status is QuoteStatus.REVISION_REQUESTED

        reopened = await update_quote_status(
            db_session, symbols, admin, quote.id, QuoteStatus.PENDING
        )
        assert reopened.status is QuoteStatus.PENDING
        assert reopened.price == Decimal("100.00")

        repriced = await set_pricing(
            db_session, symbols, admin, quote.id, QuotePricing(price=Decimal("90.00"))
        )
        assert repriced.price == Decimal("90.00")

    @pytest.mark.asyncio
    async def test_revision_needs_priced_quote(self, db_session, symbols, alice, quote_payload):
        quote = await create_quote(db_session, symbols, alice, quote_payload)

        with pytest.raises(InvalidTransition):
            await request_revision(db_session, symbols, alice, quote.id)

    @pytest.mark.asyncio
    async def test_stranger_cannot_request_revision(
        self, db_session, symbols, alice, bob, admin, quote_payload
    ):
        quote = await create_quote(db_session, symbols, alice, quote_payload)
        await set_pricing(db_session, symbols, admin, quote.id, PRICE)

        with pytest.raises(Forbidden):
            await request_revision(db_session, symbols, bob, quote.id)

    @pytest.mark.asyncio
    async def test_status_action_is_admin_only(self, db_session, symbols, alice, quote_payload):
        quote = await create_quote(db_session, symbols, alice, quote_payload)

        with pytest.raises(Forbidden):
            await update_quote_status(db_session, symbols, alice, quote.id, QuoteStatus.REJECTED)

    @pytest.mark.asyncio
    async def test_priced_only_reachable_through_pricing(
        self, db_session, symbols, alice, admin, quote_payload
    ):
        quote = await create_quote(db_session, symbols, alice, quote_payload)

        with pytest.raises(InvalidTransition):
            await update_quote_status(db_session, symbols, admin, quote.id, QuoteStatus.PRICED)


class TestDelete:
    @pytest.mark.asyncio
    async def test_admin_only(self, db_session, symbols, storage, alice, quote_payload):
        quote = await create_quote(db_session, symbols, alice, quote_payload)

        with pytest.raises(Forbidden):
            await delete_quote(db_session, symbols, storage, alice, quote.id)

    @pytest.mark.asyncio
    async def test_converted_quote_cannot_be_deleted(
        self, db_session, symbols, storage, alice, admin, quote_payload
    ):
        quote = await create_quote(db_session, symbols, alice, quote_payload)
        await set_pricing(db_session, symbols, admin, quote.id, PRICE)
        await convert_quote(db_session, symbols, quote.id, alice)

        with pytest.raises(InvalidOperation):
            await delete_quote(db_session, symbols, storage, admin, quote.id)

    @pytest.mark.asyncio
    async def test_delete_cascades_attachments(
        self, db_session, symbols, storage, alice, admin, quote_payload
    ):
        quote = await create_quote(db_session, symbols, alice, quote_payload)
        record = await attach(
            db_session,
            symbols,
            storage,
            QuoteRef(quote.id),
            alice,
            UploadedFile("badge.pdf", "application/pdf", b"%PDF-1.7"),
        )

        await delete_quote(db_session, symbols, storage, admin, quote.id)

        assert await db_session.get(QuoteModel, quote.id) is None
        assert await db_session.get(FileAttachmentModel, record.id) is None
        assert not storage.exists(record.storage_path)
