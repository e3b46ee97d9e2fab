"""Tests for converting priced quotes into orders."""

from __future__ import annotations

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import func, select, update

from stitchdesk.conversion import convert_quote
from stitchdesk.db.models import OrderModel, QuoteModel
from stitchdesk.errors import Forbidden, InvalidOperation
from stitchdesk.models import OrderStatus, QuotePricing, QuoteStatus, ServiceType, Unit
from stitchdesk.orders import get_order
from stitchdesk.quotes import create_quote, set_pricing, update_quote_status
from stitchdesk.quotes.lifecycle import write_quote_status


async def _priced_quote(session_factory, symbols, owner, admin, payload) -> int:
    """Create and price a quote, committed so other sessions can see it."""
    async with session_factory() as session:
        quote = await create_quote(session, symbols, owner, payload)
        await set_pricing(session, symbols, admin, quote.id, QuotePricing(price=Decimal("100.00")))
        await session.commit()
        return quote.id


async def _order_count(session_factory) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count(OrderModel.id)))


@pytest.mark.asyncio
async def test_owner_converts_priced_quote(session_factory, symbols, alice, admin, quote_payload):
    quote_id = await _priced_quote(session_factory, symbols, alice, admin, quote_payload)

    async with session_factory() as session:
        quote, order = await convert_quote(session, symbols, quote_id, alice)
        await session.commit()

    assert quote.status is QuoteStatus.CONVERTED
    assert quote.converted_order_id == order.id
    assert quote.price == Decimal("100.00")

    assert order.status is OrderStatus.IN_PROGRESS
    assert order.user_id == alice.user_id
    assert order.order_type is ServiceType.DIGITIZING
    assert order.design_name == quote_payload.design_name
    assert order.unit is Unit.CM
    assert order.number_of_colors == quote_payload.number_of_colors
    assert order.fabric == quote_payload.fabric
    assert order.placement == ["Cap Front"]

    async with session_factory() as session:
        stored = await get_order(session, symbols, alice, order.id)
        assert stored.order_no == order.order_no


@pytest.mark.asyncio
async def test_admin_may_convert(session_factory, symbols, alice, admin, quote_payload):
    quote_id = await _priced_quote(session_factory, symbols, alice, admin, quote_payload)

    async with session_factory() as session:
        _, order = await convert_quote(session, symbols, quote_id, admin)

    assert order.user_id == alice.user_id


@pytest.mark.asyncio
async def test_stranger_cannot_convert(session_factory, symbols, alice, bob, admin, quote_payload):
    quote_id = await _priced_quote(session_factory, symbols, alice, admin, quote_payload)

    async with session_factory() as session:
        with pytest.raises(Forbidden):
            await convert_quote(session, symbols, quote_id, bob)

    assert await _order_count(session_factory) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [QuoteStatus.PENDING, QuoteStatus.REJECTED])
async def test_only_priced_quotes_convert(db_session, symbols, alice, admin, quote_payload, status):
    quote = await create_quote(db_session, symbols, alice, quote_payload)
    if status is QuoteStatus.REJECTED:
        await update_quote_status(db_session, symbols, admin, quote.id, status)

    with pytest.raises(InvalidOperation, match="Can only convert priced quotes"):
        await convert_quote(db_session, symbols, quote.id, alice)


@pytest.mark.asyncio
async def test_second_conversion_fails(session_factory, symbols, alice, admin, quote_payload):
    quote_id = await _priced_quote(session_factory, symbols, alice, admin, quote_payload)

    async with session_factory() as session:
        await convert_quote(session, symbols, quote_id, alice)
        await session.commit()

    async with session_factory() as session:
        with pytest.raises(InvalidOperation):
            await convert_quote(session, symbols, quote_id, alice)

    assert await _order_count(session_factory) == 1


@pytest.mark.asyncio
async def test_conversion_from_stale_read_fails(
    session_factory, symbols, alice, admin, quote_payload
):
    quote_id = await _priced_quote(session_factory, symbols, alice, admin, quote_payload)

    async with session_factory() as first, session_factory() as second:
        # Both requests observe PRICED before either converts
        stale = await second.get(QuoteModel, quote_id)
        assert stale.status_id == symbols.resolve("quote_status", "PRICED")

        await convert_quote(first, symbols, quote_id, alice)
        await first.commit()

        with pytest.raises(InvalidOperation):
            await convert_quote(second, symbols, quote_id, alice)

    assert await _order_count(session_factory) == 1
    async with session_factory() as session:
        quote = await session.get(QuoteModel, quote_id)
        assert quote.converted_order_id is not None


@pytest.mark.asyncio
async def test_claim_refuses_model_in_another_state(db_session, symbols, alice, quote_payload):
    quote = await create_quote(db_session, symbols, alice, quote_payload)
    row = await db_session.get(QuoteModel, quote.id)

    # The row is PENDING, so a claim expecting PRICED must not write
    with pytest.raises(InvalidOperation):
        await write_quote_status(
            db_session, symbols, row, QuoteStatus.PRICED, QuoteStatus.CONVERTED
        )

    await db_session.refresh(row)
    assert row.status_id == symbols.resolve("quote_status", "PENDING")


@pytest.mark.asyncio
async def test_claim_is_compare_and_set(db_session, symbols, alice, quote_payload):
    quote = await create_quote(db_session, symbols, alice, quote_payload)
    row = await db_session.get(QuoteModel, quote.id)

    # Move the stored row on without touching the loaded model
    rejected_id = symbols.resolve("quote_status", "REJECTED")
    await db_session.execute(
        update(QuoteModel)
        .where(QuoteModel.id == quote.id)
        .values(status_id=rejected_id)
        .execution_options(synchronize_session=False)
    )
    assert row.status_id == symbols.resolve("quote_status", "PENDING")

    with pytest.raises(InvalidOperation, match="changed by another request"):
        await write_quote_status(db_session, symbols, row, QuoteStatus.PENDING, QuoteStatus.PRICED)

    await db_session.refresh(row)
    assert row.status_id == rejected_id


async def _convert_and_commit(session_factory, symbols, quote_id, actor):
    async with session_factory() as session:
        result = await convert_quote(session, symbols, quote_id, actor)
        await session.commit()
        return result


@pytest.mark.asyncio
async def test_simultaneous_conversions_create_one_order(
    session_factory, symbols, alice, admin, quote_payload
):
    quote_id = await _priced_quote(session_factory, symbols, alice, admin, quote_payload)

    results = await asyncio.gather(
        _convert_and_commit(session_factory, symbols, quote_id, alice),
        _convert_and_commit(session_factory, symbols, quote_id, admin),
        return_exceptions=True,
    )

    converted = [r for r in results if isinstance(r, tuple)]
    refused = [r for r in results if isinstance(r, InvalidOperation)]
    assert len(converted) == 1
    assert len(refused) == 1
    assert await _order_count(session_factory) == 1

    quote, order = converted[0]
    async with session_factory() as session:
        stored = await session.get(QuoteModel, quote_id)
        assert stored.status_id == symbols.resolve("quote_status", "CONVERTED")
        assert stored.converted_order_id == order.id


@pytest.mark.asyncio
async def test_failed_order_insert_rolls_back_claim(
    session_factory, symbols, alice, admin, quote_payload, monkeypatch
):
    quote_id = await _priced_quote(session_factory, symbols, alice, admin, quote_payload)

    async def broken_insert(*args, **kwargs):
        raise RuntimeError("order table unavailable")

    monkeypatch.setattr("stitchdesk.orders.repository.insert_order", broken_insert)

    async with session_factory() as session:
        with pytest.raises(RuntimeError, match="order table unavailable"):
            await convert_quote(session, symbols, quote_id, alice)

    async with session_factory() as session:
        quote = await session.get(QuoteModel, quote_id)
        assert quote.status_id == symbols.resolve("quote_status", "PRICED")
        assert quote.converted_order_id is None
    assert await _order_count(session_factory) == 0
