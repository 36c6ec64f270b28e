"""Tests for the transactional order writer."""

from decimal import Decimal

import pytest
from sqlalchemy import event, func, select
from sqlalchemy.exc import SQLAlchemyError

from ordersync.core.errors import WriteFailed
from ordersync.core.models import AddressRecord, OrderItemRecord, OrderRecord
from ordersync.core.normalizer import normalize
from ordersync.core.writer import IngestionWriter, WriteOutcome


def row_counts(session_factory) -> dict[str, int]:
    with session_factory() as db:
        return {
            "orders": db.scalar(select(func.count()).select_from(OrderRecord)),
            "addresses": db.scalar(select(func.count()).select_from(AddressRecord)),
            "items": db.scalar(select(func.count()).select_from(OrderItemRecord)),
        }


def test_write_inserts_full_row_set(session_factory, make_order) -> None:
    normalized = normalize(make_order())

    outcome = IngestionWriter(session_factory).write(normalized)

    assert outcome is WriteOutcome.INSERTED
    assert row_counts(session_factory) == {"orders": 1, "addresses": 2, "items": 2}
    with session_factory() as db:
        order = db.get(OrderRecord, normalized.order_id)
        assert order.total_price == Decimal("19.99")
        assert order.quantity == 2
        assert order.buyer_name == "Ada Lovelace"
        shipping = db.get(AddressRecord, order.shipping_address_id)
        billing = db.get(AddressRecord, order.billing_address_id)
        assert shipping.address_line_1 == "Main St 12"
        assert billing.address_line_1 == "PO Box 5"
        items = db.scalars(
            select(OrderItemRecord).where(OrderItemRecord.order_id == order.order_id)
        ).all()
        assert sorted(item.sku for item in items) == ["CST-1", "MUG-1"]


def test_replay_leaves_row_counts_unchanged(session_factory, make_order) -> None:
    writer = IngestionWriter(session_factory)
    writer.write(normalize(make_order()))
    before = row_counts(session_factory)

    outcome = writer.write(normalize(make_order()))

    assert outcome is WriteOutcome.REPLACED
    assert row_counts(session_factory) == before


def test_replay_replaces_changed_rows(session_factory, make_order) -> None:
    writer = IngestionWriter(session_factory)
    writer.write(normalize(make_order()))

    updated = make_order(paymentStatus="FULLY_REFUNDED")
    updated["lineItems"] = updated["lineItems"][:1]
    writer.write(normalize(updated))

    with session_factory() as db:
        order = db.scalars(select(OrderRecord)).one()
        assert order.payment_status == "FULLY_REFUNDED"
    assert row_counts(session_factory) == {"orders": 1, "addresses": 2, "items": 1}


def test_distinct_orders_are_kept_apart(session_factory, make_order) -> None:
    writer = IngestionWriter(session_factory)
    writer.write(normalize(make_order(order_id="order-1", number=1)))
    writer.write(normalize(make_order(order_id="order-2", number=2)))

    assert row_counts(session_factory) == {"orders": 2, "addresses": 4, "items": 4}


def test_failed_item_rolls_back_whole_order(session_factory, make_order) -> None:
    """If the 2nd of 3 item inserts fails, nothing of the order stays committed."""
    order = make_order()
    order["lineItems"].append(
        {
            "index": 3,
            "quantity": 1,
            "name": "Spoon",
            "sku": "SPN-1",
            "priceData": {"price": "1.00", "totalPrice": "1.00"},
        }
    )
    normalized = normalize(order)
    failing_sku = normalized.items[1].sku
    inserted = []

    def fail_on_second_item(mapper, connection, target) -> None:
        if target.sku == failing_sku:
            raise SQLAlchemyError("simulated item insert failure")
        inserted.append(target.sku)

    event.listen(OrderItemRecord, "before_insert", fail_on_second_item)
    try:
        with pytest.raises(WriteFailed):
            IngestionWriter(session_factory).write(normalized)
    finally:
        event.remove(OrderItemRecord, "before_insert", fail_on_second_item)

    assert inserted == ["MUG-1"]
    assert row_counts(session_factory) == {"orders": 0, "addresses": 0, "items": 0}


def test_failed_replay_keeps_previous_rows(session_factory, make_order) -> None:
    writer = IngestionWriter(session_factory)
    first = normalize(make_order())
    writer.write(first)

    def fail(mapper, connection, target) -> None:
        raise SQLAlchemyError("simulated failure")

    event.listen(OrderItemRecord, "before_insert", fail)
    try:
        with pytest.raises(WriteFailed):
            writer.write(normalize(make_order()))
    finally:
        event.remove(OrderItemRecord, "before_insert", fail)

    assert row_counts(session_factory) == {"orders": 1, "addresses": 2, "items": 2}
    with session_factory() as db:
        assert db.scalars(select(OrderRecord)).one().order_id == first.order_id
