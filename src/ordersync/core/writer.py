"""Transactional write of normalized orders."""

import logging
from enum import Enum

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ordersync.core.errors import WriteFailed
from ordersync.core.models import AddressRecord, OrderItemRecord, OrderRecord
from ordersync.core.normalizer import NormalizedAddress, NormalizedOrder

logger = logging.getLogger("writer")


class WriteOutcome(str, Enum):
    INSERTED = "INSERTED"
    REPLACED = "REPLACED"


def _address_row(address: NormalizedAddress) -> AddressRecord:
    return AddressRecord(
        address_id=address.address_id,
        city=address.city,
        zip_code=address.zip_code,
        country=address.country,
        address_line_1=address.address_line_1,
        address_line_2=address.address_line_2,
    )


class IngestionWriter:
    """
    Persists one normalized order per transaction.

    Rows are inserted in foreign-key order: addresses, then the order, then
    its items. An order that was ingested before (same Wix order id) has its
    previous rows deleted in the same transaction, so replays never
    duplicate rows.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    def write(self, order: NormalizedOrder) -> WriteOutcome:
        """
        Write the full row set of one order, or nothing.

        Raises:
            WriteFailed: If any statement fails; the transaction is rolled back.
        """
        try:
            with self.session_factory.begin() as db:
                replaced = self._delete_existing(db, order.provider_order_id)

                db.add(_address_row(order.billing_address))
                db.add(_address_row(order.shipping_address))
                db.flush()

                db.add(
                    OrderRecord(
                        order_id=order.order_id,
                        provider_order_id=order.provider_order_id,
                        provider_order_number=order.provider_order_number,
                        order_date=order.order_date,
                        currency=order.currency,
                        weight_unit=order.weight_unit,
                        payment_status=order.payment_status,
                        fulfillment_status=order.fulfillment_status,
                        total_price=order.total_price,
                        weight=order.weight,
                        quantity=order.quantity,
                        subtotal=order.subtotal,
                        tax=order.tax,
                        buyer_email=order.buyer_email,
                        buyer_name=order.buyer_name,
                        buyer_phone=order.buyer_phone,
                        billing_address_id=order.billing_address.address_id,
                        shipping_address_id=order.shipping_address.address_id,
                    )
                )
                db.flush()

                for item in order.items:
                    db.add(
                        OrderItemRecord(
                            order_item_id=item.order_item_id,
                            order_id=order.order_id,
                            name=item.name,
                            sku=item.sku,
                            total=item.total,
                            price=item.price,
                        )
                    )
                    db.flush()
        except SQLAlchemyError as e:
            logger.error(
                "Rolled back order %s: %s", order.provider_order_id, type(e).__name__
            )
            raise WriteFailed(f"Could not write order {order.provider_order_id}: {e}") from e

        outcome = WriteOutcome.REPLACED if replaced else WriteOutcome.INSERTED
        logger.debug("Order %s %s", order.provider_order_id, outcome.value.lower())
        return outcome

    @staticmethod
    def _delete_existing(db: Session, provider_order_id: str) -> bool:
        existing = db.scalars(
            select(OrderRecord).where(OrderRecord.provider_order_id == provider_order_id)
        ).first()
        if existing is None:
            return False

        address_ids = [existing.billing_address_id, existing.shipping_address_id]
        db.execute(delete(OrderItemRecord).where(OrderItemRecord.order_id == existing.order_id))
        db.delete(existing)
        db.flush()
        db.execute(delete(AddressRecord).where(AddressRecord.address_id.in_(address_ids)))
        return True
