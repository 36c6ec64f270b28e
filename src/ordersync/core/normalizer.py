"""Map a Wix order into the relational shape stored by the writer."""

import logging
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError

from ordersync.core.errors import MalformedOrder, MissingAddress
from ordersync.core.models import generate_id
from ordersync.plugins.wix_types import Address, Amount, WixOrder

logger = logging.getLogger("normalizer")

RFC3339_PATTERN = re.compile(
    r"\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}:\d{2}(?P<fraction>\.\d+)?(?:Z|[+-]\d{2}:\d{2})"
)


class NormalizedAddress(BaseModel):
    address_id: str = Field(default_factory=generate_id)
    city: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    address_line_1: str
    address_line_2: Optional[str] = None


class NormalizedItem(BaseModel):
    order_item_id: str = Field(default_factory=generate_id)
    name: str
    sku: Optional[str] = None
    total: Decimal
    price: Decimal


class NormalizedOrder(BaseModel):
    """One order row, its two addresses and its items, with generated ids."""

    order_id: str = Field(default_factory=generate_id)
    provider_order_id: str
    provider_order_number: int
    order_date: int
    currency: str
    weight_unit: str
    payment_status: str
    fulfillment_status: str
    total_price: Decimal
    weight: Decimal
    quantity: int
    subtotal: Decimal
    tax: Decimal
    buyer_email: Optional[str] = None
    buyer_name: str
    buyer_phone: Optional[str] = None
    billing_address: NormalizedAddress
    shipping_address: NormalizedAddress
    items: List[NormalizedItem] = []


def parse_decimal(value: Amount, field: str) -> Decimal:
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise MalformedOrder(f"Field '{field}' is not a number: {value!r}") from e
    if not parsed.is_finite():
        raise MalformedOrder(f"Field '{field}' is not a finite number: {value!r}")
    return parsed


def parse_quantity(value: Amount, field: str) -> int:
    parsed = parse_decimal(value, field)
    if parsed != parsed.to_integral_value():
        raise MalformedOrder(f"Field '{field}' is not a whole number: {value!r}")
    return int(parsed)


def parse_timestamp(value: str) -> int:
    """RFC3339 string to epoch seconds."""
    text = value.strip().upper() if isinstance(value, str) else ""
    match = RFC3339_PATTERN.fullmatch(text)
    if match is None:
        raise MalformedOrder(f"Order date is not RFC3339: {value!r}")
    fraction = match.group("fraction")
    if fraction:
        # datetime keeps microseconds only
        text = text.replace(fraction, fraction[:7].ljust(7, "0"), 1)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise MalformedOrder(f"Invalid order date: {value!r}") from e
    return int(parsed.timestamp())


def resolve_address_line(address: Address) -> str:
    """
    Structured street first, then the free-text line.

    Raises:
        MissingAddress: If neither is present.
    """
    if address.street is not None and address.street.name:
        return f"{address.street.name} {address.street.number}".strip()
    if address.address_line1 and address.address_line1.strip():
        return address.address_line1
    raise MissingAddress("Address has neither a street nor an address line")


def normalize_address(address: Optional[Address], kind: str) -> NormalizedAddress:
    if address is None:
        raise MissingAddress(f"Order has no {kind} address")
    try:
        line_1 = resolve_address_line(address)
    except MissingAddress as e:
        raise MissingAddress(f"{kind.capitalize()} address: {e}") from e
    return NormalizedAddress(
        city=address.city,
        zip_code=address.zip_code,
        country=address.country,
        address_line_1=line_1,
        address_line_2=address.address_line2,
    )


def normalize(order: dict) -> NormalizedOrder:
    """
    Normalize one Wix order.

    Args:
        order (dict): The order exactly as returned by the orders query.

    Returns:
        NormalizedOrder: Order row, billing and shipping address, items.

    Raises:
        MalformedOrder: If the order does not match the Wix schema, or a
            numeric or date field cannot be parsed.
        MissingAddress: If the billing or shipping address cannot be resolved.
    """
    try:
        wix_order = WixOrder.model_validate(order)
    except ValidationError as e:
        raise MalformedOrder(
            f"Order {order.get('id', '?')} does not match the Wix order schema: "
            f"{e.error_count()} error(s)"
        ) from e

    logger.debug("Normalizing order %s (#%s)", wix_order.id, wix_order.number)

    totals = wix_order.totals
    billing = normalize_address(
        wix_order.billing_info.address if wix_order.billing_info else None, "billing"
    )
    shipping = normalize_address(
        wix_order.shipping_info.address if wix_order.shipping_info else None, "shipping"
    )

    items = [
        NormalizedItem(
            name=item.name,
            sku=item.sku,
            total=parse_decimal(item.price_data.total_price, f"lineItems[{i}].totalPrice"),
            price=parse_decimal(item.price_data.price, f"lineItems[{i}].price"),
        )
        for i, item in enumerate(wix_order.line_items)
    ]

    buyer = wix_order.buyer_info
    return NormalizedOrder(
        provider_order_id=wix_order.id,
        provider_order_number=wix_order.number,
        order_date=parse_timestamp(wix_order.date_created),
        currency=wix_order.currency,
        weight_unit=wix_order.weight_unit.value,
        payment_status=wix_order.payment_status.value,
        fulfillment_status=wix_order.fulfillment_status.value,
        total_price=parse_decimal(totals.total, "totals.total"),
        weight=parse_decimal(totals.weight, "totals.weight"),
        quantity=parse_quantity(totals.quantity, "totals.quantity"),
        subtotal=parse_decimal(totals.subtotal, "totals.subtotal"),
        tax=parse_decimal(totals.tax, "totals.tax"),
        buyer_email=buyer.email,
        buyer_name=f"{buyer.first_name} {buyer.last_name}".strip(),
        buyer_phone=buyer.phone,
        billing_address=billing,
        shipping_address=shipping,
        items=items,
    )
