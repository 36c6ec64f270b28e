"""Pydantic models for the Wix Stores v2 order payloads.

Only the parts of the order the pipeline reads are typed strictly; numeric
amounts are kept exactly as Wix sends them (strings, mostly) and parsed by the
normalizer. Unknown fields are ignored so that additions on the Wix side do
not break ingestion.
"""

from enum import Enum
from typing import List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Amount = Union[str, int, float]


class WixModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class PaymentStatus(str, Enum):
    UNSPECIFIED_PAYMENT_STATUS = "UNSPECIFIED_PAYMENT_STATUS"
    PAID = "PAID"
    NOT_PAID = "NOT_PAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"
    FULLY_REFUNDED = "FULLY_REFUNDED"
    PENDING = "PENDING"


class FulfillmentStatus(str, Enum):
    NOT_FULFILLED = "NOT_FULFILLED"
    FULFILLED = "FULFILLED"
    CANCELED = "CANCELED"
    PARTIALLY_FULFILLED = "PARTIALLY_FULFILLED"


class WeightUnit(str, Enum):
    UNSPECIFIED_WEIGHT_UNIT = "UNSPECIFIED_WEIGHT_UNIT"
    KG = "KG"
    LB = "LB"


class IdentityType(str, Enum):
    UNSPECIFIED_IDENTITY_TYPE = "UNSPECIFIED_IDENTITY_TYPE"
    CONTACT = "CONTACT"
    MEMBER = "MEMBER"


class LineItemType(str, Enum):
    UNSPECIFIED_LINE_ITEM_TYPE = "UNSPECIFIED_LINE_ITEM_TYPE"
    PHYSICAL = "PHYSICAL"
    DIGITAL = "DIGITAL"
    CUSTOM_AMOUNT_ITEM = "CUSTOM_AMOUNT_ITEM"


class BuyerInfo(WixModel):
    """Customer information."""

    id: Optional[str] = None
    identity_type: Optional[IdentityType] = None
    email: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    phone: Optional[str] = None


class Totals(WixModel):
    """Totals for the order's line items."""

    subtotal: Amount
    tax: Amount
    total: Amount
    weight: Amount
    quantity: Amount
    shipping: Optional[Amount] = None
    discount: Optional[Amount] = None


class Street(WixModel):
    name: str
    number: Union[str, int] = ""


class Address(WixModel):
    """
    A Wix address.

    The street part is either structured (`street`) or a free-text line
    (`addressLine1`); both may be present, in which case the structured
    street wins.
    """

    city: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    subdivision: Optional[str] = None
    street: Optional[Street] = None
    address_line1: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("addressLine1", "addressLine", "address_line1")
    )
    address_line2: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("addressLine2", "address_line2")
    )


class BillingInfo(WixModel):
    payment_method: Optional[str] = None
    address: Optional[Address] = None


class ShipmentDetails(WixModel):
    address: Optional[Address] = None


class PickupDetails(WixModel):
    pickup_address: Optional[Address] = None


class ShippingInfo(WixModel):
    """Shipping information; the address is under shipment or pickup details."""

    delivery_option: Optional[str] = None
    shipment_details: Optional[ShipmentDetails] = None
    pickup_details: Optional[PickupDetails] = None

    @property
    def address(self) -> Optional[Address]:
        if self.shipment_details and self.shipment_details.address:
            return self.shipment_details.address
        if self.pickup_details and self.pickup_details.pickup_address:
            return self.pickup_details.pickup_address
        return None


class PriceData(WixModel):
    tax_included_in_price: bool = False
    price: Amount
    total_price: Amount


class LineItem(WixModel):
    """Line item ordered."""

    index: Optional[int] = None
    quantity: int = 1
    name: str
    sku: Optional[str] = None
    line_item_type: Optional[LineItemType] = None
    price_data: PriceData


class Activity(WixModel):
    type: str
    author: Optional[str] = None
    message: Optional[str] = None
    timestamp: Optional[str] = None


class Refund(WixModel):
    id: str
    date_created: Optional[str] = None
    amount: Optional[Amount] = None
    reason: Optional[str] = None
    external_refund: bool = False


class WixOrder(WixModel):
    """A Wix Stores order as returned by the orders query endpoint."""

    id: str
    number: int
    date_created: str
    buyer_info: BuyerInfo
    currency: str
    weight_unit: WeightUnit
    totals: Totals
    billing_info: Optional[BillingInfo] = None
    shipping_info: Optional[ShippingInfo] = None
    buyer_note: Optional[str] = None
    payment_status: PaymentStatus
    fulfillment_status: FulfillmentStatus
    line_items: List[LineItem] = []
    activities: List[Activity] = []
    refunds: List[Refund] = []
    last_updated: Optional[str] = None
    numeric_id: Optional[str] = None


class PagingMetadata(WixModel):
    items: Optional[int] = None
    offset: Optional[int] = None


class QueryOrdersResponse(WixModel):
    """One page of the orders query endpoint."""

    orders: List[dict] = []
    metadata: Optional[PagingMetadata] = None
    total_results: Optional[int] = None
