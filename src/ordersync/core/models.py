"""
Database models for Wix credentials, ingested orders and ingestion runs.
"""

import datetime
import uuid
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ordersync.core.database import Base


def utcnow() -> datetime.datetime:
    """Naive UTC timestamp, as stored in DateTime columns."""
    return datetime.datetime.now(datetime.UTC).replace(tzinfo=None)


def generate_id() -> str:
    return str(uuid.uuid4())


class WixGrant(Base):
    """
    OAuth credentials of an installed Wix site.

    Attributes:
        instance_id (str): Wix instance the credentials belong to.
        refresh_token (str): Long-lived token, rotated on every refresh.
        access_token (str): Short-lived bearer token for Wix API requests.
        updated_at (datetime): Last time the pair was written.
    """

    __tablename__ = "wix_grants"

    instance_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    refresh_token: Mapped[str] = mapped_column(Text, nullable=False)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )


class InstallState(Base):
    """Single-use state handed to the Wix installer and checked on the grant callback."""

    __tablename__ = "states"

    state: Mapped[str] = mapped_column(String(64), primary_key=True)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class AddressRecord(Base):
    __tablename__ = "addresses"

    address_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    city: Mapped[Optional[str]] = mapped_column(String(255))
    zip_code: Mapped[Optional[str]] = mapped_column(String(64))
    country: Mapped[Optional[str]] = mapped_column(String(64))
    address_line_1: Mapped[str] = mapped_column(String(512), nullable=False)
    address_line_2: Mapped[Optional[str]] = mapped_column(String(512))


class OrderRecord(Base):
    """
    Relational shape of one Wix order.

    `provider_order_id` is unique so that re-ingesting an order replaces its
    rows instead of duplicating them.
    """

    __tablename__ = "orders"

    order_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    provider_order_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    provider_order_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    order_date: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False)
    weight_unit: Mapped[str] = mapped_column(String(32), nullable=False)
    payment_status: Mapped[str] = mapped_column(String(64), nullable=False)
    fulfillment_status: Mapped[str] = mapped_column(String(64), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    weight: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    tax: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    buyer_email: Mapped[Optional[str]] = mapped_column(String(255))
    buyer_name: Mapped[Optional[str]] = mapped_column(String(255))
    buyer_phone: Mapped[Optional[str]] = mapped_column(String(64))
    billing_address_id: Mapped[str] = mapped_column(
        ForeignKey("addresses.address_id"), nullable=False
    )
    shipping_address_id: Mapped[str] = mapped_column(
        ForeignKey("addresses.address_id"), nullable=False
    )


class OrderItemRecord(Base):
    __tablename__ = "order_items"

    order_item_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    order_id: Mapped[str] = mapped_column(
        ForeignKey("orders.order_id"), index=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(255))
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)


class RunStatus(str, Enum):
    """
    Lifecycle of an ingestion run.

    PENDING -> REFRESHING -> CRAWLING -> DONE | FAILED | CANCELLED
    """

    PENDING = "PENDING"
    REFRESHING = "REFRESHING"
    CRAWLING = "CRAWLING"
    DONE = "DONE"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.DONE, RunStatus.FAILED, RunStatus.CANCELLED)


class IngestionRun(Base):
    """One execution of the ingestion pipeline for one instance."""

    __tablename__ = "ingestion_runs"

    run_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    instance_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default=RunStatus.PENDING.value, nullable=False)
    started_at: Mapped[datetime.datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    finished_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime)
    pages_fetched: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    orders_seen: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    orders_written: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    orders_skipped: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    orders_failed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    error: Mapped[Optional[str]] = mapped_column(Text)


class Credential(BaseModel):
    """Detached view of a WixGrant row."""

    instance_id: str
    refresh_token: str
    access_token: str
    updated_at: Optional[datetime.datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TokenPair(BaseModel):
    """Result of a token exchange with the Wix OAuth endpoint."""

    access_token: str
    refresh_token: str


class RunSummary(BaseModel):
    """Ingestion run as returned to operators."""

    run_id: str
    instance_id: str
    status: RunStatus
    started_at: datetime.datetime
    finished_at: Optional[datetime.datetime] = None
    pages_fetched: int = 0
    orders_seen: int = 0
    orders_written: int = 0
    orders_skipped: int = 0
    orders_failed: int = 0
    error: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
