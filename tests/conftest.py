"""Shared fixtures: in-memory database, settings and Wix payload builders."""

import json
from typing import Any, Callable, Generator, Optional

import pytest
import requests
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ordersync.core import models  # noqa: F401
from ordersync.core.database import Base
from ordersync.core.settings import WixSettings


def make_response(status_code: int = 200, payload: Any = None, text: Optional[str] = None) -> requests.Response:
    """Build a real requests.Response with a JSON (or raw text) body."""
    response = requests.Response()
    response.status_code = status_code
    if text is not None:
        response._content = text.encode("utf-8")
    else:
        response._content = json.dumps(payload if payload is not None else {}).encode("utf-8")
    return response


@pytest.fixture(name="session_factory")
def session_factory_fixture() -> Generator[sessionmaker[Session], None, None]:
    """Fresh in-memory SQLite database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture(name="settings")
def settings_fixture() -> WixSettings:
    """Settings for testing."""
    return WixSettings(
        app_id="test_app_id",
        app_secret="test_app_secret",
        api_host="https://api.example.com",
        frontend_host="https://app.example.com",
        retry_backoff_seconds=0,
        max_page_attempts=3,
        max_concurrent_runs=2,
    )


def build_address(
    street: Optional[dict] = None, line: Optional[str] = None, city: str = "Springfield"
) -> dict:
    address: dict[str, Any] = {"city": city, "zipCode": "12345", "country": "US"}
    if street is not None:
        address["street"] = street
    if line is not None:
        address["addressLine1"] = line
    return address


def build_order(
    order_id: str = "order-1",
    number: int = 10001,
    billing: Optional[dict] = None,
    shipping: Optional[dict] = None,
    line_items: Optional[list] = None,
    **overrides: Any,
) -> dict:
    """A Wix order payload as returned by the orders query endpoint."""
    order = {
        "id": order_id,
        "number": number,
        "dateCreated": "2024-03-01T12:00:00.000Z",
        "buyerInfo": {
            "id": "buyer-1",
            "identityType": "CONTACT",
            "firstName": "Ada",
            "lastName": "Lovelace",
            "email": "ada@example.com",
            "phone": "+15550100",
        },
        "currency": "USD",
        "weightUnit": "KG",
        "totals": {
            "subtotal": "17.99",
            "shipping": "0.00",
            "tax": "2.00",
            "discount": "0.00",
            "total": "19.99",
            "weight": "1.0",
            "quantity": "2",
        },
        "billingInfo": {
            "paymentMethod": "CreditCard",
            "address": billing if billing is not None else build_address(line="PO Box 5"),
        },
        "shippingInfo": {
            "deliveryOption": "Standard",
            "shipmentDetails": {
                "address": shipping
                if shipping is not None
                else build_address(street={"name": "Main St", "number": "12"}),
            },
        },
        "buyerNote": "",
        "paymentStatus": "PAID",
        "fulfillmentStatus": "NOT_FULFILLED",
        "lineItems": line_items
        if line_items is not None
        else [
            {
                "index": 1,
                "quantity": 1,
                "name": "Mug",
                "sku": "MUG-1",
                "lineItemType": "PHYSICAL",
                "priceData": {"taxIncludedInPrice": False, "price": "9.00", "totalPrice": "9.00"},
            },
            {
                "index": 2,
                "quantity": 1,
                "name": "Coaster",
                "sku": "CST-1",
                "lineItemType": "PHYSICAL",
                "priceData": {"taxIncludedInPrice": False, "price": "8.99", "totalPrice": "8.99"},
            },
        ],
        "activities": [{"type": "ORDER_PLACED", "timestamp": "2024-03-01T12:00:00.000Z"}],
        "refunds": [],
    }
    order.update(overrides)
    return order


@pytest.fixture(name="make_order")
def make_order_fixture() -> Callable[..., dict]:
    return build_order


@pytest.fixture(name="make_address")
def make_address_fixture() -> Callable[..., dict]:
    return build_address
