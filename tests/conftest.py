"""Shared test fixtures for the storefront test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, fake Stripe keys)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- sign_payload: builds a valid Stripe-Signature header for a raw body
- post_event: signs and POSTs an event to /stripe/webhook
- checkout_event / payment_succeeded_event: Stripe event payload builders
- line_items_page: fake Stripe list_line_items result
- line_item: stripe.LineItem built from values
"""

import hashlib
import hmac
import json
import time
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import stripe

from storefront import create_app
from storefront.extensions import db as _db
from storefront.models.product import Product


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def sign_payload(app):
    """Return a function computing a Stripe-Signature header for a body.

    Same scheme Stripe uses: HMAC-SHA256 of "<timestamp>.<body>" keyed
    with the webhook secret, sent as "t=<timestamp>,v1=<hex digest>".
    """
    secret = app.config["STRIPE_WEBHOOK_SECRET"]

    def _sign(payload, timestamp=None, secret=secret):
        timestamp = int(time.time()) if timestamp is None else timestamp
        signed = f"{timestamp}.{payload}".encode("utf-8")
        digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
        return f"t={timestamp},v1={digest}"

    return _sign


@pytest.fixture
def post_event(client, sign_payload):
    """Return a function that signs and POSTs an event (dict or raw str)."""

    def _post(event, signature=None):
        payload = event if isinstance(event, str) else json.dumps(event)
        headers = {"Stripe-Signature": signature or sign_payload(payload)}
        return client.post(
            "/stripe/webhook",
            data=payload,
            content_type="application/json",
            headers=headers,
        )

    return _post


@pytest.fixture
def checkout_event():
    """Return a builder for checkout.session.completed events."""

    def _build(event_id="evt_1CheckoutTest000001", session_id="cs_test_session_001",
               amount_total=1998, currency="usd", email="buyer@example.com",
               payment_intent="pi_test_001", payment_status="paid"):
        session = {
            "id": session_id,
            "object": "checkout.session",
            "amount_total": amount_total,
            "currency": currency,
            "customer_details": {"email": email, "name": "Test Buyer"},
            "payment_intent": payment_intent,
            "payment_status": payment_status,
            "mode": "payment",
        }
        return {
            "id": event_id,
            "object": "event",
            "api_version": "2024-06-20",
            "type": "checkout.session.completed",
            "data": {"object": session},
        }

    return _build


@pytest.fixture
def payment_succeeded_event():
    """Return a builder for payment_intent.succeeded events."""

    def _build(payment_intent_id="pi_test_001", event_id="evt_1PaymentTest000001"):
        return {
            "id": event_id,
            "object": "event",
            "type": "payment_intent.succeeded",
            "data": {
                "object": {
                    "id": payment_intent_id,
                    "object": "payment_intent",
                    "amount": 1998,
                    "currency": "usd",
                    "status": "succeeded",
                }
            },
        }

    return _build


@pytest.fixture
def line_items_page():
    """Return a builder for the object Session.list_line_items returns."""

    def _build(*line_items):
        page = MagicMock()
        page.auto_paging_iter.return_value = list(line_items)
        return page

    return _build


@pytest.fixture
def line_item():
    """Return a builder for a single Stripe line item, as the SDK returns it."""

    def _build(description, unit_amount, quantity=1, price_id="price_test_001"):
        return stripe.LineItem.construct_from({
            "id": f"li_{price_id}",
            "object": "item",
            "description": description,
            "quantity": quantity,
            "amount_total": unit_amount * quantity,
            "price": {"id": price_id, "object": "price", "unit_amount": unit_amount},
        }, "sk_test_fake")

    return _build


@pytest.fixture
def seed_products(app, db_session):
    """Insert two catalog products and return their ids."""
    mug = Product(
        description_short="Coffee Mug",
        description_long="Printed mug",
        price=Decimal("9.99"),
        material="PETG",
        size="Medium",
    )
    clip = Product(
        description_short="Cable Clip",
        price=Decimal("4.99"),
        material="PLA",
        size="Small",
    )
    _db.session.add_all([mug, clip])
    _db.session.commit()
    return {"mug_id": mug.id, "clip_id": clip.id}
