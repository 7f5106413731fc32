"""Checkout service — Stripe Checkout Session creation for carts.

Responsible for:
- Validating cart payloads from the storefront front end
- Building Stripe line items with inline price_data, embedding the
  internal product id in each name ("Mug [ID:7]") for the webhook
- Creating the hosted Checkout Session and returning its id + URL
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import stripe

from storefront.services.line_items import encode_product_name, parse_product_name

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "USD"
MAX_CART_ITEMS = 100  # Stripe Checkout limit on line items


class CheckoutError(Exception):
    """Stripe rejected or failed the Checkout Session request."""


@dataclass
class CartItem:
    name: str
    amount: int  # unit price in minor units (cents)
    quantity: int
    product_id: Optional[str] = None


@dataclass
class CheckoutSession:
    session_id: str
    url: str


def _positive_int(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value)
    if isinstance(value, int) and value > 0:
        return value
    return None


def parse_cart(data):
    """Validate a cart payload and return (items, currency).

    Expects: { items: [{ name, amount, quantity, productId? }], currency? }
    Raises ValueError with the list of problems as its args[0].
    """
    if not isinstance(data, dict):
        raise ValueError(["Invalid request."])

    raw_items = data.get("items")
    currency = str(data.get("currency") or DEFAULT_CURRENCY).strip()

    errors = []
    if not isinstance(raw_items, list) or not raw_items:
        errors.append("Cart must contain at least one item.")
        raw_items = []
    elif len(raw_items) > MAX_CART_ITEMS:
        errors.append(f"Cart cannot contain more than {MAX_CART_ITEMS} items.")
    if len(currency) != 3 or not currency.isalpha():
        errors.append("Currency must be a 3-letter ISO code.")

    items = []
    for index, raw in enumerate(raw_items, start=1):
        if not isinstance(raw, dict):
            errors.append(f"Item {index} is invalid.")
            continue
        name = (raw.get("name") or "").strip()
        amount = _positive_int(raw.get("amount"))
        quantity = _positive_int(raw.get("quantity"))
        product_id = raw.get("productId")

        if not name:
            errors.append(f"Item {index}: name is required.")
        if amount is None:
            errors.append(f"Item {index}: amount must be a positive integer (cents).")
        if quantity is None:
            errors.append(f"Item {index}: quantity must be a positive integer.")

        items.append(CartItem(
            name=name,
            amount=amount,
            quantity=quantity,
            product_id=str(product_id).strip() if product_id not in (None, "") else None,
        ))

    if errors:
        raise ValueError(errors)
    return items, currency


def build_line_items(items: List[CartItem], currency: str):
    """Stripe line_items param for a cart, one entry per cart item."""
    line_items = []
    for item in items:
        name = encode_product_name(item.name, item.product_id)
        if parse_product_name(name).product_id is None:
            logger.warning(
                f"Cart item '{item.name}' has no product id; the webhook will "
                f"record the Stripe price id instead"
            )
        line_items.append({
            "quantity": item.quantity,
            "price_data": {
                "currency": currency.lower(),
                "unit_amount": item.amount,
                "product_data": {
                    "name": name,
                },
            },
        })
    return line_items


def create_checkout_session(items, currency, settings):
    """Create a hosted Stripe Checkout Session for a cart.

    Returns a CheckoutSession (id + redirect URL).
    Raises CheckoutError on Stripe API failures.
    """
    try:
        session = stripe.checkout.Session.create(
            mode="payment",
            line_items=build_line_items(items, currency),
            success_url=settings.success_url,
            cancel_url=settings.cancel_url,
            api_key=settings.secret_key,
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe checkout session creation failed: {e}")
        raise CheckoutError(f"Error creating payment session: {e.user_message or e}") from e

    logger.info(f"Checkout session {session.id} created with {len(items)} items ({currency})")
    return CheckoutSession(session_id=session.id, url=session.url)
