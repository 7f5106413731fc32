"""Line item naming convention and Stripe line item materialization.

Stripe Checkout line items built from inline price_data carry no metadata,
so the internal product id travels inside the product name:

    "Mug [ID:7]"

encode_product_name() is used by the checkout builder when the session is
created; parse_product_name() is used by the webhook handler when the
session's line items come back. Both sides live here so the format can
only change in one place.
"""

import logging
from collections import namedtuple
from decimal import Decimal

import stripe

from storefront.models.transaction import TransactionItem

logger = logging.getLogger(__name__)

ID_MARKER_OPEN = "[ID:"
ID_MARKER_CLOSE = "]"

ParsedName = namedtuple("ParsedName", ["name", "product_id"])


def encode_product_name(name, product_id=None):
    """Append the "[ID:<id>]" marker to a display name.

    Names without a product id, or already carrying a marker, are returned
    unchanged. The webhook falls back to the Stripe price id for names
    without a marker.
    """
    if product_id is None or str(product_id).strip() == "":
        return name
    if parse_product_name(name).product_id is not None:
        return name
    return f"{name} {ID_MARKER_OPEN}{str(product_id).strip()}{ID_MARKER_CLOSE}"


def parse_product_name(description):
    """Split a Stripe line item description into (name, product_id).

    - "Widget [ID:42]"  -> ("Widget", "42")
    - "Widget [ID: 42 ]" -> ("Widget", "42")
    - "Widget [ID:]"    -> ("Widget", None)   marker stripped, id unusable
    - "Widget [ID:42"   -> ("Widget [ID:42", None)  malformed, kept as-is
    - "Widget"          -> ("Widget", None)
    """
    if not description:
        return ParsedName(description or "", None)

    start = description.find(ID_MARKER_OPEN)
    if start < 0:
        return ParsedName(description, None)

    id_start = start + len(ID_MARKER_OPEN)
    end = description.find(ID_MARKER_CLOSE, id_start)
    if end < 0:
        return ParsedName(description, None)

    product_id = description[id_start:end].strip()
    name = description[:start].strip()
    return ParsedName(name, product_id or None)


def cents_to_decimal(cents):
    """Stripe minor units (int) -> Decimal major units."""
    return Decimal(int(cents or 0)) / Decimal(100)


# ──────────────────────────────────────────────
# Stripe retrieval
# ──────────────────────────────────────────────

def fetch_line_items(session_id, api_key):
    """Retrieve all line items of a Checkout Session from Stripe.

    Returns a list of line item objects, or None when the Stripe call
    fails. Callers degrade to a single whole-order item in that case.
    """
    try:
        line_items = stripe.checkout.Session.list_line_items(
            session_id, limit=100, api_key=api_key
        )
        items = list(line_items.auto_paging_iter())
        logger.info(f"Retrieved {len(items)} line items for session {session_id}")
        return items
    except Exception as e:
        logger.error(
            f"Failed to retrieve line items for session {session_id}: {e}",
            exc_info=True,
        )
        return None


# ──────────────────────────────────────────────
# TransactionItem construction
# ──────────────────────────────────────────────

def _plain(obj):
    """StripeObject (or dict) -> plain dict."""
    if obj is None:
        return {}
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


def _price_of(line_item):
    price = line_item.get("price") or {}
    if isinstance(price, str):
        return {"id": price}
    return _plain(price)


def build_transaction_item(line_item):
    """Turn one Stripe line item into an (unsaved) TransactionItem.

    The product id comes from the "[ID:...]" marker in the description.
    When the marker is missing the Stripe price id is used instead and a
    data-quality warning is logged.
    """
    line_item = _plain(line_item)
    description = line_item.get("description") or ""
    price = _price_of(line_item)
    quantity = max(int(line_item.get("quantity") or 1), 1)

    name, product_id = parse_product_name(description)
    if product_id is None:
        product_id = price.get("id")
        logger.warning(
            f"Line item '{description}' has no [ID:...] marker; "
            f"using Stripe price id {product_id} as product id. "
            f"Check that checkout sessions are created with product ids."
        )

    unit_amount = price.get("unit_amount")
    if unit_amount is None:
        # Prices without unit_amount (tiered): derive from the line total
        unit_amount = int(line_item.get("amount_total") or 0) // quantity

    item = TransactionItem.for_line(
        product_name=name,
        product_id=product_id,
        quantity=quantity,
        price=cents_to_decimal(unit_amount),
    )
    logger.info(
        f"Line item: product_id={item.product_id}, name='{item.product_name}', "
        f"price={item.price}, quantity={item.quantity}, total={item.total_price}"
    )
    return item


def build_transaction_items(line_items):
    return [build_transaction_item(li) for li in line_items or []]


def whole_order_item(session_id, customer_email, total_amount):
    """Single item standing in for the whole order when line items are unavailable."""
    return TransactionItem.for_line(
        product_name=f"Order from {customer_email}",
        product_id=session_id,
        quantity=1,
        price=total_amount,
    )
