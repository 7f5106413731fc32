"""Checkout blueprint — /product/v1/*

Creates Stripe Checkout Sessions for the storefront cart.

Routes:
- POST /product/v1/cart/checkout  — cart with one or more items
- POST /product/v1/checkout       — legacy single-product checkout
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from storefront.extensions import limiter
from storefront.services.checkout_service import (
    CheckoutError,
    create_checkout_session,
    parse_cart,
)

logger = logging.getLogger(__name__)

checkout_bp = Blueprint("checkout", __name__, url_prefix="/product/v1")


def _start_checkout(cart):
    try:
        items, currency = parse_cart(cart)
    except ValueError as e:
        errors = e.args[0] if e.args else ["Invalid request."]
        return jsonify(status="ERROR", message=" ".join(errors), errors=errors), 422

    settings = current_app.extensions["stripe_settings"]
    try:
        session = create_checkout_session(items, currency, settings)
    except CheckoutError as e:
        return jsonify(status="ERROR", message=str(e)), 502

    return jsonify(
        status="SUCCESS",
        message="Payment session created",
        sessionId=session.session_id,
        sessionUrl=session.url,
    ), 200


@checkout_bp.route("/cart/checkout", methods=["POST"])
@limiter.limit("30 per minute")
def checkout_cart():
    """Create a Checkout Session for a cart.

    Expects: { items: [{ name, amount, quantity, productId }], currency }
    Returns: { status, message, sessionId, sessionUrl }
    """
    data = request.get_json(silent=True)
    return _start_checkout(data)


@checkout_bp.route("/checkout", methods=["POST"])
@limiter.limit("30 per minute")
def checkout_product():
    """Single-product checkout kept for older front-end builds.

    Expects: { name, amount, quantity, currency }. No product id is sent,
    so the webhook records the Stripe price id for this line.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _start_checkout(None)

    cart = {
        "items": [{
            "name": data.get("name"),
            "amount": data.get("amount"),
            "quantity": data.get("quantity"),
        }],
        "currency": data.get("currency"),
    }
    return _start_checkout(cart)
