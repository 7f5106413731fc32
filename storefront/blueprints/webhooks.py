"""Webhooks blueprint — /stripe/webhook

Receives Stripe webhook events. Raw body is required for signature
verification.

Routes:
- POST /stripe/webhook              — verify + process a Stripe event
- GET  /stripe/webhook/healthcheck  — DB connectivity + transaction count
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from storefront.config import mask_secret
from storefront.services.transaction_service import count_transactions
from storefront.services.webhook_service import (
    WebhookProcessor,
    WebhookVerificationError,
)

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/stripe/webhook")


def _text(body, status):
    return body, status, {"Content-Type": "text/plain; charset=utf-8"}


@webhooks_bp.route("", methods=["POST"])
def stripe_webhook():
    """Receive and process Stripe webhook events.

    1. Get raw body (required for signature verification)
    2. Verify signature with STRIPE_WEBHOOK_SECRET
    3. Process the event (idempotent via stripe_session_id)
    4. Return 200 to acknowledge receipt, even if processing failed
    """
    payload = request.get_data(as_text=True)
    sig_header = request.headers.get("Stripe-Signature")
    settings = current_app.extensions["stripe_settings"]

    logger.info(
        f"Webhook received: payload length={len(payload or '')}, "
        f"signature length={len(sig_header or '')}, "
        f"secret={mask_secret(settings.webhook_secret)}"
    )

    if not payload or not sig_header:
        logger.warning("Webhook received without payload or Stripe-Signature header")
        return _text("Missing payload or signature", 400)

    processor = WebhookProcessor(settings)

    # --- Verify signature ---
    try:
        event = processor.construct_event(payload, sig_header)
    except WebhookVerificationError as e:
        logger.warning(f"Webhook verification failed: {e}")
        if e.reason == "payload":
            return _text("Webhook error: invalid payload", 400)
        return _text("Invalid signature", 400)

    # --- Process event (idempotent) ---
    outcome = processor.handle_event(event, payload)
    return _text(outcome.message, 200)


@webhooks_bp.route("/healthcheck", methods=["GET"])
def healthcheck():
    """Report whether the transactions table is reachable."""
    try:
        count = count_transactions()
    except Exception as e:
        logger.error(f"Database connection failed: {e}", exc_info=True)
        return jsonify({
            "status": "error",
            "database": "error",
            "error": str(e),
        }), 500

    logger.info(f"Webhook healthcheck ok. Transaction count: {count}")
    return jsonify({
        "status": "ok",
        "database": "ok",
        "transaction_count": count,
    }), 200
