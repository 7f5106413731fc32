"""Stripe webhook processing.

Responsible for:
- Verifying the Stripe-Signature header against the raw body
- Routing events to their handlers
- Idempotency via the unique stripe_session_id on sales_transactions
- Materializing transactions (and line items) from checkout sessions
- Marking transactions paid on payment_intent.succeeded

Only signature/input problems are reported to the caller as failures.
Everything past verification is acknowledged with 200 so Stripe does not
keep retrying an event we have already recorded, however imperfectly.
"""

import json
import logging
from collections import namedtuple

import stripe

from storefront.extensions import db
from storefront.services import transaction_service
from storefront.services.extraction import (
    DEFAULT_CHAIN,
    extract_checkout_details,
    extract_payment_intent_id,
)
from storefront.services.line_items import (
    build_transaction_items,
    fetch_line_items,
    whole_order_item,
)

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
PAYMENT_SUCCEEDED = "payment_intent.succeeded"

MSG_PROCESSED = "Webhook processed"
MSG_ALREADY_PROCESSED = "Event already processed"
MSG_UNHANDLED = "Webhook received, event type not handled"
MSG_PROCESSING_ERROR = "Webhook received, but error during processing"

WebhookOutcome = namedtuple("WebhookOutcome", ["status", "message"])


class WebhookVerificationError(Exception):
    """The request could not be authenticated or parsed as an event.

    reason is "signature" for authentication failures and "payload" for
    a verified body that is not a usable event.
    """

    def __init__(self, message, reason="signature"):
        super().__init__(message)
        self.reason = reason


class WebhookProcessor:
    """Verifies and processes Stripe webhook events.

    Built per request from the app's StripeSettings; holds no global Stripe
    state. The extractor chain is injectable for tests.
    """

    def __init__(self, settings, extractors=DEFAULT_CHAIN):
        self.settings = settings
        self.extractors = extractors
        self.handlers = {
            CHECKOUT_COMPLETED: self._handle_checkout_completed,
            PAYMENT_SUCCEEDED: self._handle_payment_succeeded,
        }

    # ──────────────────────────────────────────
    # Verification
    # ──────────────────────────────────────────

    def construct_event(self, payload, sig_header):
        """Verify the signature and parse the body into an event dict.

        Raises WebhookVerificationError on a missing secret, a bad
        signature, a stale timestamp or a body that is not a JSON object.
        """
        if not self.settings.webhook_secret:
            raise WebhookVerificationError("Webhook secret is not configured")

        try:
            stripe.WebhookSignature.verify_header(
                payload,
                sig_header,
                self.settings.webhook_secret,
                self.settings.webhook_tolerance,
            )
        except stripe.SignatureVerificationError as e:
            raise WebhookVerificationError(f"Invalid signature: {e}") from e
        except Exception as e:
            raise WebhookVerificationError(f"Malformed signature header: {e}") from e

        try:
            event = json.loads(payload)
        except ValueError as e:
            raise WebhookVerificationError(f"Invalid JSON payload: {e}", reason="payload") from e

        if not isinstance(event, dict) or not event.get("type"):
            raise WebhookVerificationError("Payload is not a Stripe event", reason="payload")

        return event

    # ──────────────────────────────────────────
    # Dispatch
    # ──────────────────────────────────────────

    def handle_event(self, event, payload):
        """Process a verified event. Never raises.

        Returns a WebhookOutcome whose status is one of "processed",
        "already_processed", "unhandled" or "error".
        """
        event_id = event.get("id")
        event_type = event.get("type")
        logger.info(f"Webhook received: {event_type} [{event_id}]")

        handler = self.handlers.get(event_type)
        if handler is None:
            logger.info(f"Unhandled event type: {event_type}")
            return WebhookOutcome("unhandled", MSG_UNHANDLED)

        try:
            return handler(event, payload)
        except Exception as e:
            db.session.rollback()
            logger.error(
                f"Error processing webhook {event_type} [{event_id}]: {e}",
                exc_info=True,
            )
            return WebhookOutcome("error", MSG_PROCESSING_ERROR)

    # ──────────────────────────────────────────
    # Event Handlers
    # ──────────────────────────────────────────

    def _handle_checkout_completed(self, event, payload):
        """Handle checkout.session.completed.

        Resolves the session fields through the extractor chain, skips the
        event if the session is already recorded, then stores the
        transaction with its line items. If that insert fails for a reason
        other than a duplicate, a placeholder transaction is stored instead.
        """
        event_id = event.get("id")
        details = extract_checkout_details(event, payload, self.extractors)
        session_id = details.session_id

        # --- Idempotency check ---
        if transaction_service.find_transaction_by_session_id(session_id):
            logger.info(f"Event already processed: {session_id}")
            return WebhookOutcome("already_processed", MSG_ALREADY_PROCESSED)

        total_amount = details.total_amount
        items = []
        if "session_id" not in details.defaulted:
            try:
                items = build_transaction_items(
                    fetch_line_items(session_id, self.settings.secret_key)
                )
            except Exception as e:
                logger.error(f"Could not read line items for session {session_id}: {e}", exc_info=True)
                items = []
        if not items:
            logger.warning(
                f"No line items for session {session_id}; "
                f"recording a single item for the whole order"
            )
            items = [whole_order_item(session_id, details.customer_email, total_amount)]

        try:
            transaction_service.create_transaction(
                session_id=session_id,
                customer_email=details.customer_email,
                total_amount=total_amount,
                currency=details.currency,
                items=items,
                payment_intent_id=details.payment_intent_id,
                payment_status=transaction_service.payment_status_for(details.payment_status),
            )
        except transaction_service.DuplicateTransactionError:
            return WebhookOutcome("already_processed", MSG_ALREADY_PROCESSED)
        except Exception as e:
            logger.error(
                f"Failed to save transaction for session {session_id}: {e}; "
                f"falling back to placeholder transaction",
                exc_info=True,
            )
            try:
                transaction_service.create_placeholder_transaction(event_id, session_id)
            except transaction_service.DuplicateTransactionError:
                return WebhookOutcome("already_processed", MSG_ALREADY_PROCESSED)

        if details.is_placeholder:
            logger.warning(
                f"Transaction for event {event_id} saved with placeholder values — "
                f"check the Stripe Dashboard for the actual order details"
            )
        return WebhookOutcome("processed", MSG_PROCESSED)

    def _handle_payment_succeeded(self, event, payload):
        """Handle payment_intent.succeeded.

        Marks the matching transaction COMPLETED. No transaction is created
        when none matches; checkout.session.completed owns creation.
        """
        payment_intent_id = extract_payment_intent_id(event)
        if not payment_intent_id:
            logger.warning(f"payment_intent.succeeded [{event.get('id')}] without payment intent id")
            return WebhookOutcome("processed", MSG_PROCESSED)

        transaction = transaction_service.mark_payment_completed(payment_intent_id)
        if transaction is None:
            logger.info(
                f"No transaction for payment intent {payment_intent_id} yet; nothing to update"
            )
        return WebhookOutcome("processed", MSG_PROCESSED)
