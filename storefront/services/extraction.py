"""Checkout data extraction from Stripe webhook events.

checkout.session.completed payloads are read by an ordered chain of
extractors. Each extractor is asked only for the fields still unresolved
and returns what it found plus what it could not find:

    StructuredExtractor  -> reads event["data"]["object"] as a Checkout Session
    RawTextExtractor     -> scans the raw payload text for the same keys
    DefaultExtractor     -> fills whatever is left with placeholder values

DefaultExtractor always resolves everything, so the chain always yields a
complete CheckoutDetails and a transaction can always be recorded.
"""

import hashlib
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from storefront.services.line_items import cents_to_decimal

logger = logging.getLogger(__name__)

CHECKOUT_FIELDS = (
    "session_id",
    "amount_total",
    "currency",
    "customer_email",
    "payment_intent_id",
    "payment_status",
)

DEFAULT_AMOUNT_TOTAL = 0
DEFAULT_CURRENCY = "USD"
DEFAULT_CUSTOMER_EMAIL = "webhook@example.com"
SYNTHETIC_SESSION_PREFIX = "sess_"
SYNTHETIC_SESSION_SUFFIX_LEN = 10


@dataclass
class ExtractionResult:
    values: Dict[str, Any] = field(default_factory=dict)
    unresolved: List[str] = field(default_factory=list)


@dataclass
class CheckoutDetails:
    session_id: str
    amount_total: int
    currency: str
    customer_email: str
    payment_intent_id: Optional[str] = None
    payment_status: Optional[str] = None
    # field name -> extractor that resolved it
    sources: Dict[str, str] = field(default_factory=dict)

    @property
    def total_amount(self) -> Decimal:
        return cents_to_decimal(self.amount_total)

    @property
    def defaulted(self) -> List[str]:
        return [f for f, src in self.sources.items() if src == DefaultExtractor.name]

    @property
    def is_placeholder(self) -> bool:
        return set(self.defaulted) >= {"session_id", "amount_total", "customer_email"}


def synthetic_session_id(event_id, payload=""):
    """Deterministic stand-in session id derived from the event itself.

    Redelivery of the same event yields the same id, so the idempotency
    lookup still catches it.
    """
    if event_id:
        return SYNTHETIC_SESSION_PREFIX + event_id[-SYNTHETIC_SESSION_SUFFIX_LEN:]
    digest = hashlib.sha256((payload or "").encode("utf-8")).hexdigest()
    return SYNTHETIC_SESSION_PREFIX + digest[:SYNTHETIC_SESSION_SUFFIX_LEN]


# ──────────────────────────────────────────────
# Extractors
# ──────────────────────────────────────────────

class StructuredExtractor:
    """Read fields from the typed Checkout Session object in the event."""

    name = "structured"

    def extract(self, event, payload, fields):
        result = ExtractionResult()
        try:
            session = event["data"]["object"]
        except (KeyError, TypeError):
            session = None

        if not isinstance(session, dict):
            logger.warning(
                f"Event {event.get('id') if isinstance(event, dict) else None} "
                f"has no checkout session object"
            )
            result.unresolved = list(fields)
            return result

        for name in fields:
            value = getattr(self, f"_{name}")(session)
            if value is None:
                result.unresolved.append(name)
            else:
                result.values[name] = value
        return result

    @staticmethod
    def _session_id(session):
        session_id = session.get("id")
        if isinstance(session_id, str) and (
            session.get("object") == "checkout.session" or session_id.startswith("cs_")
        ):
            return session_id
        return None

    @staticmethod
    def _amount_total(session):
        amount = session.get("amount_total")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            return None
        return amount

    @staticmethod
    def _currency(session):
        currency = session.get("currency")
        return currency if isinstance(currency, str) and currency else None

    @staticmethod
    def _customer_email(session):
        details = session.get("customer_details") or {}
        email = details.get("email") if isinstance(details, dict) else None
        email = email or session.get("customer_email")
        return email if isinstance(email, str) and email else None

    @staticmethod
    def _payment_intent_id(session):
        intent = session.get("payment_intent")
        if isinstance(intent, dict):
            intent = intent.get("id")
        return intent if isinstance(intent, str) and intent else None

    @staticmethod
    def _payment_status(session):
        status = session.get("payment_status")
        return status if isinstance(status, str) and status else None


class RawTextExtractor:
    """Scan the raw webhook body for fields by key name.

    Used when the payload shape does not match what the structured
    extractor expects (API version drift, truncated objects).
    """

    name = "raw_text"

    PATTERNS = {
        "session_id": re.compile(r'"id"\s*:\s*"(cs_[^"]+)"'),
        "amount_total": re.compile(r'"amount_total"\s*:\s*(\d+)'),
        "currency": re.compile(r'"currency"\s*:\s*"([A-Za-z]{3})"'),
        "customer_email": re.compile(r'"email"\s*:\s*"([^"]+)"'),
        "payment_intent_id": re.compile(r'"payment_intent"\s*:\s*"([^"]+)"'),
        "payment_status": re.compile(r'"payment_status"\s*:\s*"([a-z_]+)"'),
    }

    def extract(self, event, payload, fields):
        result = ExtractionResult()
        text = payload or ""
        for name in fields:
            value = self._scan(name, text)
            if value is None:
                result.unresolved.append(name)
            else:
                result.values[name] = value
        return result

    def _scan(self, name, text):
        pattern = self.PATTERNS.get(name)
        if pattern is None:
            return None

        # Values before "data" belong to the event envelope, not the session
        start = max(text.find('"data"'), 0)
        if name == "customer_email":
            # Only trust an email that sits under customer_details
            start = text.find('"customer_details"', start)
            if start < 0:
                return None

        match = pattern.search(text, start)
        if not match:
            return None
        value = match.group(1)
        if name == "amount_total":
            return int(value)
        return value


class DefaultExtractor:
    """Resolve every remaining field with a placeholder value."""

    name = "default"

    def extract(self, event, payload, fields):
        event_id = event.get("id") if isinstance(event, dict) else None
        defaults = {
            "session_id": synthetic_session_id(event_id, payload),
            "amount_total": DEFAULT_AMOUNT_TOTAL,
            "currency": DEFAULT_CURRENCY,
            "customer_email": DEFAULT_CUSTOMER_EMAIL,
            "payment_intent_id": None,
            "payment_status": None,
        }
        return ExtractionResult(values={f: defaults.get(f) for f in fields})


DEFAULT_CHAIN = (StructuredExtractor(), RawTextExtractor(), DefaultExtractor())


def extract_checkout_details(event, payload, extractors=DEFAULT_CHAIN, fields=CHECKOUT_FIELDS):
    """Run the extractor chain over a checkout.session.completed event.

    Returns a CheckoutDetails with every field resolved. An extractor that
    raises is logged and treated as having resolved nothing.
    """
    values = {}
    sources = {}
    pending = list(fields)

    for extractor in extractors:
        if not pending:
            break
        try:
            result = extractor.extract(event, payload, list(pending))
        except Exception as e:
            logger.warning(f"{extractor.name} extractor failed: {e}", exc_info=True)
            continue

        for name, value in result.values.items():
            if name in pending:
                values[name] = value
                sources[name] = extractor.name
        pending = [f for f in pending if f not in result.values]

        if result.values and extractor.name != StructuredExtractor.name:
            logger.info(
                f"{extractor.name} extractor resolved: {', '.join(sorted(result.values))}"
            )

    if pending:
        # Only reachable with a custom chain lacking DefaultExtractor
        raise ValueError(f"Unresolved checkout fields: {', '.join(pending)}")

    details = CheckoutDetails(sources=sources, **values)
    if details.defaulted:
        logger.warning(
            f"Checkout {details.session_id}: using defaults for "
            f"{', '.join(details.defaulted)}"
        )
    return details


def extract_payment_intent_id(event):
    """Payment intent id from a payment_intent.* event, or None."""
    try:
        obj = event["data"]["object"]
    except (KeyError, TypeError):
        return None
    if not isinstance(obj, dict):
        return None
    if obj.get("object") not in (None, "payment_intent"):
        return None
    intent_id = obj.get("id")
    return intent_id if isinstance(intent_id, str) and intent_id else None
