"""Transaction service — DB helpers for recording Stripe payments.

Responsible for:
- Looking up transactions by Stripe session / payment intent id
- Inserting a transaction with its items in one commit
- Recording placeholder transactions when extraction or insert failed
- Marking transactions COMPLETED on payment confirmation

Duplicate inserts surface as DuplicateTransactionError (the unique
constraint on stripe_session_id fired); callers treat that as "already
processed".
"""

import logging
from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from storefront.extensions import db
from storefront.models.transaction import Transaction, TransactionItem

logger = logging.getLogger(__name__)


class DuplicateTransactionError(Exception):
    """A transaction for this Stripe session already exists."""


def find_transaction_by_session_id(session_id):
    if not session_id:
        return None
    return Transaction.query.filter_by(stripe_session_id=session_id).first()


def find_transaction_by_payment_intent_id(payment_intent_id):
    if not payment_intent_id:
        return None
    return Transaction.query.filter_by(
        stripe_payment_intent_id=payment_intent_id
    ).first()


def count_transactions():
    return db.session.query(db.func.count(Transaction.id)).scalar()


def payment_status_for(stripe_payment_status):
    """Map a Checkout Session payment_status to our payment status.

    "unpaid" sessions (delayed payment methods) stay PENDING until
    payment_intent.succeeded arrives; everything else is COMPLETED.
    """
    if stripe_payment_status == "unpaid":
        return Transaction.STATUS_PENDING
    return Transaction.STATUS_COMPLETED


def create_transaction(session_id, customer_email, total_amount, currency,
                       items, payment_intent_id=None,
                       payment_status=Transaction.STATUS_COMPLETED):
    """Insert a transaction and its items, committing once.

    Raises DuplicateTransactionError if the session id (or payment intent
    id) is already recorded. Any other DB error propagates after rollback.
    """
    transaction = Transaction(
        stripe_session_id=session_id,
        stripe_payment_intent_id=payment_intent_id,
        customer_email=customer_email,
        total_amount=total_amount,
        currency=currency,
        payment_status=payment_status,
    )
    transaction.items = list(items)
    db.session.add(transaction)

    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        logger.info(f"Transaction for session {session_id} already exists ({e.orig})")
        raise DuplicateTransactionError(session_id) from e
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        f"Transaction {transaction.id} saved: session={session_id}, "
        f"amount={total_amount} {currency}, items={len(transaction.items)}"
    )
    return transaction


def create_placeholder_transaction(event_id, session_id, currency="USD",
                                   customer_email="webhook@example.com"):
    """Record a zero-value transaction so the event leaves a queryable trace.

    Needs manual reconciliation against the Stripe Dashboard.
    """
    event_id = event_id or session_id
    item = TransactionItem.for_line(
        product_name=f"Event #{event_id[-6:]}",
        product_id=event_id,
        quantity=1,
        price=Decimal("0"),
    )
    transaction = create_transaction(
        session_id=session_id,
        customer_email=customer_email,
        total_amount=Decimal("0"),
        currency=currency,
        items=[item],
    )
    logger.warning(
        f"Saved placeholder transaction {transaction.id} for event {event_id} — "
        f"check the Stripe Dashboard for the actual order details"
    )
    return transaction


def mark_payment_completed(payment_intent_id):
    """Set payment_status=COMPLETED on the transaction for this payment intent.

    Returns the transaction, or None when no transaction references the
    payment intent (checkout.session.completed may not have arrived yet).
    """
    transaction = find_transaction_by_payment_intent_id(payment_intent_id)
    if transaction is None:
        return None

    if transaction.payment_status != Transaction.STATUS_COMPLETED:
        transaction.payment_status = Transaction.STATUS_COMPLETED
        db.session.commit()
        logger.info(f"Transaction {transaction.id} marked COMPLETED (payment intent {payment_intent_id})")
    return transaction
