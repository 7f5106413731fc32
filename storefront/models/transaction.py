"""Transaction models.

- Transaction: one completed (or attempted) Stripe Checkout order.
  stripe_session_id is unique and is the idempotency key for
  checkout.session.completed webhooks. A redelivered event finds the
  existing row and is skipped; a concurrent duplicate insert is rejected
  by the unique constraint.
- TransactionItem: one line of the order. Owned by its transaction
  (deleted with it).
"""

import uuid
from decimal import Decimal

from storefront.extensions import db


class Transaction(db.Model):
    __tablename__ = "sales_transactions"

    STATUS_PENDING = "PENDING"
    STATUS_COMPLETED = "COMPLETED"
    STATUSES = [STATUS_PENDING, STATUS_COMPLETED]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    stripe_session_id = db.Column(
        db.String(255), unique=True, nullable=False
    )  # e.g. "cs_test_a1B2..." or synthetic "sess_<last 10 of event id>"
    stripe_payment_intent_id = db.Column(
        db.String(255), unique=True, nullable=True
    )  # e.g. "pi_3Abc..."
    customer_email = db.Column(db.String(255), nullable=True)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False, default=Decimal("0"))
    currency = db.Column(db.String(10), nullable=False, default="USD")
    payment_status = db.Column(
        db.String(20), nullable=False, default=STATUS_PENDING
    )  # PENDING | COMPLETED
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    items = db.relationship(
        "TransactionItem",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionItem.id",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "stripeSessionId": self.stripe_session_id,
            "stripePaymentIntentId": self.stripe_payment_intent_id,
            "customerEmail": self.customer_email,
            "totalAmount": str(self.total_amount),
            "currency": self.currency,
            "paymentStatus": self.payment_status,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "items": [item.to_dict() for item in self.items],
        }

    def __repr__(self):
        return f"<Transaction {self.stripe_session_id} ({self.payment_status})>"


class TransactionItem(db.Model):
    __tablename__ = "transaction_items"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    transaction_id = db.Column(
        db.String(36),
        db.ForeignKey("sales_transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_name = db.Column(db.String(500), nullable=True)
    product_id = db.Column(
        db.String(255), nullable=True
    )  # internal product id, or the Stripe price id when the name carried none
    quantity = db.Column(db.Integer, nullable=False, default=1)
    price = db.Column(db.Numeric(10, 2), nullable=False)  # per unit
    total_price = db.Column(db.Numeric(10, 2), nullable=False)  # price * quantity

    # --- Relationships ---
    transaction = db.relationship("Transaction", back_populates="items")

    @classmethod
    def for_line(cls, product_name, product_id, quantity, price):
        """Build an item, computing total_price from unit price and quantity."""
        quantity = max(int(quantity or 1), 1)
        return cls(
            product_name=product_name,
            product_id=product_id,
            quantity=quantity,
            price=price,
            total_price=price * quantity,
        )

    def to_dict(self):
        return {
            "id": self.id,
            "productName": self.product_name,
            "productId": self.product_id,
            "quantity": self.quantity,
            "price": str(self.price),
            "totalPrice": str(self.total_price),
        }

    def __repr__(self):
        return f"<TransactionItem {self.product_id} x{self.quantity}>"
