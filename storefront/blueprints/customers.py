"""Customer blueprint — shipping details captured before Stripe Checkout.

Routes:
- POST /checkout  — create or update customer information by email
"""

import logging
import re

from flask import Blueprint, jsonify, request

from storefront.extensions import db, limiter
from storefront.models.customer import CustomerInformation
from storefront.services.sanitize import sanitize, sanitize_optional

logger = logging.getLogger(__name__)

customers_bp = Blueprint("customers", __name__)

# Sanity check only, not RFC 5322
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@customers_bp.route("/checkout", methods=["POST"])
@limiter.limit("20 per minute")
def save_customer_information():
    """Upsert customer information keyed on email.

    Expects: { email, fullName, country, address, apartment?, city, state, zipCode }
    Returns: { customerId, email, message }
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify(error="Invalid request."), 400

    values = {
        column: sanitize(data.get(key))
        for key, column in CustomerInformation.REQUIRED_FIELDS.items()
    }
    apartment = sanitize_optional(data.get("apartment"))

    # --- Validation ---
    errors = [
        f"{key} is required."
        for key, column in CustomerInformation.REQUIRED_FIELDS.items()
        if not values[column]
    ]
    if values["email"] and not EMAIL_RE.match(values["email"]):
        errors.append("A valid email is required.")

    if errors:
        return jsonify(error="Failed to process customer information", message=" ".join(errors)), 422

    customer = CustomerInformation.query.filter_by(email=values["email"]).first()
    if customer:
        for column, value in values.items():
            setattr(customer, column, value)
        customer.apartment = apartment
        action = "Updated existing"
    else:
        customer = CustomerInformation(apartment=apartment, **values)
        db.session.add(customer)
        action = "Created new"

    db.session.commit()
    logger.info(f"{action} customer {customer.customer_id} ({customer.email})")

    return jsonify(
        customerId=customer.customer_id,
        email=customer.email,
        message="Customer information processed successfully",
    ), 200
