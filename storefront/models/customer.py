"""Customer shipping information captured before checkout.

One row per email address; resubmitting the checkout form with the same
email updates the existing row.
"""

from storefront.extensions import db


class CustomerInformation(db.Model):
    __tablename__ = "customer_information"

    # Required on submission (camelCase wire name -> column attribute)
    REQUIRED_FIELDS = {
        "email": "email",
        "country": "country",
        "fullName": "full_name",
        "address": "address",
        "city": "city",
        "state": "state",
        "zipCode": "zip_code",
    }

    customer_id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    country = db.Column(db.String(100), nullable=False)
    full_name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(500), nullable=False)
    apartment = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(100), nullable=False)
    state = db.Column(db.String(100), nullable=False)
    zip_code = db.Column(db.String(20), nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self):
        return f"<CustomerInformation {self.email}>"
