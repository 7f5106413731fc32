"""Product catalog model.

Product ids are what the checkout builder embeds in Stripe line item
names ("Mug [ID:7]"), so they stay plain integers.
"""

from storefront.extensions import db


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    img_url = db.Column(db.String(1000), nullable=True)
    description_short = db.Column(db.String(255), nullable=False)
    description_long = db.Column(db.Text, nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    material = db.Column(db.String(100), nullable=True)
    size = db.Column(db.String(100), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "imgUrl": self.img_url,
            "descriptionShort": self.description_short,
            "descriptionLong": self.description_long,
            "price": str(self.price) if self.price is not None else None,
            "material": self.material,
            "size": self.size,
        }

    def __repr__(self):
        return f"<Product {self.id} {self.description_short}>"
