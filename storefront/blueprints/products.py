"""Products blueprint — catalog listing and creation.

Routes:
- GET  /products       — all products
- GET  /product/<id>   — one product
- POST /product        — add a product
"""

import logging
from decimal import Decimal, InvalidOperation

from flask import Blueprint, jsonify, request

from storefront.extensions import db
from storefront.models.product import Product
from storefront.services.sanitize import sanitize, sanitize_optional

logger = logging.getLogger(__name__)

products_bp = Blueprint("products", __name__)


@products_bp.route("/products", methods=["GET"])
def list_products():
    products = Product.query.order_by(Product.id).all()
    return jsonify([p.to_dict() for p in products]), 200


@products_bp.route("/product/<int:product_id>", methods=["GET"])
def get_product(product_id):
    product = db.session.get(Product, product_id)
    if product is None:
        return jsonify(error="Product not found."), 404
    return jsonify(product.to_dict()), 200


@products_bp.route("/product", methods=["POST"])
def add_product():
    """Create a product.

    Expects: { descriptionShort, price, imgUrl?, descriptionLong?, material?, size? }
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify(error="Invalid request."), 400

    description_short = sanitize(data.get("descriptionShort"))

    errors = []
    if not description_short:
        errors.append("descriptionShort is required.")
    try:
        price = Decimal(str(data.get("price")))
        if not price.is_finite() or price < 0:
            raise InvalidOperation
    except (InvalidOperation, ValueError):
        price = None
        errors.append("price must be a non-negative number.")

    if errors:
        return jsonify(error=" ".join(errors)), 422

    product = Product(
        img_url=sanitize_optional(data.get("imgUrl")),
        description_short=description_short,
        description_long=sanitize_optional(data.get("descriptionLong")),
        price=price,
        material=sanitize_optional(data.get("material")),
        size=sanitize_optional(data.get("size")),
    )
    db.session.add(product)
    db.session.commit()

    logger.info(f"Product {product.id} created: {product.description_short}")
    return jsonify(product.to_dict()), 201
