import os
import logging
from decimal import Decimal

import click
from flask import Flask, jsonify, request

from storefront.config import StripeSettings, config_by_name, mask_secret
from storefront.extensions import db, migrate, limiter

CORS_EXEMPT_PREFIX = "/stripe/webhook"


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    # --- Stripe settings (passed explicitly to services) ---
    stripe_settings = StripeSettings.from_config(app.config)
    app.extensions["stripe_settings"] = stripe_settings
    app.logger.info(
        f"Stripe configured: secret_key={mask_secret(stripe_settings.secret_key)}, "
        f"webhook_secret={mask_secret(stripe_settings.webhook_secret)}"
    )

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from storefront import models  # noqa: F401

    # --- Register blueprints ---
    from storefront.blueprints.checkout import checkout_bp
    from storefront.blueprints.customers import customers_bp
    from storefront.blueprints.products import products_bp
    from storefront.blueprints.webhooks import webhooks_bp

    app.register_blueprint(checkout_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(webhooks_bp)

    # --- Root route ---
    @app.route("/")
    def index():
        return "API is running. Please use the proper endpoints.", 200, {
            "Content-Type": "text/plain; charset=utf-8"
        }

    # --- Error handlers ---
    @app.errorhandler(404)
    def not_found(e):
        return jsonify(error="Not found."), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify(error="Method not allowed."), 405

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify(error="Too many requests. Please slow down."), 429

    @app.errorhandler(500)
    def server_error(e):
        return jsonify(error="Internal server error."), 500

    # --- CLI commands ---
    register_cli(app)

    # --- CORS + security headers ---
    @app.after_request
    def add_response_headers(response):
        """Add CORS headers for the storefront front end, security headers for all."""
        origin = request.headers.get("Origin")
        if (
            origin
            and origin in app.config.get("CORS_ALLOWED_ORIGINS", [])
            and not request.path.startswith(CORS_EXEMPT_PREFIX)
        ):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Access-Control-Allow-Methods"] = (
                "GET, POST, PUT, DELETE, OPTIONS"
            )
            response.headers["Access-Control-Allow-Headers"] = (
                "Origin, X-Requested-With, Content-Type, Accept, "
                "Authorization, Stripe-Signature"
            )
            response.headers["Access-Control-Max-Age"] = "3600"
            response.headers["Vary"] = "Origin"

        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Control referrer information
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


DEMO_PRODUCTS = [
    {
        "description_short": "Cable Organizer Clip",
        "description_long": "Desk-edge clip that keeps up to five cables in place.",
        "price": Decimal("4.99"),
        "material": "PLA",
        "size": "Small",
    },
    {
        "description_short": "Headphone Stand",
        "description_long": "Weighted stand with a curved rest that protects the headband.",
        "price": Decimal("19.99"),
        "material": "PETG",
        "size": "Medium",
    },
    {
        "description_short": "Coffee Mug",
        "description_long": "Printed mug body with a food-safe liner insert.",
        "price": Decimal("9.99"),
        "material": "PETG",
        "size": "Medium",
    },
]


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("seed-products")
    def seed_products():
        """Insert the demo product catalog if the products table is empty.

        Usage:
            flask seed-products
        """
        from storefront.models.product import Product

        if Product.query.first() is not None:
            click.echo("Products already exist, skipping seed.")
            return

        for data in DEMO_PRODUCTS:
            db.session.add(Product(**data))
        db.session.commit()

        for product in Product.query.order_by(Product.id).all():
            click.echo(f"  [{product.id}] {product.description_short} — ${product.price}")
        click.echo(f"Seeded {len(DEMO_PRODUCTS)} products.")

    @app.cli.command("check-db")
    def check_db():
        """Check that the transaction tables exist and report the row count.

        Usage:
            flask check-db
        """
        from sqlalchemy import inspect

        from storefront.services.transaction_service import count_transactions

        tables = set(inspect(db.engine).get_table_names())
        missing = False
        for table in ("sales_transactions", "transaction_items"):
            status = "EXISTS" if table in tables else "MISSING"
            missing = missing or table not in tables
            click.echo(f"  {table}: {status}")

        if missing:
            click.echo("Missing tables detected. Run `flask db upgrade`.")
            raise SystemExit(1)

        click.echo(f"Transaction count: {count_transactions()}")
