"""Tests for app-level behaviour: root route, CORS, headers, error handlers, CLI."""

from decimal import Decimal

from storefront import DEMO_PRODUCTS
from storefront.config import StripeSettings, mask_secret
from storefront.models.product import Product


class TestIndex:

    def test_root_route(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.data == b"API is running. Please use the proper endpoints."


class TestResponseHeaders:

    def test_security_headers_on_every_response(self, client):
        resp = client.get("/products")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert resp.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"

    def test_cors_for_allowed_origin(self, client):
        resp = client.get("/products", headers={"Origin": "http://localhost:5173"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
        assert resp.headers["Access-Control-Allow-Credentials"] == "true"

    def test_no_cors_for_unknown_origin(self, client):
        resp = client.get("/products", headers={"Origin": "https://evil.example.com"})
        assert "Access-Control-Allow-Origin" not in resp.headers

    def test_no_cors_on_webhook(self, client):
        resp = client.get(
            "/stripe/webhook/healthcheck", headers={"Origin": "http://localhost:5173"}
        )
        assert "Access-Control-Allow-Origin" not in resp.headers


class TestErrorHandlers:

    def test_404_is_json(self, client):
        resp = client.get("/does-not-exist")
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "Not found."}

    def test_405_is_json(self, client):
        resp = client.get("/stripe/webhook")
        assert resp.status_code == 405
        assert resp.get_json() == {"error": "Method not allowed."}


class TestStripeSettings:

    def test_built_from_app_config(self, app):
        settings = app.extensions["stripe_settings"]
        assert settings.secret_key == "sk_test_fake"
        assert settings.webhook_secret == "whsec_test_fake"
        assert settings.webhook_tolerance == 300

    def test_repr_masks_secrets(self):
        settings = StripeSettings(secret_key="sk_live_abcdef1234", webhook_secret="whsec_xyz9876")
        text = repr(settings)
        assert "abcdef" not in text
        assert "sk_****1234" in text
        assert "whsec_****9876" in text

    def test_mask_secret_unset(self):
        assert mask_secret(None) == "(not set)"
        assert mask_secret("") == "(not set)"


class TestCli:

    def test_seed_products(self, app):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["seed-products"])
        assert result.exit_code == 0
        assert f"Seeded {len(DEMO_PRODUCTS)} products." in result.output
        assert Product.query.count() == len(DEMO_PRODUCTS)
        assert Product.query.first().price == Decimal("4.99")

        result = runner.invoke(args=["seed-products"])
        assert "already exist" in result.output
        assert Product.query.count() == len(DEMO_PRODUCTS)

    def test_check_db(self, app):
        result = app.test_cli_runner().invoke(args=["check-db"])
        assert result.exit_code == 0
        assert "sales_transactions: EXISTS" in result.output
        assert "Transaction count: 0" in result.output


class TestRunScript:

    def test_builds_app_from_environment(self, monkeypatch):
        import importlib

        monkeypatch.setenv("FLASK_ENV", "testing")
        run = importlib.import_module("run")

        assert run.app.config["TESTING"] is True
        assert "webhooks" in run.app.blueprints
