import os
from dataclasses import dataclass


def _split_origins(value):
    return [o.strip() for o in (value or "").split(",") if o.strip()]


class Config:
    """Base configuration. Shared across all environments."""

    # Handle DATABASE_URL: some PaaS providers (Railway, Heroku) use
    # "postgres://" which SQLAlchemy 1.4+ doesn't accept.
    _db_url = os.environ.get("DATABASE_URL", "")
    if _db_url.startswith("postgres://"):
        _db_url = _db_url.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = _db_url or None

    # --- Stripe ---
    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET")
    # Max age (seconds) of a signed webhook timestamp
    STRIPE_WEBHOOK_TOLERANCE = int(os.environ.get("STRIPE_WEBHOOK_TOLERANCE", 300))

    # --- Checkout redirects ---
    FRONTEND_BASE_URL = os.environ.get("FRONTEND_BASE_URL", "http://localhost:5173")
    CHECKOUT_SUCCESS_URL = os.environ.get(
        "CHECKOUT_SUCCESS_URL", f"{FRONTEND_BASE_URL}/success"
    )
    CHECKOUT_CANCEL_URL = os.environ.get(
        "CHECKOUT_CANCEL_URL", f"{FRONTEND_BASE_URL}/cancel"
    )

    # --- CORS ---
    CORS_ALLOWED_ORIGINS = _split_origins(
        os.environ.get("CORS_ALLOWED_ORIGINS", "http://localhost:5173")
    )

    # --- SQLAlchemy ---
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }

    @staticmethod
    def validate():
        """Fail fast if required env vars are missing."""
        required = [
            "DATABASE_URL",
            "STRIPE_SECRET_KEY",
            "STRIPE_WEBHOOK_SECRET",
        ]
        missing = [v for v in required if not os.environ.get(v)]
        if missing:
            raise RuntimeError(
                f"Missing required environment variables: {', '.join(missing)}"
            )


class DevConfig(Config):
    """Local development. Falls back to a SQLite file when DATABASE_URL is unset."""

    DEBUG = True
    SQLALCHEMY_DATABASE_URI = Config.SQLALCHEMY_DATABASE_URI or "sqlite:///storefront.db"


class TestConfig(Config):
    """Testing — in-memory SQLite, fake Stripe keys."""

    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    STRIPE_SECRET_KEY = "sk_test_fake"
    STRIPE_WEBHOOK_SECRET = "whsec_test_fake"
    STRIPE_WEBHOOK_TOLERANCE = 300
    FRONTEND_BASE_URL = "http://localhost:5173"
    CHECKOUT_SUCCESS_URL = "http://localhost:5173/success"
    CHECKOUT_CANCEL_URL = "http://localhost:5173/cancel"
    CORS_ALLOWED_ORIGINS = ["http://localhost:5173"]
    RATELIMIT_ENABLED = False  # disable rate limiting in tests
    SERVER_NAME = "localhost"

    @staticmethod
    def validate():
        """Skip validation in test mode — everything is hardcoded."""
        pass


class ProdConfig(Config):
    """Production."""

    DEBUG = False


config_by_name = {
    "development": DevConfig,
    "production": ProdConfig,
    "testing": TestConfig,
}


@dataclass(frozen=True)
class StripeSettings:
    """Stripe credentials and checkout redirects, resolved once per app.

    Passed explicitly into the webhook processor and the checkout builder
    so no code path touches the global ``stripe.api_key``.
    """

    secret_key: str
    webhook_secret: str
    webhook_tolerance: int = 300
    success_url: str = ""
    cancel_url: str = ""

    @classmethod
    def from_config(cls, config):
        return cls(
            secret_key=config.get("STRIPE_SECRET_KEY") or "",
            webhook_secret=config.get("STRIPE_WEBHOOK_SECRET") or "",
            webhook_tolerance=int(config.get("STRIPE_WEBHOOK_TOLERANCE") or 300),
            success_url=config.get("CHECKOUT_SUCCESS_URL") or "",
            cancel_url=config.get("CHECKOUT_CANCEL_URL") or "",
        )

    def __repr__(self):
        return (
            f"<StripeSettings secret_key={mask_secret(self.secret_key)} "
            f"webhook_secret={mask_secret(self.webhook_secret)}>"
        )


def mask_secret(value, visible=4):
    """Render a secret for logs: prefix plus the last few characters only."""
    if not value:
        return "(not set)"
    prefix = value.split("_", 1)[0] + "_" if "_" in value else ""
    return f"{prefix}****{value[-visible:]}"
