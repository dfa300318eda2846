# backend/halalcert/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/halalcert.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///halalcert.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Alembic revisions live beside the package, so `flask db` works from any cwd
    MIGRATIONS_DIR = os.environ.get(
        "MIGRATIONS_DIR",
        os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "migrations"),
    )

    # Certificates
    # Public site that serves /verify/<certificate_number>; encoded into QR codes
    CERTIFICATE_BASE_URL = os.environ.get("CERTIFICATE_BASE_URL", "http://localhost:3000")
    CERTIFICATE_VALIDITY_DAYS = int(os.environ.get("CERTIFICATE_VALIDITY_DAYS", "365"))
    CERTIFICATE_NUMBER_MAX_ATTEMPTS = int(os.environ.get("CERTIFICATE_NUMBER_MAX_ATTEMPTS", "10"))

    # Notifications: "log" writes emails to the app logger, "smtp" delivers them
    NOTIFICATION_BACKEND = os.environ.get("NOTIFICATION_BACKEND", "log")
    NOTIFICATION_TIMEOUT_SECONDS = float(os.environ.get("NOTIFICATION_TIMEOUT_SECONDS", "10"))
    MAIL_SERVER = os.environ.get("MAIL_SERVER", "localhost")
    MAIL_PORT = int(os.environ.get("MAIL_PORT", "587"))
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", True)
    MAIL_SENDER = os.environ.get("MAIL_SENDER", "Halal Certification <info@halalcert.org>")

    # Payments: "demo" accepts demo_pi_* references, "stripe" asks the Stripe API
    PAYMENT_VERIFIER = os.environ.get("PAYMENT_VERIFIER", "demo")
    STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY")
    STRIPE_API_BASE = os.environ.get("STRIPE_API_BASE", "https://api.stripe.com/v1")
    PAYMENT_VERIFY_TIMEOUT_SECONDS = float(os.environ.get("PAYMENT_VERIFY_TIMEOUT_SECONDS", "10"))

    # Auth
    SESSION_ABSOLUTE_TIMEOUT_HOURS = int(os.environ.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", "24"))
    SESSION_IDLE_TIMEOUT_HOURS = int(os.environ.get("SESSION_IDLE_TIMEOUT_HOURS", "2"))
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Evidence uploads (bytes)
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024

    # Browser origins allowed to call the API (comma separated)
    CORS_ALLOWED_ORIGINS = tuple(
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173"
        ).split(",")
        if origin.strip()
    )
