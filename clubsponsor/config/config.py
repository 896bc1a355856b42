# clubsponsor/config/config.py
# Canonical ClubSponsor configuration (env-first, production-safe)

from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from typing import Optional


# ----------------------------
# Env helpers
# ----------------------------
_TRUTHY = {"1", "true", "yes", "on", "y"}
_FALSY = {"0", "false", "no", "off", "n"}

BASE_DIR = Path(__file__).resolve().parent.parent.parent


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    if v is None:
        return default
    s = str(v).strip()
    return s if s else default


def _bool(name: str, default: bool = False) -> bool:
    v = _env(name)
    if v is None:
        return default
    s = v.strip().lower()
    if s in _TRUTHY:
        return True
    if s in _FALSY:
        return False
    return default


def _int(name: str, default: int) -> int:
    v = _env(name)
    if v is None:
        return default
    try:
        return int(str(v).strip())
    except ValueError:
        return default


def _clean_base_url(v: Optional[str]) -> str:
    return (v or "").strip().rstrip("/")


# ----------------------------
# Config classes
# ----------------------------
class BaseConfig:
    """
    Env-first config:
    - every setting below can be overridden via environment variables
    - safe defaults for local dev
    """

    ENV = (_env("APP_ENV") or _env("ENV") or _env("FLASK_ENV") or "base").strip().lower()

    DEBUG = _bool("FLASK_DEBUG", False)
    TESTING = _bool("TESTING", False)

    BRAND_NAME = _env("BRAND_NAME", "ClubSponsor")

    # Security
    SECRET_KEY = _env("SECRET_KEY", "dev-change-me")

    # URLs / scheme
    PUBLIC_BASE_URL = _clean_base_url(_env("PUBLIC_BASE_URL", "http://localhost:5000"))
    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "https")
    TRUST_PROXY = _bool("TRUST_PROXY", False)
    CORS_ORIGINS = _env("CORS_ORIGINS", "*")

    # Cookies
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = _env("SESSION_COOKIE_SAMESITE", "Lax")
    SESSION_COOKIE_SECURE = True
    REMEMBER_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_SECURE = True
    PERMANENT_SESSION_LIFETIME = timedelta(days=_int("SESSION_DAYS", 14))

    # Logging
    LOG_LEVEL = _env("LOG_LEVEL", "INFO")
    WERKZEUG_LOG_LEVEL = _env("WERKZEUG_LOG_LEVEL", "WARNING")

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = _env("SQLALCHEMY_DATABASE_URI", "sqlite:///clubsponsor-dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
    AUTO_CREATE_SQLITE = _bool("AUTO_CREATE_SQLITE", True)

    # Mail (Flask-Mail)
    MAIL_SERVER = _env("MAIL_SERVER", "localhost")
    MAIL_PORT = _int("MAIL_PORT", 25)
    MAIL_USE_TLS = _bool("MAIL_USE_TLS", False)
    MAIL_USE_SSL = _bool("MAIL_USE_SSL", False)
    MAIL_USERNAME = _env("MAIL_USERNAME")
    MAIL_PASSWORD = _env("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = _env("MAIL_DEFAULT_SENDER", "ClubSponsor <no-reply@clubsponsor.local>")
    MAIL_MAX_RETRIES = _int("MAIL_MAX_RETRIES", 2)
    MAIL_ASYNC = _bool("MAIL_ASYNC", True)

    # Machine auth (webhooks, cron)
    API_TOKENS = _env("API_TOKENS", "")
    JWT_SECRET = _env("JWT_SECRET", "")
    JWT_ALG = _env("JWT_ALG", "HS256")

    # Notifications
    SLACK_WEBHOOK_URL = _env("SLACK_WEBHOOK_URL")

    # Domain knobs
    INVITATION_EXPIRY_DAYS = _int("INVITATION_EXPIRY_DAYS", 30)
    PUBLIC_SUBMIT_COOLDOWN_SECONDS = _int("PUBLIC_SUBMIT_COOLDOWN_SECONDS", 3)
    JOB_BATCH_SIZE = _int("JOB_BATCH_SIZE", 10)
    TENANTS_PER_PAGE = _int("TENANTS_PER_PAGE", 10)
    EMAIL_LOGS_PAGE_SIZE = _int("EMAIL_LOGS_PAGE_SIZE", 25)
    RECENT_PLEDGES_LIMIT = _int("RECENT_PLEDGES_LIMIT", 20)
    EXPORTS_DIR = _env("EXPORTS_DIR", str(BASE_DIR / "instance" / "exports"))
    ALLOW_PUBLIC_DIAG = _bool("ALLOW_PUBLIC_DIAG", False)

    @classmethod
    def init_app(cls, app) -> None:
        """Boot hardening hook, called by create_app() after from_object()."""
        uri = str(app.config.get("SQLALCHEMY_DATABASE_URI") or "")

        if uri.startswith("sqlite:"):
            opts = dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
            connect_args = dict(opts.get("connect_args") or {})
            connect_args.setdefault("check_same_thread", False)
            opts["connect_args"] = connect_args
            opts.setdefault("pool_pre_ping", True)
            app.config["SQLALCHEMY_ENGINE_OPTIONS"] = opts


class DevelopmentConfig(BaseConfig):
    ENV = "development"
    DEBUG = True

    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False
    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "http")
    ALLOW_PUBLIC_DIAG = True


class TestingConfig(BaseConfig):
    ENV = "testing"
    TESTING = True
    DEBUG = False

    SECRET_KEY = "testing-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False
    PREFERRED_URL_SCHEME = "http"

    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = "ClubSponsor <no-reply@clubsponsor.test>"
    MAIL_MAX_RETRIES = 0
    MAIL_ASYNC = False

    PUBLIC_BASE_URL = "https://sponsor.example.org"
    API_TOKENS = "test-token"
    SLACK_WEBHOOK_URL = None
    ALLOW_PUBLIC_DIAG = True


class ProductionConfig(BaseConfig):
    ENV = "production"
    DEBUG = False

    SESSION_COOKIE_SECURE = True
    REMEMBER_COOKIE_SECURE = True
    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "https")
    TRUST_PROXY = _bool("TRUST_PROXY", True)
    AUTO_CREATE_SQLITE = False

    @classmethod
    def init_app(cls, app) -> None:
        super().init_app(app)

        sk = app.config.get("SECRET_KEY")
        if not sk or sk == "dev-change-me":
            raise RuntimeError("SECRET_KEY must be set to a strong random value in production.")

        base = (app.config.get("PUBLIC_BASE_URL") or "").strip()
        if base and base.startswith("http://"):
            raise RuntimeError("PUBLIC_BASE_URL must be https:// in production.")

        if _bool("FLASK_DEBUG", False):
            raise RuntimeError("FLASK_DEBUG must be 0 in production.")
