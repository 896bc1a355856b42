# clubsponsor/__init__.py
# ClubSponsor: multi-tenant sponsorship platform, Flask app factory
# Goals:
# - deterministic blueprint registration
# - proxy-correct (reverse proxy / tunnel)
# - one JSON error envelope for every API surface

from __future__ import annotations

import importlib.util
import logging
import os
import secrets
import time
from importlib import import_module
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type, Union
from uuid import uuid4

from dotenv import load_dotenv
from flask import Blueprint, Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException, InternalServerError
from werkzeug.middleware.proxy_fix import ProxyFix

# IMPORTANT: never override real env vars in prod
load_dotenv(override=False)

ConfigLike = Union[str, Type[Any]]

from clubsponsor.extensions import cors, csrf, db, login_manager, mail, migrate, socketio  # noqa: E402
from clubsponsor.services.errors import ServiceError  # noqa: E402

JSON_PREFIXES = ("/api/", "/admin/", "/public/", "/webhooks/", "/_diag")

# Blueprints serving JSON to non-browser clients skip CSRF.
CSRF_EXEMPT = (
    "clubsponsor.routes.auth",
    "clubsponsor.routes.campaigns",
    "clubsponsor.routes.sponsors",
    "clubsponsor.routes.club",
    "clubsponsor.routes.templates",
    "clubsponsor.routes.public",
    "clubsponsor.routes.webhooks",
    "clubsponsor.admin.routes",
)


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _env_bool(name: str) -> Optional[bool]:
    v = os.getenv(name)
    if v is None:
        return None
    s = str(v).strip().lower()
    if s in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "f", "no", "n", "off"}:
        return False
    return None


def _env_mode(app: Optional[Flask] = None) -> str:
    """
    Determine environment mode deterministically.
    Priority:
      1) app.config["ENV"] (if present and meaningful)
      2) APP_ENV / ENV / FLASK_ENV env vars
      3) default "development"
    """
    if app is not None:
        v = app.config.get("ENV")
        if v and str(v).strip() and str(v).strip() not in {"?", "base"}:
            return str(v).strip().lower()

    for key in ("APP_ENV", "ENV", "FLASK_ENV"):
        val = (os.getenv(key) or "").strip().lower()
        if val:
            if val in {"prod"}:
                return "production"
            if val in {"dev"}:
                return "development"
            return val

    return "development"


def _resolve_config(target: Optional[ConfigLike]) -> ConfigLike:
    """
    Choose config class/module path.
    - If explicitly provided, respect it (a short name like "testing" maps to its class).
    - Else if FLASK_CONFIG is set, use it.
    - Else choose ProductionConfig when env indicates production; otherwise DevelopmentConfig.
    """
    from clubsponsor.config import CONFIG_BY_NAME

    if target is None:
        target = (os.getenv("FLASK_CONFIG") or "").strip() or None
    if target is None:
        target = "production" if _env_mode(None) == "production" else "development"
    if isinstance(target, str) and target.lower() in CONFIG_BY_NAME:
        return CONFIG_BY_NAME[target.lower()]
    return target


def _module_exists(dotted: str) -> bool:
    try:
        return importlib.util.find_spec(dotted) is not None
    except ModuleNotFoundError:
        return False


def _is_prod(app: Flask) -> bool:
    return _env_mode(app) == "production"


def _iter_candidates(x: Union[str, Iterable[str]]) -> List[str]:
    if isinstance(x, str) and "|" in x:
        return [p.strip() for p in x.split("|") if p.strip()]
    if isinstance(x, str):
        return [x]
    return list(x)


def _json_error(message: str, status: int, **extra: Any):
    payload: Dict[str, Any] = {"ok": False, "error": {"code": int(status), "message": str(message)}}
    rid = extra.pop("request_id", None)
    if rid:
        payload["error"]["request_id"] = rid
    if extra:
        payload["error"].update(extra)

    resp = jsonify(payload)
    resp.status_code = int(status)
    return resp


def _wants_json_response() -> bool:
    path = request.path or ""
    if path.startswith(JSON_PREFIXES):
        return True
    accept = (request.headers.get("Accept") or "").lower()
    return ("application/json" in accept) or bool(request.is_json)


def _parse_cors_origins(app: Flask) -> Union[str, List[str]]:
    raw = (app.config.get("CORS_ORIGINS") or ("*" if not _is_prod(app) else app.config.get("PUBLIC_BASE_URL", ""))).strip()
    if raw in {"", "*"}:
        return raw
    if "," in raw:
        return [o.strip() for o in raw.split(",") if o.strip()]
    return raw


# -----------------------------------------------------------------------------
# Logging with request_id
# -----------------------------------------------------------------------------
class _RequestIDFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        try:
            record.request_id = getattr(g, "request_id", "-")
        except RuntimeError:
            record.request_id = "-"
        return True


def _configure_logging(app: Flask) -> None:
    fmt = "%(asctime)s [%(levelname)s] %(name)s [rid=%(request_id)s]: %(message)s"
    root = logging.getLogger()

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt))
        handler.addFilter(_RequestIDFilter())
        root.addHandler(handler)
    else:
        for h in root.handlers:
            if not any(isinstance(f, _RequestIDFilter) for f in h.filters):
                h.addFilter(_RequestIDFilter())
            if not getattr(h, "formatter", None) or "%(request_id)s" not in getattr(h.formatter, "_fmt", ""):
                h.setFormatter(logging.Formatter(fmt))

    root.setLevel(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    logging.getLogger("werkzeug").setLevel(str(app.config.get("WERKZEUG_LOG_LEVEL", "WARNING")).upper())
    app.logger.info("Loaded config: ENV=%s DEBUG=%s", app.config.get("ENV", "?"), app.debug)


# -----------------------------------------------------------------------------
# ProxyFix (reverse proxy)
# -----------------------------------------------------------------------------
def _apply_proxyfix(app: Flask) -> None:
    trust = _env_bool("TRUST_PROXY")
    if trust is None:
        trust = bool(app.config.get("TRUST_PROXY", False))

    if not trust:
        return

    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=1)
    app.logger.info("ProxyFix enabled (trusting X-Forwarded-* headers).")
    app.config["PREFERRED_URL_SCHEME"] = "https"


# -----------------------------------------------------------------------------
# Blueprint registration
# -----------------------------------------------------------------------------
def _safe_register(app: Flask, dotted: str, attr: Union[str, Iterable[str]], url_prefix: Optional[str]) -> bool:
    disabled = {p.strip().lower() for p in (os.getenv("DISABLE_BPS", "")).split(",") if p.strip()}
    mod_key = dotted.split(".")[-1].lower()
    if mod_key in disabled:
        app.logger.info("Disabled module: %s", dotted)
        return False

    mod = import_module(dotted)

    candidates = _iter_candidates(attr) + ["bp"]
    blueprint: Optional[Blueprint] = None
    for name in candidates:
        cand = getattr(mod, name, None)
        if isinstance(cand, Blueprint):
            blueprint = cand
            break

    if not blueprint:
        app.logger.warning("No blueprint found in %s (tried %s)", dotted, ", ".join(candidates))
        return False

    if blueprint.name in app.blueprints:
        return False

    if dotted in CSRF_EXEMPT:
        csrf.exempt(blueprint)

    app.register_blueprint(blueprint, url_prefix=url_prefix or getattr(blueprint, "url_prefix", None))
    app.logger.debug("Registered blueprint: %-18s → %s", blueprint.name, url_prefix or "/")
    return True


def _register_blueprints(app: Flask) -> None:
    core: List[Tuple[str, str, Optional[str]]] = [
        ("clubsponsor.diag", "bp", "/_diag"),
        ("clubsponsor.routes.auth", "bp", "/api/auth"),
        ("clubsponsor.routes.club", "bp", "/api/club"),
        ("clubsponsor.routes.campaigns", "bp", "/api/campaigns"),
        ("clubsponsor.routes.sponsors", "bp", "/api/sponsors"),
        ("clubsponsor.routes.templates", "bp", "/api/templates"),
        ("clubsponsor.routes.public", "bp", "/public"),
        ("clubsponsor.routes.webhooks", "bp", "/webhooks"),
        ("clubsponsor.admin.routes", "bp|admin_bp", "/admin"),
    ]
    for dotted, attr, prefix in core:
        if _module_exists(dotted):
            _safe_register(app, dotted, attr, prefix)


# -----------------------------------------------------------------------------
# Integrations
# -----------------------------------------------------------------------------
def _init_cors(app: Flask, cors_origins: Union[str, List[str]]) -> None:
    supports_credentials = (os.getenv("CORS_SUPPORTS_CREDENTIALS", "")).strip().lower() in {"1", "true", "yes", "on"}
    if cors_origins == "*":
        supports_credentials = False

    cors.init_app(
        app,
        supports_credentials=supports_credentials,
        resources={
            r"/api/*": {"origins": cors_origins},
            r"/public/*": {"origins": cors_origins},
            r"/webhooks/*": {"origins": cors_origins},
        },
        expose_headers=["X-Request-ID", "Content-Disposition"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    )


def _init_socketio(app: Flask, cors_origins: Union[str, List[str]]) -> None:
    app.socketio = socketio  # type: ignore[attr-defined]
    socketio.init_app(app, cors_allowed_origins=cors_origins if cors_origins else "*")


def _maybe_create_sqlite_tables(app: Flask) -> None:
    uri = (app.config.get("SQLALCHEMY_DATABASE_URI") or "").strip()
    if not uri.startswith("sqlite"):
        return
    if app.config.get("AUTO_CREATE_SQLITE", True) is not True:
        return
    import clubsponsor.models  # noqa: F401  (register tables)

    with app.app_context():
        db.create_all()


def _init_login(app: Flask) -> None:
    login_manager.init_app(app)
    login_manager.session_protection = "basic"

    from clubsponsor.models import AppUser

    @login_manager.user_loader
    def load_user(uid: str):
        try:
            user = db.session.get(AppUser, int(uid))
        except (TypeError, ValueError):
            return None
        return user if user is not None and user.is_active else None

    @login_manager.unauthorized_handler
    def _unauthorized():
        return _json_error("Authentication required.", 401, request_id=getattr(g, "request_id", "-"))


# -----------------------------------------------------------------------------
# Request lifecycle + errors
# -----------------------------------------------------------------------------
def _register_request_lifecycle(app: Flask) -> None:
    @app.before_request
    def _bootstrap_request():
        g.request_id = request.headers.get("X-Request-ID") or uuid4().hex
        g._start_ts = time.perf_counter()

    @app.after_request
    def _attach_request_headers(resp):
        resp.headers["X-Request-ID"] = getattr(g, "request_id", "-")
        start = getattr(g, "_start_ts", None)
        if start:
            resp.headers["X-Response-Time-ms"] = str(int((time.perf_counter() - start) * 1000))
        return resp


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ServiceError)
    def _service_err(err: ServiceError):
        db.session.rollback()
        extra: Dict[str, Any] = {}
        if err.errors:
            extra["errors"] = err.errors
        if err.status >= 500:
            app.logger.error("Service failure: %s", err.message)
        return _json_error(err.message, err.status, request_id=getattr(g, "request_id", "-"), **extra)

    @app.errorhandler(HTTPException)
    def _http_err(err: HTTPException):
        if _wants_json_response():
            return _json_error(err.description or err.name, err.code or 500, request_id=getattr(g, "request_id", "-"))
        return err

    @app.errorhandler(Exception)
    def _uncaught(err: Exception):
        app.logger.exception("Unhandled error")
        db.session.rollback()
        if _wants_json_response():
            return _json_error("Internal Server Error", 500, request_id=getattr(g, "request_id", "-"))
        return InternalServerError()


# -----------------------------------------------------------------------------
# Health endpoints
# -----------------------------------------------------------------------------
def _register_health_endpoints(app: Flask) -> None:
    @app.get("/healthz")
    def _healthz():
        return {
            "status": "ok",
            "brand": app.config.get("BRAND_NAME", "ClubSponsor"),
            "env": app.config.get("ENV", "unknown"),
            "request_id": getattr(g, "request_id", "-"),
        }

    @app.get("/version")
    def _version():
        return {
            "version": os.getenv("GIT_COMMIT", "dev"),
            "env": app.config.get("ENV"),
            "brand": app.config.get("BRAND_NAME", "ClubSponsor"),
            "public_base_url": app.config.get("PUBLIC_BASE_URL") or "",
        }


# -----------------------------------------------------------------------------
# App Factory
# -----------------------------------------------------------------------------
def create_app(config_class: Optional[ConfigLike] = None) -> Flask:
    app = Flask(__name__, static_folder=None, instance_relative_config=False)

    # ---- Config loading
    cfg = _resolve_config(config_class)
    app.config.from_object(cfg)
    init_cfg = getattr(cfg, "init_app", None)
    if callable(init_cfg):
        init_cfg(app)

    # ---- Normalize environment (do NOT leave ENV=base)
    env = _env_mode(app)
    app.config["ENV"] = env
    if env == "production" and bool(app.config.get("DEBUG", False)):
        app.config["DEBUG"] = False

    app.url_map.strict_slashes = False

    app.config.setdefault("JSON_SORT_KEYS", False)
    app.config.setdefault("PROPAGATE_EXCEPTIONS", False)
    app.config.setdefault("SECRET_KEY", os.getenv("SECRET_KEY") or secrets.token_urlsafe(32))
    app.config.setdefault("SESSION_COOKIE_NAME", os.getenv("SESSION_COOKIE_NAME", "clubsponsor"))
    app.config.setdefault("AUTO_CREATE_SQLITE", True)
    app.json.sort_keys = False  # type: ignore[attr-defined]
    app.json.ensure_ascii = False  # type: ignore[attr-defined]

    # ---- Proxy handling first
    _apply_proxyfix(app)

    # ---- Logging / CORS
    _configure_logging(app)
    origins = _parse_cors_origins(app)
    _init_cors(app, origins)

    # ---- Core extensions
    csrf.init_app(app)
    db.init_app(app)
    _maybe_create_sqlite_tables(app)
    migrate.init_app(app, db, compare_type=True, render_as_batch=True)
    mail.init_app(app)
    _init_socketio(app, origins)

    # ---- Request lifecycle / errors / auth
    _register_request_lifecycle(app)
    _register_error_handlers(app)
    _init_login(app)

    # ---- Blueprints + health
    _register_blueprints(app)
    _register_health_endpoints(app)

    # ---- CLI commands
    from clubsponsor.cli import register_cli

    register_cli(app)

    return app
