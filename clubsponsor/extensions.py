import atexit
import logging
import os
import sqlite3
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from flask_cors import CORS
from flask_login import LoginManager
from flask_mail import Mail, Message
from flask_migrate import Migrate
from flask_socketio import SocketIO
from flask_sqlalchemy import SQLAlchemy
from flask_wtf.csrf import CSRFProtect
from sqlalchemy import event
from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Core singletons
# ─────────────────────────────────────────────────────────────
db = SQLAlchemy()
migrate = Migrate()
mail = Mail()
socketio = SocketIO(async_mode=os.getenv("SOCKET_ASYNC_MODE", "threading"))
login_manager = LoginManager()
csrf = CSRFProtect()
cors = CORS()


@event.listens_for(Engine, "connect")
def _sqlite_foreign_keys(dbapi_connection, _) -> None:
    # SQLite leaves FK enforcement (and ON DELETE CASCADE) off per connection.
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return
    cur = dbapi_connection.cursor()
    cur.execute("PRAGMA foreign_keys=ON")
    cur.close()


# ─────────────────────────────────────────────────────────────
# Background tasks + clean shutdown
# ─────────────────────────────────────────────────────────────
_BG_MAX_WORKERS = int(os.getenv("BG_MAX_WORKERS", "4"))
_EXECUTOR = ThreadPoolExecutor(max_workers=_BG_MAX_WORKERS)


def run_bg(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
    return _EXECUTOR.submit(func, *args, **kwargs)


@atexit.register
def _shutdown_executor() -> None:
    _EXECUTOR.shutdown(wait=False, cancel_futures=True)


# ─────────────────────────────────────────────────────────────
# Email helpers
# ─────────────────────────────────────────────────────────────
@dataclass
class EmailAttachment:
    filename: str
    content: bytes
    mimetype: str = "application/octet-stream"


def build_message(
    subject: str,
    recipients: List[str],
    *,
    html: Optional[str] = None,
    body: Optional[str] = None,
    sender: Optional[str] = None,
    reply_to: Optional[str] = None,
    attachments: Optional[Iterable[EmailAttachment]] = None,
) -> Message:
    msg = Message(
        subject=subject,
        recipients=recipients,
        sender=sender,
        html=html,
        body=body,
        reply_to=reply_to,
    )
    for a in attachments or ():
        msg.attach(filename=a.filename, content_type=a.mimetype, data=a.content)
    return msg


def send_with_retry(msg: Message, *, max_retries: int = 2, retry_backoff: float = 0.5) -> None:
    """Send through Flask-Mail, retrying transient failures. Raises on final failure."""
    attempts = 0
    while True:
        try:
            mail.send(msg)
            return
        except Exception as e:
            attempts += 1
            if attempts > max_retries:
                raise
            log.warning("Mail send failed (attempt %s/%s): %s", attempts, max_retries, e)
            time.sleep(float(retry_backoff) * attempts)


def send_email_async(
    app: Any,
    subject: str,
    recipients: List[str],
    *,
    html: Optional[str] = None,
    body: Optional[str] = None,
    attachments: Optional[Iterable[EmailAttachment]] = None,
    sender: Optional[str] = None,
    on_done: Optional[Callable[[bool, Optional[str]], None]] = None,
    max_retries: int = 2,
    retry_backoff: float = 0.5,
) -> Future:
    """
    Fire-and-forget email. `on_done(ok, error)` runs inside the app context
    once the send settles, so callers can record the outcome.
    """

    def _job() -> bool:
        with app.app_context():
            logger = getattr(app, "logger", log)
            error: Optional[str] = None
            try:
                msg = build_message(
                    subject, recipients, html=html, body=body, sender=sender, attachments=attachments
                )
                send_with_retry(msg, max_retries=max_retries, retry_backoff=retry_backoff)
            except Exception as e:
                logger.error("Email send permanently failed: %s", e, exc_info=True)
                error = str(e)

            if on_done is not None:
                on_done(error is None, error)
            return error is None

    return run_bg(_job)


# ─────────────────────────────────────────────────────────────
# Safe socket emit
# ─────────────────────────────────────────────────────────────
def emit_socket(event: str, data: Optional[Dict[str, Any]] = None, room: Optional[str] = None) -> bool:
    try:
        socketio.emit(event, data or {}, to=room)
        return True
    except Exception as e:
        log.warning("socket emit failed: %s", e)
        return False


__all__ = [
    "db",
    "migrate",
    "mail",
    "socketio",
    "login_manager",
    "csrf",
    "cors",
    "run_bg",
    "EmailAttachment",
    "build_message",
    "send_with_retry",
    "send_email_async",
    "emit_socket",
]
