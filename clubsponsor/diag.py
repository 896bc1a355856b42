# clubsponsor/diag.py
from flask import Blueprint, abort, current_app, jsonify
from sqlalchemy import inspect as sa_inspect

from clubsponsor.extensions import db
from clubsponsor.services.templates_flex import MODES, TABLE_NAME, detect_mode

bp = Blueprint("diag", __name__)  # name must match what you register


@bp.get("/templates")
def diag_templates():
    # Hide in production unless explicitly allowed
    if current_app.config.get("ENV") == "production" and not current_app.config.get("ALLOW_PUBLIC_DIAG"):
        abort(404)

    inspector = sa_inspect(db.engine)
    exists = inspector.has_table(TABLE_NAME)
    columns = [c["name"] for c in inspector.get_columns(TABLE_NAME)] if exists else []
    mode = detect_mode() if exists else None

    return jsonify(
        {
            "ok": mode is not None,
            "table": TABLE_NAME,
            "exists": exists,
            "mode": mode,
            "columns": columns,
            "expected": {m.name: list(m.select_columns) for m in MODES},
            "dialect": db.engine.dialect.name,
        }
    )
