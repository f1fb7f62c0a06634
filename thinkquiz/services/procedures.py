import json
import logging

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError

from extensions import db

logger = logging.getLogger(__name__)


class ProcedureUnavailable(Exception):
    """The database-side function cannot be used; callers fall back to direct queries."""


def procedures_enabled():
    if not current_app.config.get("USE_DB_PROCEDURES", True):
        return False
    return db.engine.dialect.name == "postgresql"


def call_procedure(name, **params):
    """Run ``SELECT name(:a, :b, ...)`` inside a savepoint and return its JSON result.

    The function must return ``json`` or ``jsonb``. A missing function rolls the
    savepoint back and raises ProcedureUnavailable so the caller's transaction stays usable.
    """
    if not procedures_enabled():
        raise ProcedureUnavailable(name)

    args = ", ".join(f":{key}" for key in params)
    stmt = text(f"SELECT {name}({args})")
    try:
        with db.session.begin_nested():
            raw = db.session.execute(stmt, params).scalar()
    except DBAPIError as exc:
        logger.warning("Procedure %s unavailable, falling back: %s", name, exc.orig)
        raise ProcedureUnavailable(name) from exc

    if isinstance(raw, str):
        raw = json.loads(raw)
    return raw or {}


def procedure_exists(name):
    if db.engine.dialect.name != "postgresql":
        return False
    row = db.session.execute(
        text("SELECT 1 FROM pg_proc WHERE proname = :name"), {"name": name}
    ).first()
    return row is not None


def dialect_insert(model):
    """INSERT construct supporting ``on_conflict_do_*`` for the bound dialect."""
    if db.engine.dialect.name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        from sqlalchemy.dialects.sqlite import insert
    return insert(model)
