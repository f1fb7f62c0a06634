import logging
import platform
import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from thinkquiz.services.procedures import procedure_exists, procedures_enabled
from thinkquiz.services.security_events import perf_summary, record_perf_metric
from thinkquiz.services.utils import isoformat, utcnow

logger = logging.getLogger(__name__)

STARTED_AT = time.time()
PROCEDURES = (
    "submit_quiz_attempt",
    "approve_wallet_transaction",
    "reject_wallet_transaction",
    "deduct_wallet_balance",
)


def _latency_status(latency_ms):
    if latency_ms < 1000:
        return "healthy"
    if latency_ms < 3000:
        return "degraded"
    return "unhealthy"


def check_database():
    start = time.perf_counter()
    try:
        db.session.execute(text("SELECT 1")).scalar()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Database health check failed: %s", exc)
        return {"status": "unhealthy", "latencyMs": None, "lastError": str(exc)}
    latency = (time.perf_counter() - start) * 1000
    record_perf_metric("db_health_check", latency)
    return {"status": _latency_status(latency), "latencyMs": round(latency, 2), "dialect": db.engine.dialect.name}


def check_procedures():
    if not procedures_enabled():
        return {"enabled": False, "available": {}}
    try:
        available = {name: procedure_exists(name) for name in PROCEDURES}
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.warning("Could not inspect stored procedures: %s", exc)
        return {"enabled": True, "available": {}, "lastError": str(exc)}
    return {"enabled": True, "available": available}


def check_auth():
    secret = current_app.config.get("SECRET_KEY")
    admins = current_app.config.get("ADMIN_EMAILS") or []
    configured = bool(secret) and bool(admins)
    return {
        "status": "healthy" if configured else "degraded",
        "hasSecretKey": bool(secret),
        "adminCount": len(admins),
    }


def health_report():
    start = time.perf_counter()
    database = check_database()
    auth = check_auth()

    if database["status"] == "unhealthy":
        overall = "unhealthy"
    elif database["status"] == "degraded" or auth["status"] != "healthy":
        overall = "degraded"
    else:
        overall = "healthy"

    report = {
        "status": overall,
        "timestamp": isoformat(utcnow()),
        "responseTime": round((time.perf_counter() - start) * 1000, 2),
        "components": {
            "database": database,
            "procedures": check_procedures(),
            "authentication": auth,
        },
        "system": {
            "uptime": round(time.time() - STARTED_AT, 1),
            "python": platform.python_version(),
        },
        "performance": perf_summary(),
    }
    return report, (503 if overall == "unhealthy" else 200)
