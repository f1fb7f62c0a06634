import logging
import re
import time

from flask import current_app

from extensions import db, socketio
from thinkquiz.models import StreamConfig
from thinkquiz.services.errors import ValidationFailed
from thinkquiz.services.utils import isoformat

logger = logging.getLogger(__name__)

SCRIPT_RE = re.compile(r"<script\b[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL)
STREAM_ROOM = "stream_viewers"

_cache = {"value": None, "stored_at": 0.0}


def sanitize_embed(html):
    return SCRIPT_RE.sub("", html or "").strip()


def invalidate_stream_cache():
    _cache["value"] = None
    _cache["stored_at"] = 0.0


def _serialize(config):
    if config is None:
        return None
    return {
        "id": config.id,
        "embedHtml": config.embed_html,
        "title": config.title,
        "isActive": config.is_active,
        "updatedBy": config.updated_by,
        "updatedAt": isoformat(config.updated_at),
    }


def current_config():
    return StreamConfig.query.order_by(StreamConfig.updated_at.desc(), StreamConfig.id.desc()).first()


def active_stream():
    now = time.monotonic()
    if _cache["value"] is not None and now - _cache["stored_at"] < current_app.config.get("STREAM_CACHE_SECONDS", 5):
        return _cache["value"]

    config = current_config()
    if config is not None and config.is_active and config.embed_html:
        status = {"hasActiveStream": True, "stream": _serialize(config)}
    else:
        status = {"hasActiveStream": False, "stream": None}
    _cache["value"] = status
    _cache["stored_at"] = now
    return status


def admin_stream_config():
    return {"config": _serialize(current_config())}


def save_stream_config(data, admin_email=None):
    embed = sanitize_embed(data.embedHtml)
    if len(embed) < 10:
        raise ValidationFailed("Embed code must be at least 10 characters after removing scripts")

    config = current_config()
    if config is None:
        config = StreamConfig()
        db.session.add(config)
    config.embed_html = embed
    config.title = data.title
    config.is_active = data.isActive
    config.updated_by = admin_email
    db.session.commit()

    invalidate_stream_cache()
    status = active_stream()
    socketio.emit("stream_update", status, to=STREAM_ROOM)
    logger.info("Stream embed updated by %s (active=%s)", admin_email, config.is_active)
    return status
