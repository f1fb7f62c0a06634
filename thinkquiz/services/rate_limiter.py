import logging
import time
from datetime import timedelta
from functools import wraps

import requests
from flask import current_app, jsonify, session
from sqlalchemy import delete, func
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from thinkquiz.models import RateLimitHit
from thinkquiz.services.security_events import client_ip, record_security_event
from thinkquiz.services.utils import utcnow

logger = logging.getLogger(__name__)

UPSTASH_TIMEOUT = 2


class RateLimitResult:
    def __init__(self, allowed, limit, remaining, reset_at):
        self.allowed = allowed
        self.limit = limit
        self.remaining = remaining
        self.reset_at = reset_at  # epoch seconds


class RateLimiter:
    """Sliding-window limiter keyed by ``name:user`` or ``name:ip``.

    Hits are counted in the ``rate_limit_hit`` table, or in Upstash Redis when
    ``UPSTASH_REDIS_REST_URL`` is configured. Backend failures let the request through.
    """

    def __init__(self, name, window_seconds, max_requests):
        self.name = name
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._last_cleanup = 0.0

    def key_for(self, user_id=None):
        identity = f"user:{user_id}" if user_id else f"ip:{client_ip() or 'unknown'}"
        return f"{self.name}:{identity}"

    def check(self, user_id=None):
        key = self.key_for(user_id)
        url = current_app.config.get("UPSTASH_REDIS_REST_URL")
        token = current_app.config.get("UPSTASH_REDIS_REST_TOKEN")
        try:
            if url and token:
                return self._check_upstash(key, url, token)
            return self._check_db(key)
        except (requests.RequestException, SQLAlchemyError, ValueError) as exc:
            logger.error("Rate limiter %s backend failed, allowing request: %s", self.name, exc)
            db.session.rollback()
            return RateLimitResult(True, self.max_requests, self.max_requests - 1,
                                   time.time() + self.window_seconds)

    def _check_db(self, key):
        now = utcnow()
        window_start = now - timedelta(seconds=self.window_seconds)

        if time.time() - self._last_cleanup > self.window_seconds:
            db.session.execute(
                delete(RateLimitHit).where(
                    RateLimitHit.key.like(f"{self.name}:%"),
                    RateLimitHit.created_at < window_start,
                )
            )
            self._last_cleanup = time.time()

        count, oldest = db.session.query(
            func.count(RateLimitHit.id), func.min(RateLimitHit.created_at)
        ).filter(RateLimitHit.key == key, RateLimitHit.created_at >= window_start).one()
        count = count or 0

        reset_at = time.time() + self.window_seconds
        if oldest is not None:
            reset_at = time.time() + max(0.0, (oldest - window_start).total_seconds())

        if count >= self.max_requests:
            db.session.commit()
            return RateLimitResult(False, self.max_requests, 0, reset_at)

        db.session.add(RateLimitHit(key=key, created_at=now))
        db.session.commit()
        return RateLimitResult(True, self.max_requests, self.max_requests - count - 1, reset_at)

    def _check_upstash(self, key, url, token):
        headers = {"Authorization": f"Bearer {token}"}
        endpoint = f"{url.rstrip('/')}/pipeline"
        resp = requests.post(endpoint, json=[["INCR", key], ["PTTL", key]],
                             headers=headers, timeout=UPSTASH_TIMEOUT)
        resp.raise_for_status()
        data = resp.json()
        count = int(data[0]["result"])
        ttl_ms = int(data[1]["result"])

        if ttl_ms < 0:
            window_ms = self.window_seconds * 1000
            resp = requests.post(endpoint, json=[["PEXPIRE", key, window_ms], ["PTTL", key]],
                                 headers=headers, timeout=UPSTASH_TIMEOUT)
            resp.raise_for_status()
            ttl_ms = int(resp.json()[1]["result"] or window_ms)

        reset_at = time.time() + (ttl_ms / 1000.0 if ttl_ms > 0 else self.window_seconds)
        remaining = max(0, self.max_requests - count)
        return RateLimitResult(count <= self.max_requests, self.max_requests, remaining, reset_at)


auth_limiter = RateLimiter("auth", 15 * 60, 10)
profile_limiter = RateLimiter("profile", 60 * 60, 30)
admin_limiter = RateLimiter("admin", 60 * 60, 1000)
file_upload_limiter = RateLimiter("file_upload", 60 * 60, 20)
general_limiter = RateLimiter("general", 60, 60)
prize_redemption_limiter = RateLimiter("prize_redemption", 60 * 60, 5)
password_change_limiter = RateLimiter("password_change", 15 * 60, 5)

LIMITERS = (
    auth_limiter,
    profile_limiter,
    admin_limiter,
    file_upload_limiter,
    general_limiter,
    prize_redemption_limiter,
    password_change_limiter,
)


def apply_rate_limit(limiter, user_id=None, endpoint=None):
    """Return None when allowed, else a 429 response with rate-limit headers."""
    result = limiter.check(user_id)
    if result.allowed:
        return None

    retry_after = max(1, int(result.reset_at - time.time()))
    record_security_event(
        "RATE_LIMIT_EXCEEDED",
        user_id=user_id,
        limiter=limiter.name,
        limit=result.limit,
        target=endpoint,
    )
    resp = jsonify({
        "error": "Too many requests. Please try again later.",
        "retryAfter": retry_after,
    })
    resp.status_code = 429
    resp.headers["X-RateLimit-Limit"] = str(result.limit)
    resp.headers["X-RateLimit-Remaining"] = str(result.remaining)
    resp.headers["X-RateLimit-Reset"] = str(int(result.reset_at))
    resp.headers["Retry-After"] = str(retry_after)
    return resp


def rate_limited(limiter):
    def decorator(f):
        @wraps(f)
        def wrapped(*args, **kwargs):
            limited = apply_rate_limit(limiter, user_id=session.get("user_id"))
            if limited is not None:
                return limited
            return f(*args, **kwargs)
        return wrapped
    return decorator


def cleanup_rate_limit_hits():
    """Drop hits older than the largest configured window."""
    longest = max(limiter.window_seconds for limiter in LIMITERS)
    cutoff = utcnow() - timedelta(seconds=longest)
    result = db.session.execute(delete(RateLimitHit).where(RateLimitHit.created_at < cutoff))
    db.session.commit()
    return result.rowcount or 0
