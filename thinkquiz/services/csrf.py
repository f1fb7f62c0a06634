import hmac
import secrets
from functools import wraps

from flask import request, session

from thinkquiz.services.errors import Forbidden
from thinkquiz.services.security_events import record_security_event

CSRF_SESSION_KEY = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"


def generate_csrf_token():
    token = session.get(CSRF_SESSION_KEY)
    if not token:
        token = secrets.token_urlsafe(32)
        session[CSRF_SESSION_KEY] = token
    return token


def validate_csrf_token(token):
    expected = session.get(CSRF_SESSION_KEY)
    if not expected or not token:
        return False
    return hmac.compare_digest(str(expected), str(token))


def ensure_csrf():
    if not validate_csrf_token(request.headers.get(CSRF_HEADER)):
        record_security_event(
            "CSRF_TOKEN_VIOLATION",
            user_id=session.get("user_id"),
            method=request.method,
        )
        raise Forbidden("Invalid CSRF token")


def csrf_protect(f):
    @wraps(f)
    def wrapped(*args, **kwargs):
        ensure_csrf()
        return f(*args, **kwargs)
    return wrapped
