import logging
from functools import wraps

from flask import current_app, g, session
from sqlalchemy.exc import IntegrityError

from extensions import db
from thinkquiz.models import User
from thinkquiz.services.errors import AuthenticationRequired, Conflict, Forbidden
from thinkquiz.services.security_events import record_security_event

logger = logging.getLogger(__name__)


def current_user():
    if "current_user" in g:
        return g.current_user
    user = None
    user_id = session.get("user_id")
    if user_id is not None:
        user = db.session.get(User, user_id)
        if user is None:
            session.pop("user_id", None)
    g.current_user = user
    return user


def is_admin(user):
    if user is None or not user.email:
        return False
    return user.email.lower() in current_app.config.get("ADMIN_EMAILS", [])


def login_required(f):
    @wraps(f)
    def wrapped(*args, **kwargs):
        if current_user() is None:
            record_security_event("AUTH_FAILURE", reason="not authenticated")
            raise AuthenticationRequired("Authentication required")
        return f(*args, **kwargs)
    return wrapped


def ensure_admin():
    user = current_user()
    if user is None:
        record_security_event("AUTH_FAILURE", reason="admin not authenticated")
        raise AuthenticationRequired("Authentication required")
    if not is_admin(user):
        record_security_event("UNAUTHORIZED_ACCESS", user_id=user.id, reason="not an admin")
        raise Forbidden("Admin access required")
    return user


def admin_required(f):
    @wraps(f)
    def wrapped(*args, **kwargs):
        ensure_admin()
        return f(*args, **kwargs)
    return wrapped


def register_user(data):
    email = data.email.lower()
    if User.query.filter_by(email=email).first():
        record_security_event("DUPLICATE_REGISTRATION_ATTEMPT", email=email)
        raise Conflict("An account with this email already exists")

    user = User(
        name=data.name,
        email=email,
        phone=data.phone,
        date_of_birth=data.dateOfBirth,
    )
    user.set_password(data.password)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        record_security_event("DUPLICATE_REGISTRATION_ATTEMPT", email=email)
        raise Conflict("An account with this email already exists")

    logger.info("Registered user %s", user.id)
    return user


def authenticate(email, password):
    user = User.query.filter_by(email=email.lower()).first()
    if user is None or not user.check_password(password):
        record_security_event("FAILED_LOGIN", email=email.lower())
        raise AuthenticationRequired("Invalid email or password")
    return user


def login_user(user):
    csrf_token = session.get("csrf_token")
    session.clear()
    session["user_id"] = user.id
    if csrf_token:
        session["csrf_token"] = csrf_token
    g.current_user = user


def logout_user():
    session.clear()
    g.pop("current_user", None)


def session_payload(user):
    if user is None:
        return {"authenticated": False, "user": None}
    return {"authenticated": True, "isAdmin": is_admin(user), "user": user.to_public()}
