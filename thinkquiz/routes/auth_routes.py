from flask import Blueprint, jsonify

from thinkquiz.routes.helpers import load_json
from thinkquiz.services.auth_service import (
    authenticate,
    current_user,
    login_user,
    logout_user,
    register_user,
    session_payload,
)
from thinkquiz.services.csrf import csrf_protect, generate_csrf_token
from thinkquiz.services.rate_limiter import auth_limiter, rate_limited
from thinkquiz.services.schemas import LoginRequest, RegisterRequest

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/api/csrf-token")
def csrf_token():
    return jsonify({"csrfToken": generate_csrf_token()})


@auth_bp.route("/api/register", methods=["POST"])
@csrf_protect
@rate_limited(auth_limiter)
def register():
    data = load_json(RegisterRequest)
    user = register_user(data)
    return jsonify({"message": "Registration successful", "user": user.to_public()}), 201


@auth_bp.route("/api/auth/login", methods=["POST"])
@csrf_protect
@rate_limited(auth_limiter)
def login():
    data = load_json(LoginRequest)
    user = authenticate(data.email, data.password)
    login_user(user)
    return jsonify(session_payload(user))


@auth_bp.route("/api/auth/logout", methods=["POST"])
@csrf_protect
def logout():
    logout_user()
    return jsonify({"message": "Logged out"})


@auth_bp.route("/api/auth/session")
def current_session():
    return jsonify(session_payload(current_user()))
