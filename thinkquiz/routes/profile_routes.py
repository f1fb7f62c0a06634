from flask import Blueprint, jsonify, request

from thinkquiz.routes.helpers import load_json
from thinkquiz.services.auth_service import current_user, login_required
from thinkquiz.services.csrf import csrf_protect
from thinkquiz.services.profile_service import (
    change_password,
    password_capabilities,
    profile_overview,
    save_profile_picture,
    update_profile,
)
from thinkquiz.services.rate_limiter import (
    file_upload_limiter,
    password_change_limiter,
    profile_limiter,
    rate_limited,
)
from thinkquiz.services.schemas import ChangePasswordRequest, ProfileUpdateRequest

profile_bp = Blueprint("profile", __name__)


@profile_bp.route("/api/profile")
@login_required
def profile():
    return jsonify(profile_overview(current_user()))


@profile_bp.route("/api/profile/update", methods=["PUT"])
@csrf_protect
@login_required
@rate_limited(profile_limiter)
def update():
    data = load_json(ProfileUpdateRequest)
    user = update_profile(current_user(), data)
    return jsonify({"message": "Profile updated successfully", "user": user.to_public()})


@profile_bp.route("/api/profile/change-password", methods=["POST"])
@csrf_protect
@login_required
@rate_limited(password_change_limiter)
def password():
    data = load_json(ChangePasswordRequest)
    change_password(current_user(), data)
    return jsonify({"message": "Password changed successfully"})


@profile_bp.route("/api/profile/can-change-password")
@login_required
def can_change_password():
    return jsonify(password_capabilities(current_user()))


@profile_bp.route("/api/profile/upload-picture", methods=["POST"])
@csrf_protect
@login_required
@rate_limited(file_upload_limiter)
def upload_picture():
    image_url = save_profile_picture(current_user(), request.files.get("file"))
    return jsonify({"message": "Profile picture updated", "imageUrl": image_url})
