import logging
import os
import time

from flask import current_app
from sqlalchemy.exc import IntegrityError
from werkzeug.utils import secure_filename

from extensions import db
from thinkquiz.models import PrizeRedemption, QuizAttempt, User, Winning
from thinkquiz.services.errors import ValidationFailed
from thinkquiz.services.security_events import record_security_event
from thinkquiz.services.utils import round_half_up

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"png": "png", "jpg": "jpeg", "jpeg": "jpeg", "gif": "gif", "webp": "webp"}


def sniff_image_type(head):
    """Image kind from the leading bytes, or None."""
    if head.startswith(b"\x89PNG\r\n\x1a\n"):
        return "png"
    if head.startswith(b"\xff\xd8\xff"):
        return "jpeg"
    if head.startswith(b"GIF87a") or head.startswith(b"GIF89a"):
        return "gif"
    if len(head) >= 12 and head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "webp"
    return None


def profile_overview(user):
    attempts = (
        QuizAttempt.query
        .filter_by(user_id=user.id, is_completed=True)
        .order_by(QuizAttempt.completed_at.desc())
        .all()
    )
    redemptions = (
        PrizeRedemption.query
        .filter_by(user_id=user.id)
        .order_by(PrizeRedemption.requested_at.desc())
        .all()
    )
    evaluated = [a for a in attempts if a.is_evaluated]
    return {
        "user": user.to_public(),
        "points": user.points or 0,
        "walletBalance": float(user.wallet_balance or 0.0),
        "stats": {
            "quizzesTaken": len(attempts),
            "averageScore": round_half_up(sum(a.score for a in evaluated) / len(evaluated)) if evaluated else 0,
            "totalWinnings": Winning.query.filter_by(user_id=user.id).count(),
            "totalRedemptions": len(redemptions),
        },
        "recentAttempts": [
            {
                "id": a.id,
                "quizId": a.quiz_id,
                "quizTitle": a.quiz.title if a.quiz else None,
                "score": a.score if a.is_evaluated else None,
                "points": a.points,
                "isEvaluated": a.is_evaluated,
            }
            for a in attempts[:10]
        ],
        "redemptions": [r.to_dict() for r in redemptions],
    }


def update_profile(user, data):
    email = data.email.lower()
    taken = User.query.filter(User.email == email, User.id != user.id).first()
    if taken is not None:
        raise ValidationFailed("Email is already in use")

    user.name = data.name
    user.email = email
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationFailed("Email is already in use")

    record_security_event("PROFILE_UPDATE", user_id=user.id, fields=["name", "email"])
    return user


def password_capabilities(user):
    has_password = bool(user.password_hash)
    provider = user.auth_provider or ("email" if has_password else "oauth")
    return {
        "canChangePassword": has_password,
        "hasPassword": has_password,
        "authProvider": provider,
        "authMethod": "password" if has_password else provider,
    }


def change_password(user, data):
    if not user.password_hash:
        raise ValidationFailed(
            f"Password change is not available for accounts that sign in with {user.auth_provider or 'oauth'}",
            canChangePassword=False,
        )
    if not user.check_password(data.currentPassword):
        record_security_event("INVALID_PASSWORD_ATTEMPT", user_id=user.id)
        raise ValidationFailed("Current password is incorrect")
    if data.currentPassword == data.newPassword:
        raise ValidationFailed("New password must be different from the current password")

    user.set_password(data.newPassword)
    db.session.commit()
    record_security_event("PASSWORD_CHANGE", user_id=user.id, severity="LOW")
    return user


def save_profile_picture(user, upload):
    if upload is None or not upload.filename:
        raise ValidationFailed("No file uploaded")

    ext = upload.filename.rsplit(".", 1)[-1].lower() if "." in upload.filename else ""
    declared = ALLOWED_EXTENSIONS.get(ext)
    if declared is None:
        record_security_event("INVALID_FILE_TYPE", user_id=user.id, fileName=upload.filename)
        raise ValidationFailed("Invalid file type. Please upload JPEG, PNG, WebP, or GIF images.")

    limit = current_app.config.get("MAX_PICTURE_BYTES", 2 * 1024 * 1024)
    data = upload.read(limit + 1)
    if len(data) > limit:
        record_security_event("FILE_SIZE_EXCEEDED", user_id=user.id, fileName=upload.filename, fileSize=len(data))
        raise ValidationFailed(f"File size too large. Maximum size is {limit // (1024 * 1024)}MB.")
    if not data:
        raise ValidationFailed("Uploaded file is empty")

    actual = sniff_image_type(data[:16])
    if actual is None or actual != declared:
        record_security_event("INVALID_FILE_MAGIC_BYTES", user_id=user.id, fileName=upload.filename)
        raise ValidationFailed("File content does not match an allowed image type")

    uploads_dir = current_app.config["UPLOADS_DIR"]
    os.makedirs(uploads_dir, exist_ok=True)
    filename = secure_filename(f"{user.id}-{int(time.time() * 1000)}.{ext}")
    with open(os.path.join(uploads_dir, filename), "wb") as fh:
        fh.write(data)

    user.image_url = f"/uploads/{filename}"
    db.session.commit()
    logger.info("Stored profile picture %s for user %s", filename, user.id)
    return user.image_url
