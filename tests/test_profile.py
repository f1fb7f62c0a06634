import io
import os

from extensions import db
from thinkquiz.models import SecurityEvent, User

from conftest import ApiClient

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _upload(api, data, filename):
    return api.post(
        "/api/profile/upload-picture",
        data={"file": (io.BytesIO(data), filename)},
        content_type="multipart/form-data",
    )


def test_profile_overview(user_api):
    body = user_api.get("/api/profile").get_json()
    assert body["user"]["email"] == "player@example.com"
    assert body["points"] == 0
    assert body["walletBalance"] == 0.0
    assert body["stats"]["quizzesTaken"] == 0
    assert body["recentAttempts"] == []


def test_profile_requires_login(client):
    assert client.get("/api/profile").status_code == 401


def test_update_profile(app, user_api, user_id):
    resp = user_api.put("/api/profile/update", json={"name": "New Name", "email": "New@Example.com"})
    assert resp.status_code == 200
    assert resp.get_json()["user"]["email"] == "new@example.com"
    with app.app_context():
        assert db.session.get(User, user_id).name == "New Name"


def test_update_profile_email_taken(user_api, make_user):
    make_user(email="other@example.com")
    resp = user_api.put("/api/profile/update", json={"name": "Player", "email": "other@example.com"})
    assert resp.status_code == 400


def test_change_password(app, user_api):
    resp = user_api.post("/api/profile/change-password", json={
        "currentPassword": "Secret#123", "newPassword": "Newer#Pass2",
    })
    assert resp.status_code == 200

    api = ApiClient(app.test_client())
    api.login("player@example.com", password="Newer#Pass2")


def test_change_password_wrong_current(app, user_api):
    resp = user_api.post("/api/profile/change-password", json={
        "currentPassword": "nope", "newPassword": "Newer#Pass2",
    })
    assert resp.status_code == 400
    with app.app_context():
        assert SecurityEvent.query.filter_by(type="INVALID_PASSWORD_ATTEMPT").count() == 1


def test_can_change_password_for_email_account(user_api):
    body = user_api.get("/api/profile/can-change-password").get_json()
    assert body == {
        "canChangePassword": True,
        "hasPassword": True,
        "authProvider": "email",
        "authMethod": "password",
    }


def test_provider_account_cannot_change_password(app):
    with app.app_context():
        user = User(name="Oauth Player", email="oauth@example.com", auth_provider="google")
        db.session.add(user)
        db.session.commit()
        uid = user.id

    api = ApiClient(app.test_client())
    with api.client.session_transaction() as sess:
        sess["user_id"] = uid

    body = api.get("/api/profile/can-change-password").get_json()
    assert body["canChangePassword"] is False
    assert body["hasPassword"] is False
    assert body["authProvider"] == "google"

    resp = api.post("/api/profile/change-password", json={
        "currentPassword": "anything", "newPassword": "Newer#Pass2",
    })
    assert resp.status_code == 400
    assert resp.get_json()["canChangePassword"] is False
    with app.app_context():
        assert db.session.get(User, uid).password_hash is None


def test_can_change_password_requires_login(client):
    assert client.get("/api/profile/can-change-password").status_code == 401


def test_upload_picture_stores_file(app, user_api, user_id):
    resp = _upload(user_api, PNG_BYTES, "avatar.png")
    assert resp.status_code == 200
    image_url = resp.get_json()["imageUrl"]
    assert image_url.startswith("/uploads/")

    filename = image_url.rsplit("/", 1)[-1]
    assert os.path.exists(os.path.join(app.config["UPLOADS_DIR"], filename))
    assert user_api.get(image_url).data == PNG_BYTES
    with app.app_context():
        assert db.session.get(User, user_id).image_url == image_url


def test_upload_rejects_mismatched_content(app, user_api):
    resp = _upload(user_api, b"<?php echo 'hi'; ?>" + b"\x00" * 20, "avatar.png")
    assert resp.status_code == 400
    with app.app_context():
        assert SecurityEvent.query.filter_by(type="INVALID_FILE_MAGIC_BYTES").count() == 1


def test_upload_rejects_extension(app, user_api):
    resp = _upload(user_api, PNG_BYTES, "avatar.svg")
    assert resp.status_code == 400
    with app.app_context():
        assert SecurityEvent.query.filter_by(type="INVALID_FILE_TYPE").count() == 1


def test_upload_rejects_oversized_file(app, user_api):
    app.config["MAX_PICTURE_BYTES"] = 32
    resp = _upload(user_api, PNG_BYTES, "avatar.png")
    assert resp.status_code == 400
    with app.app_context():
        assert SecurityEvent.query.filter_by(type="FILE_SIZE_EXCEEDED").count() == 1


def test_oversized_request_is_refused_before_reading(app, user_api, user_id):
    app.config["MAX_CONTENT_LENGTH"] = 1024
    resp = _upload(user_api, PNG_BYTES + b"\x00" * 4096, "avatar.png")
    assert resp.status_code == 413
    assert "too large" in resp.get_json()["error"]
    with app.app_context():
        event = SecurityEvent.query.filter_by(type="FILE_SIZE_EXCEEDED").one()
        assert event.user_id == user_id
        assert event.get_details()["contentLength"] > 1024
        assert db.session.get(User, user_id).image_url is None
