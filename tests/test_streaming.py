from extensions import socketio
from thinkquiz.services.stream_service import invalidate_stream_cache

EMBED = '<iframe src="https://player.example.com/live"></iframe>'


def _received(sio, name):
    return [msg["args"][0] for msg in sio.get_received() if msg["name"] == name]


def test_no_stream_by_default(client):
    body = client.get("/api/streaming/active").get_json()
    assert body == {"hasActiveStream": False, "stream": None}


def test_viewer_join_receives_status(app, client):
    sio = socketio.test_client(app, flask_test_client=client)
    assert sio.is_connected()
    sio.emit("viewer_join", {})
    statuses = _received(sio, "stream_status")
    assert statuses == [{"hasActiveStream": False, "stream": None}]

    sio.emit("viewer_leave", {})
    assert _received(sio, "viewer_left") == [{"room": "stream_viewers"}]
    sio.disconnect()


def test_admin_embed_is_sanitized_and_broadcast(app, admin_api, client):
    sio = socketio.test_client(app, flask_test_client=client)
    sio.emit("viewer_join", {})
    sio.get_received()

    resp = admin_api.post("/api/admin/stream-embed", json={
        "embedHtml": EMBED + "<script>alert(1)</script>",
        "title": "Friday Live",
    })
    assert resp.status_code == 200
    assert resp.get_json()["stream"]["embedHtml"] == EMBED

    updates = _received(sio, "stream_update")
    assert len(updates) == 1
    assert updates[0]["hasActiveStream"] is True
    assert updates[0]["stream"]["title"] == "Friday Live"

    active = client.get("/api/streaming/active").get_json()
    assert active["stream"]["embedHtml"] == EMBED
    sio.disconnect()


def test_embed_made_only_of_script_is_rejected(admin_api):
    resp = admin_api.post("/api/admin/stream-embed", json={"embedHtml": "<script>steal()</script>"})
    assert resp.status_code == 400


def test_inactive_stream_is_hidden(admin_api, client):
    admin_api.post("/api/admin/stream-embed", json={"embedHtml": EMBED, "isActive": False})
    assert client.get("/api/streaming/active").get_json()["hasActiveStream"] is False
    config = admin_api.get("/api/admin/stream-embed").get_json()["config"]
    assert config["isActive"] is False
    assert config["updatedBy"] == "admin@example.com"


def test_viewer_channel_works_for_every_app(app, tmp_path):
    from app import create_app
    from config import TestingConfig

    class OtherConfig(TestingConfig):
        UPLOADS_DIR = str(tmp_path / "other-uploads")

    for _ in range(2):
        current = create_app(OtherConfig)
        invalidate_stream_cache()
        sio = socketio.test_client(current, flask_test_client=current.test_client())
        sio.emit("viewer_join", {})
        assert _received(sio, "stream_status") == [{"hasActiveStream": False, "stream": None}]
        sio.disconnect()
