def test_health_reports_components(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] in ("healthy", "degraded")
    assert body["components"]["database"]["dialect"] == "sqlite"
    assert body["components"]["procedures"] == {"enabled": False, "available": {}}
    assert body["components"]["authentication"]["adminCount"] == 1
    assert "db_health_check" in body["performance"]


def test_health_degraded_without_admins(app, client):
    app.config["ADMIN_EMAILS"] = []
    body = client.get("/api/health").get_json()
    assert body["status"] == "degraded"
