from thinkquiz.services.security_events import (
    MONITORING_WINDOW,
    ThresholdMonitor,
    monitor,
    perf_summary,
    record_perf_metric,
)


def test_admin_endpoints_require_admin(client, user_api):
    assert client.get("/api/admin/stats").status_code == 401
    assert user_api.get("/api/admin/stats").status_code == 403


def test_security_stats_summarise_events(api, admin_api, user_id):
    api.post("/api/auth/login", json={"email": "player@example.com", "password": "Wrong#Pass1"})
    api.post("/api/auth/login", json={"email": "player@example.com", "password": "Wrong#Pass2"})

    stats = admin_api.get("/api/admin/security/stats?timeframe=1h").get_json()
    assert stats["timeframe"] == "1h"
    assert stats["eventsByType"]["FAILED_LOGIN"] == 2
    assert stats["authenticationFailures"] == 2
    assert stats["topEndpoints"][0] == {"endpoint": "/api/auth/login", "count": 2}


def test_security_events_filter_by_severity(api, admin_api, user_id):
    api.post("/api/auth/login", json={"email": "player@example.com", "password": "Wrong#Pass1"})
    api.post("/api/register", json={"name": "x"})

    medium = admin_api.get("/api/admin/security/events?severity=MEDIUM").get_json()
    assert [e["type"] for e in medium["events"]] == ["FAILED_LOGIN"]
    assert medium["hasMore"] is False

    page = admin_api.get("/api/admin/security/events?limit=1").get_json()
    assert page["total"] == 2
    assert page["hasMore"] is True

    assert admin_api.get("/api/admin/security/events?timeframe=2y").status_code == 400


def test_monitor_alerts_once_per_cooldown(app):
    for _ in range(4):
        monitor.observe("CSRF_TOKEN_VIOLATION", user_id="7")
    alerts = [a for a in monitor.alerts if a["type"] == "CSRF_ATTACK_DETECTED"]
    assert alerts == [{"type": "CSRF_ATTACK_DETECTED", "identity": "7", "count": 3}]


def test_monitor_forgets_quiet_identities():
    now = [1000.0]
    watcher = ThresholdMonitor(clock=lambda: now[0])
    for _ in range(3):
        watcher.observe("CSRF_TOKEN_VIOLATION", user_id="7")
    watcher.observe("FAILED_LOGIN", ip="10.0.0.1")
    assert watcher.tracked() == (3, 1)

    now[0] += MONITORING_WINDOW + 1
    watcher.observe("INVALID_INPUT")
    assert watcher.tracked() == (0, 0)

    # the cooldown expired with the sweep, so a new burst alerts again
    for _ in range(3):
        watcher.observe("CSRF_TOKEN_VIOLATION", user_id="7")
    assert [a["type"] for a in watcher.alerts] == ["CSRF_ATTACK_DETECTED", "CSRF_ATTACK_DETECTED"]


def test_perf_summary_percentiles(app):
    for value in range(1, 101):
        record_perf_metric("unit", value)
    summary = perf_summary()["unit"]
    assert summary["count"] == 100
    assert summary["p50"] == 51.0
    assert summary["p99"] == 99.0
    assert summary["last"] == 100.0


def test_security_headers_on_responses(client):
    resp = client.get("/api/prizes")
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"
