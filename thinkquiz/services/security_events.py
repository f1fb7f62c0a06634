import json
import logging
import threading
import time
from collections import defaultdict, deque

from flask import has_request_context, request
from sqlalchemy import func

from extensions import db
from thinkquiz.models import SecurityEvent
from thinkquiz.services.utils import isoformat, timeframe_start, utcnow

logger = logging.getLogger(__name__)

SEVERITY_BY_TYPE = {
    "FAILED_LOGIN": "MEDIUM",
    "AUTH_FAILURE": "MEDIUM",
    "RATE_LIMIT_EXCEEDED": "MEDIUM",
    "INVALID_INPUT": "LOW",
    "UNAUTHORIZED_ACCESS": "HIGH",
    "CSRF_TOKEN_VIOLATION": "HIGH",
    "SUSPICIOUS_ACTIVITY": "HIGH",
    "BRUTE_FORCE_ATTEMPT": "CRITICAL",
    "SESSION_HIJACK_ATTEMPT": "CRITICAL",
    "SYSTEM_ERROR": "HIGH",
    "INVALID_FILE_TYPE": "MEDIUM",
    "FILE_SIZE_EXCEEDED": "LOW",
    "INVALID_FILE_MAGIC_BYTES": "HIGH",
    "DUPLICATE_REGISTRATION_ATTEMPT": "LOW",
    "INVALID_PASSWORD_ATTEMPT": "MEDIUM",
}

AUTH_FAILURE_TYPES = ("FAILED_LOGIN", "AUTH_FAILURE", "INVALID_PASSWORD_ATTEMPT")
SUSPICIOUS_TYPES = (
    "SUSPICIOUS_ACTIVITY",
    "BRUTE_FORCE_ATTEMPT",
    "SESSION_HIJACK_ATTEMPT",
    "CSRF_TOKEN_VIOLATION",
    "INVALID_FILE_MAGIC_BYTES",
)
FILE_VIOLATION_TYPES = ("INVALID_FILE_TYPE", "FILE_SIZE_EXCEEDED", "INVALID_FILE_MAGIC_BYTES")

# Per-identity counts inside one hour that raise an alert
THRESHOLDS = {
    "RATE_LIMIT_EXCEEDED": 10,
    "FAILED_LOGIN": 20,
    "FILE_UPLOAD": 5,
    "CSRF_TOKEN_VIOLATION": 3,
    "ANY": 15,
}
MONITORING_WINDOW = 60 * 60
ALERT_COOLDOWN = 30 * 60
SWEEP_INTERVAL = 5 * 60
MAX_ALERTS = 200
STATS_EVENT_LIMIT = 1000


def client_ip():
    if not has_request_context():
        return None
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or request.remote_addr or "unknown"


class ThresholdMonitor:
    """Keeps the last hour of events per identity and logs critical alerts.

    Identities with no event left in the window and cooldowns that have run out
    are swept every ``SWEEP_INTERVAL`` seconds.
    """

    def __init__(self, clock=time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._events = defaultdict(deque)
        self._last_alert = {}
        self._last_sweep = clock()
        self.alerts = deque(maxlen=MAX_ALERTS)

    def reset(self):
        with self._lock:
            self._events.clear()
            self._last_alert.clear()
            self._last_sweep = self._clock()
            self.alerts.clear()

    def tracked(self):
        """Number of identities and alert cooldowns currently held."""
        with self._lock:
            return len(self._events), len(self._last_alert)

    def _count(self, key, now):
        events = self._events[key]
        while events and now - events[0] > MONITORING_WINDOW:
            events.popleft()
        if not events:
            del self._events[key]
            return 0
        return len(events)

    def _hit(self, key, now):
        self._events[key].append(now)
        return self._count(key, now)

    def _sweep(self, now):
        for key in list(self._events):
            self._count(key, now)
        for key, last in list(self._last_alert.items()):
            if now - last >= ALERT_COOLDOWN:
                del self._last_alert[key]
        self._last_sweep = now

    def observe(self, event_type, user_id=None, ip=None):
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= SWEEP_INTERVAL:
                self._sweep(now)
            if event_type == "RATE_LIMIT_EXCEEDED" and user_id:
                count = self._hit(("rate", user_id), now)
                if count >= THRESHOLDS["RATE_LIMIT_EXCEEDED"]:
                    self._alert("EXCESSIVE_RATE_LIMIT_VIOLATIONS", user_id, count, now)
            if event_type == "FAILED_LOGIN" and ip:
                count = self._hit(("login", ip), now)
                if count >= THRESHOLDS["FAILED_LOGIN"]:
                    self._alert("BRUTE_FORCE_DETECTED", ip, count, now)
            if event_type in FILE_VIOLATION_TYPES and user_id:
                count = self._hit(("file", user_id), now)
                if count >= THRESHOLDS["FILE_UPLOAD"]:
                    self._alert("SUSPICIOUS_FILE_UPLOAD_ACTIVITY", user_id, count, now)
            if event_type == "CSRF_TOKEN_VIOLATION" and user_id:
                count = self._hit(("csrf", user_id), now)
                if count >= THRESHOLDS["CSRF_TOKEN_VIOLATION"]:
                    self._alert("CSRF_ATTACK_DETECTED", user_id, count, now)
            if user_id:
                count = self._hit(("any", user_id), now)
                if count >= THRESHOLDS["ANY"]:
                    self._alert("SUSPICIOUS_USER_ACTIVITY", user_id, count, now)

    def _alert(self, alert_type, identity, count, now):
        key = f"{alert_type}:{identity}"
        last = self._last_alert.get(key)
        if last is not None and now - last < ALERT_COOLDOWN:
            return
        self._last_alert[key] = now
        self.alerts.append({"type": alert_type, "identity": identity, "count": count})
        logger.critical("[SECURITY ALERT] %s for %s (%d events in 1 hour)", alert_type, identity, count)


monitor = ThresholdMonitor()


def record_security_event(event_type, user_id=None, severity=None, **details):
    """Log a security event and persist it.

    Commits the current session, so call it only where pending work is either
    committed already or meant to be committed with the event.
    """
    severity = severity or SEVERITY_BY_TYPE.get(event_type, "LOW")
    ip = client_ip()
    user_agent = None
    endpoint = None
    if has_request_context():
        user_agent = (request.headers.get("User-Agent") or "unknown")[:300]
        endpoint = request.path

    logger.warning(
        "[SECURITY EVENT] %s severity=%s user=%s ip=%s endpoint=%s details=%s",
        event_type, severity, user_id, ip, endpoint, details,
    )
    monitor.observe(event_type, user_id=str(user_id) if user_id else None, ip=ip)

    event = SecurityEvent(
        type=event_type,
        severity=severity,
        user_id=str(user_id) if user_id is not None else None,
        ip=ip,
        user_agent=user_agent,
        endpoint=endpoint,
        details=json.dumps(details, default=str),
    )
    db.session.add(event)
    db.session.commit()
    return event


# -------------------
# PERFORMANCE SAMPLES
# -------------------
PERF_SAMPLE_LIMIT = 300
_perf_samples = defaultdict(lambda: deque(maxlen=PERF_SAMPLE_LIMIT))
_perf_lock = threading.Lock()


def record_perf_metric(name, duration_ms):
    with _perf_lock:
        _perf_samples[name].append(float(duration_ms))
    logger.debug("[PERF] %s %.1fms", name, duration_ms)


def _percentile(sorted_values, pct):
    if not sorted_values:
        return 0.0
    index = min(len(sorted_values) - 1, int(round(pct / 100.0 * (len(sorted_values) - 1))))
    return sorted_values[index]


def perf_summary():
    summary = {}
    with _perf_lock:
        snapshot = {name: list(values) for name, values in _perf_samples.items()}
    for name, values in snapshot.items():
        if not values:
            continue
        ordered = sorted(values)
        summary[name] = {
            "count": len(values),
            "avg": round(sum(values) / len(values), 2),
            "p50": _percentile(ordered, 50),
            "p95": _percentile(ordered, 95),
            "p99": _percentile(ordered, 99),
            "last": values[-1],
        }
    return summary


def reset_perf_metrics():
    with _perf_lock:
        _perf_samples.clear()


# -------------------
# REPORTING
# -------------------
def security_stats(timeframe="24h"):
    since = timeframe_start(timeframe)
    events = (
        SecurityEvent.query
        .filter(SecurityEvent.timestamp >= since)
        .order_by(SecurityEvent.timestamp.desc())
        .limit(STATS_EVENT_LIMIT)
        .all()
    )

    by_type = defaultdict(int)
    by_severity = defaultdict(int)
    by_endpoint = defaultdict(int)
    for e in events:
        by_type[e.type] += 1
        by_severity[e.severity] += 1
        if e.endpoint:
            by_endpoint[e.endpoint] += 1

    top_endpoints = sorted(by_endpoint.items(), key=lambda kv: kv[1], reverse=True)[:10]

    return {
        "timeframe": timeframe,
        "totalEvents": len(events),
        "eventsByType": dict(by_type),
        "eventsBySeverity": dict(by_severity),
        "topEndpoints": [{"endpoint": ep, "count": n} for ep, n in top_endpoints],
        "rateLimitViolations": by_type.get("RATE_LIMIT_EXCEEDED", 0),
        "authenticationFailures": sum(by_type.get(t, 0) for t in AUTH_FAILURE_TYPES),
        "suspiciousActivities": sum(by_type.get(t, 0) for t in SUSPICIOUS_TYPES),
        "recentEvents": [e.to_dict() for e in events[:20]],
        "generatedAt": isoformat(utcnow()),
    }


def list_security_events(timeframe="24h", severity=None, limit=50, offset=0):
    query = SecurityEvent.query.filter(SecurityEvent.timestamp >= timeframe_start(timeframe))
    if severity:
        query = query.filter(SecurityEvent.severity == severity.upper())
    total = query.with_entities(func.count(SecurityEvent.id)).scalar() or 0
    events = (
        query.order_by(SecurityEvent.timestamp.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return {
        "events": [e.to_dict() for e in events],
        "total": total,
        "limit": limit,
        "offset": offset,
        "hasMore": offset + len(events) < total,
    }
