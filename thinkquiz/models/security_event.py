import json

from extensions import db
from thinkquiz.services.utils import isoformat, utcnow


class SecurityEvent(db.Model):
    __tablename__ = "security_event"

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(60), nullable=False)
    severity = db.Column(db.String(10), nullable=False, default="LOW")
    user_id = db.Column(db.String(64), nullable=True)
    ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(300), nullable=True)
    endpoint = db.Column(db.String(200), nullable=True)
    details = db.Column(db.Text, default="{}")
    timestamp = db.Column(db.DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        db.Index("ix_security_event_timestamp", "timestamp"),
        db.Index("ix_security_event_type", "type"),
    )

    def get_details(self):
        try:
            return json.loads(self.details) if self.details else {}
        except ValueError:
            return {}

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type,
            "severity": self.severity,
            "userId": self.user_id,
            "ip": self.ip,
            "userAgent": self.user_agent,
            "endpoint": self.endpoint,
            "details": self.get_details(),
            "timestamp": isoformat(self.timestamp),
        }
