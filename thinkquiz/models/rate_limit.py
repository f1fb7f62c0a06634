from extensions import db
from thinkquiz.services.utils import utcnow


class RateLimitHit(db.Model):
    __tablename__ = "rate_limit_hit"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(200), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        db.Index("ix_rate_limit_key_created", "key", "created_at"),
    )
