from extensions import db
from thinkquiz.services.utils import utcnow


class StreamConfig(db.Model):
    __tablename__ = "stream_config"

    id = db.Column(db.Integer, primary_key=True)
    embed_html = db.Column(db.Text, default="")
    title = db.Column(db.String(200), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    updated_by = db.Column(db.String(254), nullable=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
