from extensions import db
from thinkquiz.services.utils import isoformat, utcnow

PRIZE_CATEGORIES = ("electronics", "vehicles", "accessories", "general")
REDEMPTION_STATUSES = ("pending", "approved", "rejected", "fulfilled")


class Prize(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.String(300), nullable=True)
    model_url = db.Column(db.String(300), nullable=True)
    type = db.Column(db.String(50), nullable=False, default="general")
    points_required = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    category = db.Column(db.String(30), nullable=False, default="general")
    stock = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(20), nullable=False, default="published")
    value = db.Column(db.Float, nullable=False, default=0.0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "imageUrl": self.image_url,
            "modelUrl": self.model_url,
            "type": self.type,
            "pointsRequired": self.points_required,
            "isActive": self.is_active,
            "category": self.category,
            "stock": self.stock,
            "status": self.status,
            "value": self.value,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }


class PrizeRedemption(db.Model):
    __tablename__ = "prize_redemption"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    prize_id = db.Column(db.Integer, db.ForeignKey("prize.id", ondelete="CASCADE"), nullable=False)
    points_used = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="pending")
    full_name = db.Column(db.String(100), nullable=True)
    whatsapp_number = db.Column(db.String(20), nullable=True)
    address = db.Column(db.String(500), nullable=True)
    notes = db.Column(db.String(500), nullable=True)
    requested_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    processed_at = db.Column(db.DateTime, nullable=True)

    user = db.relationship("User")
    prize = db.relationship("Prize")

    __table_args__ = (
        db.Index("ix_redemption_user", "user_id"),
        db.Index("ix_redemption_status", "status"),
    )

    def to_dict(self, include_user=False):
        data = {
            "id": self.id,
            "userId": self.user_id,
            "prizeId": self.prize_id,
            "pointsUsed": self.points_used,
            "status": self.status,
            "fullName": self.full_name,
            "whatsappNumber": self.whatsapp_number,
            "address": self.address,
            "notes": self.notes,
            "requestedAt": isoformat(self.requested_at),
            "processedAt": isoformat(self.processed_at),
            "prize": {
                "name": self.prize.name,
                "description": self.prize.description,
                "imageUrl": self.prize.image_url,
                "type": self.prize.type,
                "pointsRequired": self.prize.points_required,
            } if self.prize else None,
        }
        if include_user and self.user:
            data["user"] = {"id": self.user.id, "name": self.user.name, "email": self.user.email}
        return data


class Winning(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quiz.id", ondelete="CASCADE"), nullable=False)
    prize_id = db.Column(db.Integer, db.ForeignKey("prize.id", ondelete="CASCADE"), nullable=False)
    claimed = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "quiz_id", "prize_id", name="uq_winning_user_quiz_prize"),
    )
