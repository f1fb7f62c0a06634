from extensions import db
from thinkquiz.services.utils import isoformat, utcnow


class DailyPayment(db.Model):
    """A 24-hour quiz access grant."""
    __tablename__ = "daily_payment"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="completed")
    payment_method = db.Column(db.String(30), default="demo")
    transaction_id = db.Column(db.String(120), nullable=True)
    expires_at = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        db.Index("ix_daily_payment_user_status", "user_id", "status", "expires_at"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "amount": self.amount,
            "status": self.status,
            "paymentMethod": self.payment_method,
            "expiresAt": self.expires_at.isoformat() if self.expires_at else None,
        }


class Payment(db.Model):
    """Settles one quiz attempt against the daily payment that covered it."""
    __tablename__ = "payment"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    quiz_attempt_id = db.Column(
        db.Integer, db.ForeignKey("quiz_attempt.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    daily_payment_id = db.Column(db.Integer, db.ForeignKey("daily_payment.id", ondelete="SET NULL"), nullable=True)
    amount = db.Column(db.Float, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="completed")
    payment_method = db.Column(db.String(30), nullable=True)
    transaction_id = db.Column(db.String(120), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "quizAttemptId": self.quiz_attempt_id,
            "dailyPaymentId": self.daily_payment_id,
            "amount": self.amount,
            "status": self.status,
            "paymentMethod": self.payment_method,
            "createdAt": isoformat(self.created_at),
        }
