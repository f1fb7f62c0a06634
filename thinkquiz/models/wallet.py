from extensions import db
from thinkquiz.services.utils import isoformat, utcnow

PAYMENT_METHODS = ("Easypaisa", "Jazzcash", "Bank", "QuizAccess")
TRANSACTION_STATUSES = ("pending", "approved", "rejected")


class WalletTransaction(db.Model):
    """Deposit claim awaiting moderation, or an auto-approved deduction (negative amount)."""
    __tablename__ = "wallet_transaction"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    type = db.Column(db.String(20), nullable=False, default="deposit")
    payment_method = db.Column(db.String(30), nullable=False)
    transaction_id = db.Column(db.String(120), nullable=False, unique=True)
    status = db.Column(db.String(20), nullable=False, default="pending")
    proof_image = db.Column(db.String(300), nullable=True)
    admin_notes = db.Column(db.String(500), nullable=True)
    processed_at = db.Column(db.DateTime, nullable=True)
    processed_by = db.Column(db.String(254), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = db.relationship("User")

    __table_args__ = (
        db.Index("ix_wallet_transaction_status", "status"),
        db.Index("ix_wallet_transaction_user", "user_id"),
    )

    def to_dict(self, include_user=False):
        data = {
            "id": self.id,
            "userId": self.user_id,
            "amount": self.amount,
            "type": self.type,
            "paymentMethod": self.payment_method,
            "transactionId": self.transaction_id,
            "status": self.status,
            "proofImage": self.proof_image,
            "adminNotes": self.admin_notes,
            "processedAt": isoformat(self.processed_at),
            "processedBy": self.processed_by,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }
        if include_user and self.user:
            data["user"] = {"id": self.user.id, "name": self.user.name, "email": self.user.email}
        return data
