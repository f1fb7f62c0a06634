from werkzeug.security import check_password_hash, generate_password_hash

from extensions import db
from thinkquiz.services.utils import utcnow


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=True)
    email = db.Column(db.String(254), unique=True, nullable=False)
    # Null for accounts provisioned by an external sign-in provider
    password_hash = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(20), nullable=True)
    date_of_birth = db.Column(db.Date, nullable=True)
    image_url = db.Column(db.String(300), nullable=True)
    auth_provider = db.Column(db.String(20), default="email")

    # Points are earned from quizzes and spent on prizes; wallet holds deposited money
    points = db.Column(db.Integer, nullable=False, default=0)
    wallet_balance = db.Column(db.Float, nullable=False, default=0.0)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    attempts = db.relationship("QuizAttempt", back_populates="user", cascade="all, delete-orphan")

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def to_public(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "imageUrl": self.image_url,
            "points": self.points or 0,
            "walletBalance": float(self.wallet_balance or 0.0),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
