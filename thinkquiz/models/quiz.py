from extensions import db
from thinkquiz.services.utils import utcnow

QUIZ_STATUSES = ("active", "paused", "draft")


class Quiz(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    duration = db.Column(db.Integer, default=30)          # minutes
    passing_score = db.Column(db.Integer, default=70)     # percent
    time_limit = db.Column(db.Integer, default=600)       # seconds per attempt
    access_price = db.Column(db.Float, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="active")
    start_date = db.Column(db.DateTime, nullable=True)
    end_date = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    questions = db.relationship(
        "Question",
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="Question.position",
    )
    attempts = db.relationship("QuizAttempt", back_populates="quiz", cascade="all, delete-orphan")

    __table_args__ = (
        db.Index("ix_quiz_status", "status"),
    )

    @property
    def active_questions(self):
        return [q for q in self.questions if q.status == "active"]
