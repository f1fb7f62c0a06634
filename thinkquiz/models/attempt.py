from extensions import db
from thinkquiz.services.utils import utcnow


class QuizAttempt(db.Model):
    """One row per user and quiz; re-attempts on new questions reuse it."""
    __tablename__ = "quiz_attempt"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quiz.id", ondelete="CASCADE"), nullable=False)
    score = db.Column(db.Integer, nullable=False, default=0)
    points = db.Column(db.Integer, nullable=False, default=0)
    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    is_evaluated = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime, nullable=True)
    daily_payment_id = db.Column(db.Integer, db.ForeignKey("daily_payment.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = db.relationship("User", back_populates="attempts")
    quiz = db.relationship("Quiz", back_populates="attempts")
    answers = db.relationship("Answer", back_populates="attempt", cascade="all, delete-orphan")

    __table_args__ = (
        db.UniqueConstraint("user_id", "quiz_id", name="uq_attempt_user_quiz"),
        db.Index("ix_attempt_quiz", "quiz_id"),
        db.Index("ix_attempt_created", "created_at"),
    )


class QuestionAttempt(db.Model):
    __tablename__ = "question_attempt"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    question_id = db.Column(db.Integer, db.ForeignKey("question.id", ondelete="CASCADE"), nullable=False)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quiz.id", ondelete="CASCADE"), nullable=False)
    selected_option = db.Column(db.Integer, nullable=False)
    is_correct = db.Column(db.Boolean, nullable=False, default=False)
    attempted_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "question_id", name="uq_question_attempt_user_question"),
        db.Index("ix_question_attempt_user_quiz", "user_id", "quiz_id"),
    )


class Answer(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    question_id = db.Column(db.Integer, db.ForeignKey("question.id", ondelete="CASCADE"), nullable=False)
    quiz_attempt_id = db.Column(db.Integer, db.ForeignKey("quiz_attempt.id", ondelete="CASCADE"), nullable=False)
    selected_option = db.Column(db.Integer, nullable=False)
    is_correct = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    attempt = db.relationship("QuizAttempt", back_populates="answers")
    question = db.relationship("Question")

    __table_args__ = (
        db.UniqueConstraint("quiz_attempt_id", "question_id", name="uq_answer_attempt_question"),
        db.Index("ix_answer_user", "user_id"),
    )
