import json

from extensions import db
from thinkquiz.services.utils import utcnow


class Question(db.Model):
    """Multiple choice question. The correct option is unknown until the admin evaluates the quiz."""
    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quiz.id", ondelete="CASCADE"), nullable=False)
    text = db.Column(db.String(1000), nullable=False)
    options = db.Column(db.Text, default="[]")
    correct_option = db.Column(db.Integer, nullable=True)
    has_correct_answer = db.Column(db.Boolean, default=False)
    status = db.Column(db.String(20), nullable=False, default="active")
    position = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    quiz = db.relationship("Quiz", back_populates="questions")

    __table_args__ = (
        db.Index("ix_question_quiz", "quiz_id"),
    )

    def get_options(self):
        try:
            return json.loads(self.options) if self.options else []
        except ValueError:
            return []

    def set_options(self, options):
        self.options = json.dumps(options) if options else "[]"

    def to_public(self):
        return {"id": self.id, "text": self.text, "options": self.get_options()}
