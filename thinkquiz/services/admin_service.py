import logging

from sqlalchemy import func

from extensions import db
from thinkquiz.models import (
    Payment,
    PrizeRedemption,
    Question,
    Quiz,
    QuizAttempt,
    User,
    WalletTransaction,
)
from thinkquiz.services.errors import NotFound, ValidationFailed
from thinkquiz.services.utils import isoformat

logger = logging.getLogger(__name__)

QUIZ_FIELDS = {
    "title": "title",
    "description": "description",
    "duration": "duration",
    "passingScore": "passing_score",
    "timeLimit": "time_limit",
    "accessPrice": "access_price",
    "status": "status",
    "startDate": "start_date",
    "endDate": "end_date",
}


def _next_position(quiz_id):
    max_pos = db.session.query(func.max(Question.position)) \
        .filter(Question.quiz_id == quiz_id) \
        .scalar()
    return (max_pos or 0) + 1


def _check_correct_option(options, correct):
    if correct is not None and correct >= len(options):
        raise ValidationFailed("Correct option is out of range")


def question_admin_dict(q):
    return {
        "id": q.id,
        "quizId": q.quiz_id,
        "text": q.text,
        "options": q.get_options(),
        "correctOption": q.correct_option,
        "hasCorrectAnswer": bool(q.has_correct_answer),
        "status": q.status,
        "position": q.position,
    }


def quiz_admin_dict(quiz, with_questions=False):
    data = {
        "id": quiz.id,
        "title": quiz.title,
        "description": quiz.description,
        "duration": quiz.duration,
        "passingScore": quiz.passing_score,
        "timeLimit": quiz.time_limit,
        "accessPrice": quiz.access_price,
        "status": quiz.status,
        "startDate": isoformat(quiz.start_date),
        "endDate": isoformat(quiz.end_date),
        "questionCount": len(quiz.questions),
        "attemptCount": len(quiz.attempts),
        "createdAt": isoformat(quiz.created_at),
        "updatedAt": isoformat(quiz.updated_at),
    }
    if with_questions:
        data["questions"] = [question_admin_dict(q) for q in quiz.questions]
    return data


def _new_question(quiz_id, payload, position):
    _check_correct_option(payload.options, payload.correctOption)
    q = Question(
        quiz_id=quiz_id,
        text=payload.text,
        correct_option=payload.correctOption,
        has_correct_answer=payload.correctOption is not None,
        status=payload.status,
        position=position,
    )
    q.set_options(payload.options)
    return q


# -------------------
# QUIZZES
# -------------------
def list_quizzes():
    return [quiz_admin_dict(q) for q in Quiz.query.order_by(Quiz.created_at.desc(), Quiz.id.desc()).all()]


def get_quiz(quiz_id):
    quiz = db.session.get(Quiz, quiz_id)
    if quiz is None:
        raise NotFound("Quiz not found")
    return quiz


def create_quiz(data):
    if data.startDate and data.endDate and data.endDate <= data.startDate:
        raise ValidationFailed("End date must be after start date")

    quiz = Quiz()
    for field, column in QUIZ_FIELDS.items():
        setattr(quiz, column, getattr(data, field))
    db.session.add(quiz)
    db.session.flush()

    for index, payload in enumerate(data.questions, start=1):
        db.session.add(_new_question(quiz.id, payload, index))

    db.session.commit()
    logger.info("Quiz %s created with %d questions", quiz.id, len(data.questions))
    return quiz


def update_quiz(quiz_id, data):
    quiz = get_quiz(quiz_id)
    for field in data.model_fields_set:
        column = QUIZ_FIELDS.get(field)
        if column is None:
            continue
        value = getattr(data, field)
        if value is None and column in ("title", "status", "duration", "passing_score", "time_limit"):
            continue
        setattr(quiz, column, value)
    if quiz.start_date and quiz.end_date and quiz.end_date <= quiz.start_date:
        db.session.rollback()
        raise ValidationFailed("End date must be after start date")
    db.session.commit()
    return quiz


def delete_quiz(quiz_id):
    quiz = get_quiz(quiz_id)
    db.session.delete(quiz)
    db.session.commit()
    logger.info("Quiz %s deleted", quiz_id)


# -------------------
# QUESTIONS
# -------------------
def create_question(data):
    quiz = get_quiz(data.quizId)
    q = _new_question(quiz.id, data, _next_position(quiz.id))
    db.session.add(q)
    db.session.commit()
    return q


def update_question(question_id, data):
    q = db.session.get(Question, question_id)
    if q is None:
        raise NotFound("Question not found")

    fields = data.model_fields_set
    options = data.options if "options" in fields and data.options is not None else q.get_options()
    correct = data.correctOption if "correctOption" in fields else q.correct_option
    _check_correct_option(options, correct)

    if "text" in fields and data.text is not None:
        q.text = data.text
    if "options" in fields and data.options is not None:
        q.set_options(data.options)
    if "correctOption" in fields:
        q.correct_option = data.correctOption
        q.has_correct_answer = data.correctOption is not None
    if "status" in fields and data.status is not None:
        q.status = data.status
    if "position" in fields and data.position is not None:
        q.position = data.position
    db.session.commit()
    return q


def delete_question(question_id):
    q = db.session.get(Question, question_id)
    if q is None:
        raise NotFound("Question not found")
    db.session.delete(q)
    db.session.commit()


# -------------------
# DASHBOARD
# -------------------
def dashboard_stats():
    return {
        "totalUsers": User.query.count(),
        "totalQuizzes": Quiz.query.count(),
        "activeQuizzes": Quiz.query.filter_by(status="active").count(),
        "totalAttempts": QuizAttempt.query.filter_by(is_completed=True).count(),
        "pendingEvaluations": QuizAttempt.query.filter_by(is_completed=True, is_evaluated=False).count(),
        "pendingDeposits": WalletTransaction.query.filter_by(type="deposit", status="pending").count(),
        "pendingClaims": PrizeRedemption.query.filter_by(status="pending").count(),
        "totalWalletBalance": float(db.session.query(func.coalesce(func.sum(User.wallet_balance), 0.0)).scalar()),
        "totalPoints": int(db.session.query(func.coalesce(func.sum(User.points), 0)).scalar()),
        "paidAttempts": Payment.query.count(),
    }
