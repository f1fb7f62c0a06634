import logging
import math

from sqlalchemy import func, update

from extensions import db, socketio
from thinkquiz.models import Prize, QuestionAttempt, Quiz, QuizAttempt, User, Winning
from thinkquiz.services.errors import NotFound, ValidationFailed
from thinkquiz.services.leaderboard_service import invalidate_leaderboard
from thinkquiz.services.procedures import dialect_insert
from thinkquiz.services.utils import isoformat, round_half_up

logger = logging.getLogger(__name__)


def _get_quiz(quiz_id):
    quiz = db.session.get(Quiz, quiz_id)
    if quiz is None:
        raise NotFound("Quiz not found")
    return quiz


# -------------------
# EVALUATION
# -------------------
def evaluate_quiz(data, admin_email=None):
    """Store the correct options and grade every unevaluated attempt of the quiz."""
    quiz = _get_quiz(data.quizId)
    questions = list(quiz.questions)
    if not questions:
        raise ValidationFailed("Quiz has no questions to evaluate")

    correct = data.correctAnswers
    missing = [q.id for q in questions if q.id not in correct]
    if missing:
        raise ValidationFailed("All questions must have a correct answer", missingQuestions=missing)

    by_id = {q.id: q for q in questions}
    unknown = [qid for qid in correct if qid not in by_id]
    if unknown:
        raise ValidationFailed("Answers given for questions outside this quiz", unknownQuestions=unknown)

    for q in questions:
        option = correct[q.id]
        if option < 0 or option >= len(q.get_options()):
            raise ValidationFailed("Correct option is out of range", questionId=q.id)
        q.correct_option = option
        q.has_correct_answer = True

    total = len(questions)
    attempts = QuizAttempt.query.filter_by(quiz_id=quiz.id, is_completed=True, is_evaluated=False).all()
    for attempt in attempts:
        right = 0
        for answer in attempt.answers:
            answer.is_correct = answer.selected_option == correct.get(answer.question_id)
            if answer.is_correct:
                right += 1
        attempt.score = round_half_up(right / total * 100)
        attempt.is_evaluated = True

    for q in questions:
        db.session.execute(
            update(QuestionAttempt)
            .where(QuestionAttempt.question_id == q.id)
            .values(is_correct=(QuestionAttempt.selected_option == q.correct_option))
            .execution_options(synchronize_session=False)
        )

    db.session.commit()
    invalidate_leaderboard()
    logger.info("Quiz %s evaluated by %s: %d attempts graded", quiz.id, admin_email, len(attempts))

    return {
        "message": "Quiz evaluated successfully",
        "quizId": quiz.id,
        "totalQuestions": total,
        "evaluatedAttempts": len(attempts),
    }


def evaluation_status(quiz_id=None):
    if quiz_id is None:
        pending = dict(
            db.session.query(QuizAttempt.quiz_id, func.count(QuizAttempt.id))
            .filter(QuizAttempt.is_completed.is_(True), QuizAttempt.is_evaluated.is_(False))
            .group_by(QuizAttempt.quiz_id)
            .all()
        )
        quizzes = Quiz.query.order_by(Quiz.created_at.desc()).all()
        return {"quizzes": [
            {
                "id": q.id,
                "title": q.title,
                "status": q.status,
                "questionCount": len(q.questions),
                "pendingAttempts": pending.get(q.id, 0),
            }
            for q in quizzes
        ]}

    quiz = _get_quiz(quiz_id)
    total = QuizAttempt.query.filter_by(quiz_id=quiz.id, is_completed=True).count()
    evaluated = QuizAttempt.query.filter_by(quiz_id=quiz.id, is_completed=True, is_evaluated=True).count()
    return {
        "quizId": quiz.id,
        "title": quiz.title,
        "questions": [
            {
                "id": q.id,
                "text": q.text,
                "options": q.get_options(),
                "correctOption": q.correct_option,
                "hasCorrectAnswer": bool(q.has_correct_answer),
            }
            for q in quiz.questions
        ],
        "totalAttempts": total,
        "evaluatedAttempts": evaluated,
        "pendingAttempts": total - evaluated,
        "isFullyEvaluated": total > 0 and total == evaluated,
    }


# -------------------
# POINTS ALLOCATION
# -------------------
def allocate_points(data):
    quiz = _get_quiz(data.quizId)
    prize = None
    if data.prizeId is not None:
        prize = db.session.get(Prize, data.prizeId)
        if prize is None:
            raise NotFound("Prize not found")

    attempts = (
        QuizAttempt.query
        .filter_by(quiz_id=quiz.id, is_evaluated=True)
        .order_by(QuizAttempt.score.desc(), QuizAttempt.created_at.asc(), QuizAttempt.id.asc())
        .all()
    )
    if not attempts:
        raise ValidationFailed("No evaluated attempts for this quiz")

    winner_count = max(1, math.ceil(len(attempts) * data.percentageThreshold / 100))
    top = attempts[:winner_count]
    if not any(attempt.score > 0 for attempt in top):
        raise ValidationFailed(
            "No eligible winners found (all top performers scored 0)",
            totalEvaluated=len(attempts),
            winnerSlots=winner_count,
        )

    awarded = []
    skipped = []
    for attempt in top:
        if attempt.score <= 0 or (attempt.points or 0) > 0:
            skipped.append(attempt.id)
            continue
        # Guarded on points = 0 so concurrent allocations pay once
        res = db.session.execute(
            update(QuizAttempt)
            .where(QuizAttempt.id == attempt.id, QuizAttempt.points == 0)
            .values(points=data.pointsPerWinner)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            skipped.append(attempt.id)
            continue
        db.session.execute(
            update(User)
            .where(User.id == attempt.user_id)
            .values(points=User.points + data.pointsPerWinner)
            .execution_options(synchronize_session=False)
        )
        if prize is not None:
            db.session.execute(
                dialect_insert(Winning)
                .values(user_id=attempt.user_id, quiz_id=quiz.id, prize_id=prize.id, claimed=False)
                .on_conflict_do_nothing(index_elements=["user_id", "quiz_id", "prize_id"])
            )
        awarded.append({"attemptId": attempt.id, "userId": attempt.user_id, "score": attempt.score})

    db.session.commit()
    db.session.expire_all()
    invalidate_leaderboard()
    socketio.emit("leaderboard_update", {"quizId": quiz.id, "winners": len(awarded)})
    logger.info("Allocated %d points to %d winners of quiz %s", data.pointsPerWinner, len(awarded), quiz.id)

    return {
        "message": f"Points allocated to {len(awarded)} winners",
        "quizId": quiz.id,
        "totalEvaluated": len(attempts),
        "winnerSlots": winner_count,
        "pointsPerWinner": data.pointsPerWinner,
        "winners": awarded,
        "skippedAttempts": skipped,
        "prizeId": prize.id if prize else None,
    }


def allocation_history(quiz_id=None, page=1, limit=20):
    query = (
        db.session.query(QuizAttempt, User, Quiz)
        .join(User, QuizAttempt.user_id == User.id)
        .join(Quiz, QuizAttempt.quiz_id == Quiz.id)
        .filter(QuizAttempt.points > 0)
    )
    if quiz_id is not None:
        query = query.filter(QuizAttempt.quiz_id == quiz_id)
    total = query.count()
    rows = (
        query.order_by(QuizAttempt.updated_at.desc(), QuizAttempt.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "allocations": [
            {
                "attemptId": attempt.id,
                "quizId": quiz.id,
                "quizTitle": quiz.title,
                "userId": user.id,
                "userName": user.name,
                "userEmail": user.email,
                "score": attempt.score,
                "points": attempt.points,
                "allocatedAt": isoformat(attempt.updated_at),
            }
            for attempt, user, quiz in rows
        ],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit) if limit else 0,
        },
    }
