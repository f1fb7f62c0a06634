import hashlib
import json
import logging

from sqlalchemy import func

from extensions import db
from thinkquiz.models import Answer, Payment, Question, QuestionAttempt, Quiz, QuizAttempt
from thinkquiz.services.errors import Forbidden, NotFound, ServiceError, ValidationFailed
from thinkquiz.services.payment_service import check_payment_access
from thinkquiz.services.procedures import ProcedureUnavailable, call_procedure, dialect_insert
from thinkquiz.services.security_events import record_security_event
from thinkquiz.services.utils import isoformat, utcnow

logger = logging.getLogger(__name__)

SUBMITTED_NOTE = (
    "Your predictions have been submitted. The admin will review all submissions and add "
    "correct answers. Points will be allocated to top performers based on accuracy."
)
RESUBMITTED_NOTE = (
    "Your predictions for the new questions have been submitted. The admin will review all "
    "submissions and add correct answers. Points will be allocated to top performers based on accuracy."
)


def _quiz_summary(quiz):
    return {
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
    }


def get_active_quiz(quiz_id, user_id=None):
    quiz = db.session.get(Quiz, quiz_id)
    if quiz is None or quiz.status != "active":
        record_security_event("QUIZ_NOT_FOUND", user_id=user_id, quizId=quiz_id)
        raise NotFound("Quiz not found")
    return quiz


def answered_question_ids(user_id, quiz_id):
    rows = db.session.query(QuestionAttempt.question_id).filter_by(user_id=user_id, quiz_id=quiz_id)
    return {qid for (qid,) in rows}


# -------------------
# LISTING
# -------------------
def list_quizzes(user=None):
    quizzes = Quiz.query.filter_by(status="active").order_by(Quiz.created_at.desc(), Quiz.id.desc()).all()

    question_counts = dict(
        db.session.query(Question.quiz_id, func.count(Question.id))
        .filter(Question.status == "active")
        .group_by(Question.quiz_id)
        .all()
    )
    attempt_counts = dict(
        db.session.query(QuizAttempt.quiz_id, func.count(QuizAttempt.id))
        .filter(QuizAttempt.is_completed.is_(True))
        .group_by(QuizAttempt.quiz_id)
        .all()
    )

    has_access = False
    attempts = {}
    answered = {}
    if user is not None:
        has_access = check_payment_access(user.id, record=False)["hasAccess"]
        for attempt in QuizAttempt.query.filter_by(user_id=user.id).all():
            attempts[attempt.quiz_id] = attempt
        for qid, quiz_id in db.session.query(QuestionAttempt.question_id, QuestionAttempt.quiz_id) \
                .filter(QuestionAttempt.user_id == user.id):
            answered.setdefault(quiz_id, set()).add(qid)

    result = []
    for quiz in quizzes:
        active = quiz.active_questions
        attempt = attempts.get(quiz.id)
        is_completed = bool(attempt and attempt.is_completed)
        done = answered.get(quiz.id, set())
        new_questions = [q for q in active if q.id not in done] if is_completed else []

        item = _quiz_summary(quiz)
        item.update({
            "questionCount": question_counts.get(quiz.id, 0),
            "totalAttempts": attempt_counts.get(quiz.id, 0),
            "isCompleted": is_completed,
            "hasNewQuestions": bool(new_questions),
            "newQuestionsCount": len(new_questions),
            "score": attempt.score if attempt and attempt.is_evaluated else None,
        })
        if has_access:
            item["questions"] = [q.to_public() for q in active]
        result.append(item)

    return {"quizzes": result, "hasAccess": has_access}


def compute_etag(payload):
    body = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
    return hashlib.md5(body).hexdigest()


# -------------------
# ACCESS
# -------------------
def get_quiz_for_user(user, quiz_id):
    quiz = get_active_quiz(quiz_id, user.id)
    attempt = QuizAttempt.query.filter_by(user_id=user.id, quiz_id=quiz.id).first()
    done = answered_question_ids(user.id, quiz.id)
    active = quiz.active_questions
    remaining = [q for q in active if q.id not in done]

    if attempt is not None and attempt.is_completed and not remaining:
        raise Forbidden(
            "You have already completed this quiz",
            alreadyCompleted=True,
            previousAttempt={
                "id": attempt.id,
                "score": attempt.score if attempt.is_evaluated else None,
                "isEvaluated": attempt.is_evaluated,
                "completedAt": isoformat(attempt.completed_at),
            },
        )

    is_reattempt = bool(attempt is not None and attempt.is_completed and done)
    record_security_event("QUIZ_ACCESSED", user_id=user.id, quizId=quiz.id, isReattempt=is_reattempt)

    data = _quiz_summary(quiz)
    data.update({
        "questions": [q.to_public() for q in remaining],
        "totalQuestions": len(active),
        "isReattempt": is_reattempt,
        "newQuestionsCount": len(remaining) if is_reattempt else 0,
    })
    return data


# -------------------
# SUBMISSION
# -------------------
def _validate_answers(quiz, items):
    """Map question id to selected option; the last entry for a question wins."""
    questions = {q.id: q for q in quiz.active_questions}
    answers = {}
    for item in items:
        question = questions.get(item.questionId)
        if question is None:
            raise ValidationFailed("Question does not belong to this quiz", questionId=item.questionId)
        if item.selectedOption >= len(question.get_options()):
            raise ValidationFailed("Selected option is out of range", questionId=item.questionId)
        answers[item.questionId] = item.selectedOption
    return answers


def _submit_direct(user_id, quiz_id, answers, payment=None):
    payment_id = payment.id if payment is not None else None
    existing = QuizAttempt.query.filter_by(user_id=user_id, quiz_id=quiz_id).first()
    is_reattempt = bool(existing and existing.is_completed and answered_question_ids(user_id, quiz_id))
    now = utcnow()

    # The unique (user, quiz) constraint decides racing first submissions
    db.session.execute(
        dialect_insert(QuizAttempt)
        .values(
            user_id=user_id,
            quiz_id=quiz_id,
            score=0,
            points=0,
            is_completed=True,
            is_evaluated=False,
            completed_at=now,
            daily_payment_id=payment_id,
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=["user_id", "quiz_id"])
    )
    attempt = QuizAttempt.query.filter_by(user_id=user_id, quiz_id=quiz_id).populate_existing().one()
    attempt.is_completed = True
    attempt.is_evaluated = False
    attempt.completed_at = now
    if attempt.daily_payment_id is None:
        attempt.daily_payment_id = payment_id
    db.session.flush()

    if payment is not None:
        # At most one settlement row per attempt, whatever the number of resubmissions
        db.session.execute(
            dialect_insert(Payment)
            .values(
                user_id=user_id,
                quiz_attempt_id=attempt.id,
                daily_payment_id=payment.id,
                amount=payment.amount,
                status="completed",
                payment_method=payment.payment_method,
                transaction_id=payment.transaction_id,
                created_at=now,
            )
            .on_conflict_do_nothing(index_elements=["quiz_attempt_id"])
        )

    for question_id, option in answers.items():
        stmt = dialect_insert(QuestionAttempt).values(
            user_id=user_id,
            question_id=question_id,
            quiz_id=quiz_id,
            selected_option=option,
            is_correct=False,
            attempted_at=now,
        )
        db.session.execute(stmt.on_conflict_do_update(
            index_elements=["user_id", "question_id"],
            set_={"selected_option": option, "is_correct": False, "attempted_at": now},
        ))

        stmt = dialect_insert(Answer).values(
            user_id=user_id,
            question_id=question_id,
            quiz_attempt_id=attempt.id,
            selected_option=option,
            is_correct=False,
            created_at=now,
        )
        db.session.execute(stmt.on_conflict_do_update(
            index_elements=["quiz_attempt_id", "question_id"],
            set_={"selected_option": option, "is_correct": False},
        ))

    return attempt.id, len(answers), is_reattempt


def submit_quiz(user, quiz_id, data, payment=None):
    quiz = get_active_quiz(quiz_id, user.id)
    answers = _validate_answers(quiz, data.answers)
    payment_id = payment.id if payment is not None else None

    try:
        result = call_procedure(
            "submit_quiz_attempt",
            p_user_id=user.id,
            p_quiz_id=quiz.id,
            p_answers=json.dumps([
                {"questionId": qid, "selectedOption": opt} for qid, opt in answers.items()
            ]),
            p_daily_payment_id=payment_id,
        )
        if not result.get("success"):
            db.session.rollback()
            raise ServiceError(result.get("error") or "Failed to submit quiz", status_code=500)
        attempt_id = result["attemptId"]
        submitted = result.get("answersSubmitted", len(answers))
        is_reattempt = bool(result.get("isReattempt"))
        method = "procedure"
    except ProcedureUnavailable:
        attempt_id, submitted, is_reattempt = _submit_direct(user.id, quiz.id, answers, payment)
        method = "direct"

    db.session.commit()
    logger.info("User %s submitted %d answers for quiz %s (%s)", user.id, submitted, quiz.id, method)
    record_security_event(
        "QUIZ_SUBMITTED",
        user_id=user.id,
        quizId=quiz.id,
        attemptId=attempt_id,
        answersSubmitted=submitted,
        isReattempt=is_reattempt,
        method=method,
    )

    return {
        "message": "New quiz predictions submitted successfully" if is_reattempt
        else "Quiz predictions submitted successfully",
        "results": {
            "attemptId": attempt_id,
            "score": None,
            "points": None,
            "totalQuestions": len(quiz.active_questions),
            "submittedAnswers": submitted,
            "status": "pending_evaluation",
            "isReattempt": is_reattempt,
            "note": RESUBMITTED_NOTE if is_reattempt else SUBMITTED_NOTE,
        },
    }


# -------------------
# RESULTS
# -------------------
def quiz_results(user, quiz_id):
    quiz = db.session.get(Quiz, quiz_id)
    if quiz is None:
        raise NotFound("Quiz not found")
    attempt = QuizAttempt.query.filter_by(user_id=user.id, quiz_id=quiz.id, is_completed=True).first()
    if attempt is None:
        raise NotFound("No completed attempt for this quiz")

    answers = (
        Answer.query
        .filter_by(quiz_attempt_id=attempt.id)
        .join(Question, Answer.question_id == Question.id)
        .order_by(Question.position, Question.id)
        .all()
    )
    details = []
    for a in answers:
        q = a.question
        details.append({
            "questionId": q.id,
            "questionText": q.text,
            "options": q.get_options(),
            "selectedOption": a.selected_option,
            "correctOption": q.correct_option if q.has_correct_answer else None,
            "isCorrect": a.is_correct if attempt.is_evaluated else None,
        })

    correct = sum(1 for a in answers if a.is_correct)
    return {
        "quiz": _quiz_summary(quiz),
        "attempt": {
            "id": attempt.id,
            "score": attempt.score,
            "points": attempt.points,
            "isEvaluated": attempt.is_evaluated,
            "completedAt": isoformat(attempt.completed_at),
        },
        "answers": details,
        "correctAnswers": correct,
        "totalQuestions": len(answers),
        "passed": attempt.is_evaluated and attempt.score >= (quiz.passing_score or 0),
        "status": "evaluated" if attempt.is_evaluated else "pending_evaluation",
    }
