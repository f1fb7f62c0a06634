from flask import Blueprint, jsonify, request

from thinkquiz.routes.helpers import load_args, load_json
from thinkquiz.services.admin_service import (
    create_question,
    create_quiz,
    dashboard_stats,
    delete_question,
    delete_quiz,
    get_quiz,
    list_quizzes,
    question_admin_dict,
    quiz_admin_dict,
    update_question,
    update_quiz,
)
from thinkquiz.services.auth_service import current_user, ensure_admin
from thinkquiz.services.csrf import ensure_csrf
from thinkquiz.services.evaluation_service import (
    allocate_points,
    allocation_history,
    evaluate_quiz,
    evaluation_status,
)
from thinkquiz.services.errors import ValidationFailed
from thinkquiz.services.prize_service import (
    create_prize,
    delete_prize,
    list_all_prizes,
    list_claims,
    update_claim,
    update_prize,
)
from thinkquiz.services.rate_limiter import admin_limiter, apply_rate_limit
from thinkquiz.services.schemas import (
    ClaimUpdateRequest,
    EvaluationRequest,
    PointsAllocationRequest,
    PrizeRequest,
    PrizeUpdateRequest,
    QuestionCreateRequest,
    QuestionUpdateRequest,
    QuizCreateRequest,
    QuizUpdateRequest,
    SecurityEventsQuery,
    StreamEmbedRequest,
    WalletModerationRequest,
)
from thinkquiz.services.security_events import list_security_events, security_stats
from thinkquiz.services.stream_service import admin_stream_config, save_stream_config
from thinkquiz.services.utils import TIMEFRAMES, parse_positive_int
from thinkquiz.services.wallet_service import list_transactions, moderate_transaction

admin_bp = Blueprint("admin", __name__)

WRITE_METHODS = ("POST", "PUT", "PATCH", "DELETE")


@admin_bp.before_request
def guard_admin():
    """Every admin endpoint: CSRF on writes, admin session, admin rate limit."""
    if request.method in WRITE_METHODS:
        ensure_csrf()
    user = ensure_admin()
    return apply_rate_limit(admin_limiter, user_id=user.id, endpoint=request.path)


def _admin_email():
    return current_user().email


def _page_args(default_limit=20):
    page = parse_positive_int(request.args.get("page"), 1)
    limit = parse_positive_int(request.args.get("limit"), default_limit, maximum=100)
    return page, limit


def _optional_int_arg(name):
    raw = request.args.get(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationFailed(f"{name} must be an integer")


# -------------------
# QUIZZES
# -------------------
@admin_bp.route("/quizzes")
def quizzes():
    return jsonify({"quizzes": list_quizzes()})


@admin_bp.route("/quizzes", methods=["POST"])
def quiz_create():
    quiz = create_quiz(load_json(QuizCreateRequest))
    return jsonify({"message": "Quiz created", "quiz": quiz_admin_dict(quiz, with_questions=True)}), 201


@admin_bp.route("/quizzes/<int:quiz_id>")
def quiz_detail(quiz_id):
    return jsonify({"quiz": quiz_admin_dict(get_quiz(quiz_id), with_questions=True)})


@admin_bp.route("/quizzes/<int:quiz_id>", methods=["PUT"])
def quiz_update(quiz_id):
    quiz = update_quiz(quiz_id, load_json(QuizUpdateRequest))
    return jsonify({"message": "Quiz updated", "quiz": quiz_admin_dict(quiz, with_questions=True)})


@admin_bp.route("/quizzes/<int:quiz_id>", methods=["DELETE"])
def quiz_delete(quiz_id):
    delete_quiz(quiz_id)
    return jsonify({"message": "Quiz deleted"})


# -------------------
# QUESTIONS
# -------------------
@admin_bp.route("/questions", methods=["POST"])
def question_create():
    q = create_question(load_json(QuestionCreateRequest))
    return jsonify({"message": "Question created", "question": question_admin_dict(q)}), 201


@admin_bp.route("/questions/<int:question_id>", methods=["PUT"])
def question_update(question_id):
    q = update_question(question_id, load_json(QuestionUpdateRequest))
    return jsonify({"message": "Question updated", "question": question_admin_dict(q)})


@admin_bp.route("/questions/<int:question_id>", methods=["DELETE"])
def question_delete(question_id):
    delete_question(question_id)
    return jsonify({"message": "Question deleted"})


# -------------------
# EVALUATION / POINTS
# -------------------
@admin_bp.route("/quiz-evaluation")
def evaluation_get():
    return jsonify(evaluation_status(_optional_int_arg("quizId")))


@admin_bp.route("/quiz-evaluation", methods=["POST"])
def evaluation_post():
    return jsonify(evaluate_quiz(load_json(EvaluationRequest), _admin_email()))


@admin_bp.route("/points-allocation")
def points_history():
    page, limit = _page_args()
    return jsonify(allocation_history(_optional_int_arg("quizId"), page, limit))


@admin_bp.route("/points-allocation", methods=["POST"])
def points_allocate():
    return jsonify(allocate_points(load_json(PointsAllocationRequest)))


# -------------------
# WALLET
# -------------------
@admin_bp.route("/wallet-transactions")
def wallet_transactions():
    page, limit = _page_args()
    return jsonify(list_transactions(request.args.get("status"), page, limit))


@admin_bp.route("/wallet-transactions", methods=["PATCH"])
def wallet_moderate():
    return jsonify(moderate_transaction(load_json(WalletModerationRequest), _admin_email()))


# -------------------
# PRIZES / CLAIMS
# -------------------
@admin_bp.route("/prizes")
def prizes():
    return jsonify({"prizes": list_all_prizes()})


@admin_bp.route("/prizes", methods=["POST"])
def prize_create():
    prize = create_prize(load_json(PrizeRequest))
    return jsonify({"message": "Prize created", "prize": prize.to_dict()}), 201


@admin_bp.route("/prizes/<int:prize_id>", methods=["PUT"])
def prize_update(prize_id):
    prize = update_prize(prize_id, load_json(PrizeUpdateRequest))
    return jsonify({"message": "Prize updated", "prize": prize.to_dict()})


@admin_bp.route("/prizes/<int:prize_id>", methods=["DELETE"])
def prize_delete(prize_id):
    delete_prize(prize_id)
    return jsonify({"message": "Prize deleted"})


@admin_bp.route("/claims")
def claims():
    page, limit = _page_args()
    return jsonify(list_claims(request.args.get("status"), page, limit))


@admin_bp.route("/claims", methods=["PUT"])
def claim_update():
    return jsonify(update_claim(load_json(ClaimUpdateRequest), _admin_email()))


# -------------------
# SECURITY / STATS
# -------------------
@admin_bp.route("/security/stats")
def security_stats_view():
    timeframe = request.args.get("timeframe", "24h")
    if timeframe not in TIMEFRAMES:
        timeframe = "24h"
    return jsonify(security_stats(timeframe))


@admin_bp.route("/security/events")
def security_events_view():
    q = load_args(SecurityEventsQuery)
    return jsonify(list_security_events(q.timeframe, q.severity, q.limit, q.offset))


@admin_bp.route("/stats")
def stats():
    return jsonify(dashboard_stats())


# -------------------
# STREAMING
# -------------------
@admin_bp.route("/stream-embed")
def stream_embed_get():
    return jsonify(admin_stream_config())


@admin_bp.route("/stream-embed", methods=["POST"])
def stream_embed_post():
    status = save_stream_config(load_json(StreamEmbedRequest), _admin_email())
    return jsonify({"message": "Stream embed saved", **status})
