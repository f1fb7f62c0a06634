from flask import Blueprint, g, jsonify, request

from thinkquiz.routes.helpers import load_json
from thinkquiz.services.auth_service import current_user, login_required
from thinkquiz.services.csrf import csrf_protect
from thinkquiz.services.payment_service import payment_required
from thinkquiz.services.quiz_service import (
    compute_etag,
    get_quiz_for_user,
    list_quizzes,
    quiz_results,
    submit_quiz,
)
from thinkquiz.services.rate_limiter import general_limiter, rate_limited
from thinkquiz.services.schemas import SubmitQuizRequest

quiz_bp = Blueprint("quiz", __name__)


@quiz_bp.route("/api/quizzes")
def quizzes():
    payload = list_quizzes(current_user())
    etag = compute_etag(payload)
    if request.if_none_match.contains(etag):
        return "", 304, {"ETag": f'"{etag}"'}

    resp = jsonify(payload)
    resp.set_etag(etag)
    resp.headers["Cache-Control"] = "private, no-cache"
    return resp


@quiz_bp.route("/api/quizzes/<int:quiz_id>")
@login_required
@payment_required
def quiz_detail(quiz_id):
    return jsonify(get_quiz_for_user(current_user(), quiz_id))


@quiz_bp.route("/api/quizzes/<int:quiz_id>/submit", methods=["POST"])
@csrf_protect
@login_required
@rate_limited(general_limiter)
@payment_required
def submit(quiz_id):
    data = load_json(SubmitQuizRequest)
    return jsonify(submit_quiz(current_user(), quiz_id, data, g.daily_payment))


@quiz_bp.route("/api/quizzes/<int:quiz_id>/results")
@login_required
def results(quiz_id):
    return jsonify(quiz_results(current_user(), quiz_id))
