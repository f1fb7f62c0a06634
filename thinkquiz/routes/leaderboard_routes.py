from flask import Blueprint, jsonify

from thinkquiz.routes.helpers import load_args
from thinkquiz.services.leaderboard_service import get_leaderboard
from thinkquiz.services.schemas import LeaderboardQuery

leaderboard_bp = Blueprint("leaderboard", __name__)


@leaderboard_bp.route("/api/leaderboard")
def leaderboard():
    query = load_args(LeaderboardQuery)
    return jsonify(get_leaderboard(query.limit, query.timeframe, query.quizId))
