from flask import Blueprint, jsonify

from thinkquiz.routes.helpers import load_json
from thinkquiz.services.auth_service import current_user, login_required
from thinkquiz.services.csrf import csrf_protect
from thinkquiz.services.prize_service import list_active_prizes, redeem_prize, user_redemptions
from thinkquiz.services.rate_limiter import prize_redemption_limiter, rate_limited
from thinkquiz.services.schemas import RedemptionRequest

prize_bp = Blueprint("prize", __name__)


@prize_bp.route("/api/prizes")
def prizes():
    return jsonify({"prizes": list_active_prizes()})


@prize_bp.route("/api/prize-redemption", methods=["POST"])
@csrf_protect
@login_required
@rate_limited(prize_redemption_limiter)
def redeem():
    data = load_json(RedemptionRequest)
    user = current_user()
    redemption = redeem_prize(user, data)
    return jsonify({
        "message": "Prize redemption requested",
        "redemption": redemption.to_dict(),
        "remainingPoints": user.points,
    }), 201


@prize_bp.route("/api/prize-redemption")
@login_required
def redemptions():
    return jsonify({"redemptions": user_redemptions(current_user())})
