from flask import Blueprint, jsonify

from thinkquiz.routes.helpers import load_json
from thinkquiz.services.auth_service import current_user, login_required
from thinkquiz.services.csrf import csrf_protect
from thinkquiz.services.rate_limiter import general_limiter, rate_limited
from thinkquiz.services.schemas import DepositRequest
from thinkquiz.services.wallet_service import create_deposit, wallet_overview

wallet_bp = Blueprint("wallet", __name__)


@wallet_bp.route("/api/wallet")
@login_required
def wallet():
    return jsonify(wallet_overview(current_user()))


@wallet_bp.route("/api/wallet/deposits", methods=["POST"])
@csrf_protect
@login_required
@rate_limited(general_limiter)
def deposit():
    data = load_json(DepositRequest)
    tx = create_deposit(current_user(), data)
    return jsonify({"message": "Deposit submitted for review", "transaction": tx.to_dict()}), 201
