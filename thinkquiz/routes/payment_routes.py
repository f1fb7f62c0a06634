from flask import Blueprint, jsonify, request

from thinkquiz.routes.helpers import load_json
from thinkquiz.services.auth_service import current_user, login_required
from thinkquiz.services.csrf import csrf_protect
from thinkquiz.services.payment_service import (
    check_payment_access,
    create_daily_payment,
    pay_access_from_wallet,
)
from thinkquiz.services.rate_limiter import general_limiter, rate_limited
from thinkquiz.services.schemas import DailyPaymentRequest, WalletAccessRequest

payment_bp = Blueprint("payment", __name__)


@payment_bp.route("/api/daily-payment")
@login_required
def payment_status():
    access = check_payment_access(current_user().id, record=False)
    payment = access["payment"]
    return jsonify({
        "hasAccess": access["hasAccess"],
        "remainingSeconds": access["remainingSeconds"],
        "payment": payment.to_dict() if payment else None,
    })


@payment_bp.route("/api/daily-payment", methods=["POST"])
@csrf_protect
@login_required
@rate_limited(general_limiter)
def daily_payment():
    data = load_json(DailyPaymentRequest)
    payment, created = create_daily_payment(current_user(), data)
    if not created:
        return jsonify({"message": "You already have active quiz access", "payment": payment.to_dict()})
    return jsonify({"message": "Payment successful", "payment": payment.to_dict()}), 201


@payment_bp.route("/api/payments/wallet", methods=["POST"])
@csrf_protect
@login_required
@rate_limited(general_limiter)
def wallet_payment():
    data = load_json(WalletAccessRequest) if request.get_data() else WalletAccessRequest()
    user = current_user()
    payment, charged = pay_access_from_wallet(user, data.quizId)
    body = {
        "payment": payment.to_dict(),
        "charged": charged,
        "walletBalance": float(user.wallet_balance or 0.0),
    }
    if not charged:
        body["message"] = "You already have active quiz access"
        return jsonify(body)
    body["message"] = "Quiz access purchased from wallet"
    return jsonify(body), 201
