import logging
import uuid
from datetime import timedelta
from functools import wraps

from flask import current_app, g
from sqlalchemy import update

from extensions import db
from thinkquiz.models import DailyPayment, Quiz, User, WalletTransaction
from thinkquiz.services.auth_service import current_user
from thinkquiz.services.errors import InsufficientFunds, NotFound, PaymentRequired, ServiceError
from thinkquiz.services.procedures import ProcedureUnavailable, call_procedure
from thinkquiz.services.security_events import record_security_event
from thinkquiz.services.utils import utcnow

logger = logging.getLogger(__name__)


def active_payment(user_id):
    now = utcnow()
    return (
        DailyPayment.query
        .filter(
            DailyPayment.user_id == user_id,
            DailyPayment.status == "completed",
            DailyPayment.expires_at > now,
        )
        .order_by(DailyPayment.expires_at.desc())
        .first()
    )


def check_payment_access(user_id, record=True):
    payment = active_payment(user_id)
    if payment is None:
        if record:
            record_security_event("UNAUTHORIZED_ACCESS", user_id=user_id, reason="no active daily payment")
        return {"hasAccess": False, "payment": None, "remainingSeconds": 0}

    remaining = int((payment.expires_at - utcnow()).total_seconds())
    return {"hasAccess": True, "payment": payment, "remainingSeconds": max(0, remaining)}


def require_payment_access(user):
    access = check_payment_access(user.id)
    if not access["hasAccess"]:
        raise PaymentRequired("Daily payment required to access quizzes", requiresPayment=True)
    return access["payment"]


def payment_required(f):
    """Must sit below ``login_required``; exposes the payment as ``g.daily_payment``."""
    @wraps(f)
    def wrapped(*args, **kwargs):
        g.daily_payment = require_payment_access(current_user())
        return f(*args, **kwargs)
    return wrapped


def _new_payment(user_id, amount, method, transaction_id=None):
    now = utcnow()
    hours = current_app.config.get("DAILY_ACCESS_HOURS", 24)
    return DailyPayment(
        user_id=user_id,
        amount=amount,
        status="completed",
        payment_method=method,
        transaction_id=transaction_id,
        expires_at=now + timedelta(hours=hours),
        created_at=now,
    )


def create_daily_payment(user, data):
    """Returns ``(payment, created)``; an active payment is returned as-is."""
    existing = active_payment(user.id)
    if existing is not None:
        return existing, False

    payment = _new_payment(user.id, data.amount, data.paymentMethod, data.transactionId)
    db.session.add(payment)
    db.session.commit()
    record_security_event("PAYMENT_CREATED", user_id=user.id, paymentId=payment.id, amount=data.amount)
    logger.info("Daily payment %s created for user %s", payment.id, user.id)
    return payment, True


def access_price(quiz_id=None):
    default = float(current_app.config.get("DEFAULT_ACCESS_PRICE", 2.0))
    if quiz_id is None:
        return default
    quiz = db.session.get(Quiz, quiz_id)
    if quiz is None:
        raise NotFound("Quiz not found")
    if quiz.access_price is None:
        return default
    return float(quiz.access_price)


def deduct_balance(user_id, amount):
    """Atomically take ``amount`` from the wallet; False when the balance is too low."""
    result = db.session.execute(
        update(User)
        .where(User.id == user_id, User.wallet_balance >= amount)
        .values(wallet_balance=User.wallet_balance - amount)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def pay_access_from_wallet(user, quiz_id=None):
    """Buy a daily access window with wallet money. Returns ``(payment, charged)``."""
    existing = active_payment(user.id)
    if existing is not None:
        return existing, False

    price = access_price(quiz_id)
    reference = f"QA-{user.id}-{uuid.uuid4().hex[:12]}"

    try:
        result = call_procedure(
            "deduct_wallet_balance",
            p_user_id=user.id,
            p_amount=price,
            p_transaction_id=reference,
        )
        if not result.get("success"):
            if result.get("insufficientBalance"):
                db.session.rollback()
                raise InsufficientFunds(
                    "Insufficient wallet balance",
                    insufficientBalance=True,
                    requiredAmount=price,
                    currentBalance=float(result.get("currentBalance") or 0.0),
                )
            db.session.rollback()
            raise ServiceError(result.get("error") or "Wallet deduction failed", status_code=500)
    except ProcedureUnavailable:
        if not deduct_balance(user.id, price):
            db.session.rollback()
            db.session.refresh(user)
            raise InsufficientFunds(
                "Insufficient wallet balance",
                insufficientBalance=True,
                requiredAmount=price,
                currentBalance=float(user.wallet_balance or 0.0),
            )
        db.session.add(WalletTransaction(
            user_id=user.id,
            amount=-price,
            type="deduction",
            payment_method="QuizAccess",
            transaction_id=reference,
            status="approved",
            admin_notes="Daily quiz access",
            processed_at=utcnow(),
            processed_by="system",
        ))

    payment = _new_payment(user.id, price, "wallet", reference)
    db.session.add(payment)
    db.session.commit()
    db.session.refresh(user)

    record_security_event("PAYMENT_CREATED", user_id=user.id, paymentId=payment.id,
                          amount=price, method="wallet")
    return payment, True


def cleanup_expired_payments():
    result = db.session.execute(
        update(DailyPayment)
        .where(DailyPayment.status == "completed", DailyPayment.expires_at <= utcnow())
        .values(status="expired")
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    count = result.rowcount or 0
    if count:
        logger.info("Marked %d daily payments expired", count)
    return count
