import logging
import math

from flask import current_app
from sqlalchemy import case, update
from sqlalchemy.exc import IntegrityError

from extensions import db
from thinkquiz.models import User, WalletTransaction
from thinkquiz.services.errors import Conflict, NotFound, ServiceError, ValidationFailed
from thinkquiz.services.procedures import ProcedureUnavailable, call_procedure
from thinkquiz.services.utils import utcnow

logger = logging.getLogger(__name__)


def create_deposit(user, data):
    minimum = float(current_app.config.get("MIN_DEPOSIT_AMOUNT", 5))
    if data.amount < minimum:
        raise ValidationFailed(f"Minimum deposit amount is {minimum:g}", minimumAmount=minimum)

    if WalletTransaction.query.filter_by(transaction_id=data.transactionId).first():
        raise Conflict("This transaction ID has already been submitted")

    tx = WalletTransaction(
        user_id=user.id,
        amount=data.amount,
        type="deposit",
        payment_method=data.paymentMethod,
        transaction_id=data.transactionId,
        status="pending",
        proof_image=data.proofImage,
    )
    db.session.add(tx)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict("This transaction ID has already been submitted")

    logger.info("Deposit %s of %.2f submitted by user %s", tx.id, tx.amount, user.id)
    return tx


def wallet_overview(user):
    transactions = (
        WalletTransaction.query
        .filter_by(user_id=user.id)
        .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
        .all()
    )
    return {
        "balance": float(user.wallet_balance or 0.0),
        "transactions": [t.to_dict() for t in transactions],
    }


def list_transactions(status=None, page=1, limit=20):
    query = WalletTransaction.query
    if status and status != "all":
        query = query.filter(WalletTransaction.status == status)
    total = query.count()
    pending_first = case((WalletTransaction.status == "pending", 0), else_=1)
    rows = (
        query.order_by(pending_first, WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "transactions": [t.to_dict(include_user=True) for t in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit) if limit else 0,
        },
    }


def _moderate_direct(tx_id, action, notes, admin_email):
    tx = db.session.get(WalletTransaction, tx_id)
    if tx is None:
        raise NotFound("Transaction not found")
    if tx.status != "pending":
        raise ValidationFailed(f"Transaction is already {tx.status}")

    new_status = "approved" if action == "approve" else "rejected"
    # Only one moderator can move the row out of pending
    res = db.session.execute(
        update(WalletTransaction)
        .where(WalletTransaction.id == tx.id, WalletTransaction.status == "pending")
        .values(
            status=new_status,
            admin_notes=notes,
            processed_at=utcnow(),
            processed_by=admin_email,
        )
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.session.rollback()
        raise Conflict("Transaction was already processed")

    if action == "approve":
        db.session.execute(
            update(User)
            .where(User.id == tx.user_id)
            .values(wallet_balance=User.wallet_balance + tx.amount)
            .execution_options(synchronize_session=False)
        )
    return {"success": True, "status": new_status}


def moderate_transaction(data, admin_email):
    name = "approve_wallet_transaction" if data.action == "approve" else "reject_wallet_transaction"
    params = {"p_transaction_id": data.transactionId, "p_admin_email": admin_email}
    if data.action == "reject":
        params["p_reason"] = data.notes

    try:
        result = call_procedure(name, **params)
        if not result.get("success"):
            db.session.rollback()
            error = result.get("error") or "Failed to process transaction"
            if result.get("notFound"):
                raise NotFound(error)
            raise ValidationFailed(error)
    except ProcedureUnavailable:
        result = _moderate_direct(data.transactionId, data.action, data.notes, admin_email)

    db.session.commit()
    db.session.expire_all()
    tx = db.session.get(WalletTransaction, data.transactionId)
    if tx is None:
        raise ServiceError("Transaction vanished after update", status_code=500)

    logger.info("Wallet transaction %s %sd by %s", tx.id, data.action, admin_email)
    return {
        "message": "Transaction approved successfully" if data.action == "approve" else "Transaction rejected",
        "transaction": tx.to_dict(include_user=True),
        "newBalance": float(tx.user.wallet_balance or 0.0) if tx.user else None,
    }
