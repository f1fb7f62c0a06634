import logging
import math

from sqlalchemy import update

from extensions import db
from thinkquiz.models import Prize, PrizeRedemption, User
from thinkquiz.services.errors import Conflict, InsufficientFunds, NotFound, ValidationFailed
from thinkquiz.services.leaderboard_service import invalidate_leaderboard
from thinkquiz.services.security_events import record_security_event
from thinkquiz.services.utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_PRIZES = [
    {"name": "Wireless Earbuds", "description": "Premium wireless earbuds with noise cancellation!",
     "image_url": "/earbuds.svg", "model_url": "/models/earbuds.glb", "type": "earbuds",
     "points_required": 100, "category": "accessories"},
    {"name": "Smart Watch", "description": "Advanced smartwatch with health tracking!",
     "image_url": "/smartwatch.svg", "model_url": "/models/smartwatch.glb", "type": "watch",
     "points_required": 250, "category": "electronics"},
    {"name": "Android Phone", "description": "Latest smartphone with amazing features!",
     "image_url": "/phone.svg", "model_url": "/models/phone.glb", "type": "phone",
     "points_required": 500, "category": "electronics"},
    {"name": "CD 70 Bike", "description": "Win a brand new motorcycle!",
     "image_url": "/bike.svg", "model_url": "/models/bike.glb", "type": "bike",
     "points_required": 1000, "category": "vehicles"},
]

# JSON field -> column
PRIZE_FIELDS = {
    "name": "name",
    "description": "description",
    "imageUrl": "image_url",
    "modelUrl": "model_url",
    "type": "type",
    "pointsRequired": "points_required",
    "isActive": "is_active",
    "category": "category",
    "stock": "stock",
    "status": "status",
    "value": "value",
}


def seed_default_prizes():
    for values in DEFAULT_PRIZES:
        db.session.add(Prize(is_active=True, **values))
    db.session.commit()


def list_active_prizes():
    if Prize.query.count() == 0:
        seed_default_prizes()
    prizes = (
        Prize.query
        .filter_by(is_active=True)
        .order_by(Prize.points_required.asc(), Prize.id.asc())
        .all()
    )
    return [p.to_dict() for p in prizes]


# -------------------
# REDEMPTION
# -------------------
def redeem_prize(user, data):
    prize = db.session.get(Prize, data.prizeId)
    if prize is None or not prize.is_active:
        raise NotFound("Prize not found or no longer available")

    pending = PrizeRedemption.query.filter_by(user_id=user.id, prize_id=prize.id, status="pending").first()
    if pending is not None:
        raise Conflict("You already have a pending redemption for this prize")

    cost = prize.points_required
    res = db.session.execute(
        update(User)
        .where(User.id == user.id, User.points >= cost)
        .values(points=User.points - cost)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.session.rollback()
        db.session.refresh(user)
        raise InsufficientFunds("Insufficient points", required=cost, available=user.points or 0)

    redemption = PrizeRedemption(
        user_id=user.id,
        prize_id=prize.id,
        points_used=cost,
        status="pending",
        full_name=data.fullName,
        whatsapp_number=data.whatsappNumber,
        address=data.address,
    )
    db.session.add(redemption)
    db.session.commit()
    db.session.refresh(user)
    invalidate_leaderboard()

    record_security_event("PRIZE_REDEMPTION", user_id=user.id, prizeId=prize.id,
                          redemptionId=redemption.id, pointsUsed=cost)
    return redemption


def user_redemptions(user):
    rows = (
        PrizeRedemption.query
        .filter_by(user_id=user.id)
        .order_by(PrizeRedemption.requested_at.desc(), PrizeRedemption.id.desc())
        .all()
    )
    return [r.to_dict() for r in rows]


# -------------------
# ADMIN PRIZES
# -------------------
def list_all_prizes():
    return [p.to_dict() for p in Prize.query.order_by(Prize.points_required.asc(), Prize.id.asc()).all()]


def _apply_fields(prize, data, only_set=False):
    for field, column in PRIZE_FIELDS.items():
        if only_set and field not in data.model_fields_set:
            continue
        value = getattr(data, field)
        if only_set and value is None:
            continue
        setattr(prize, column, value)


def create_prize(data):
    prize = Prize()
    _apply_fields(prize, data)
    db.session.add(prize)
    db.session.commit()
    return prize


def update_prize(prize_id, data):
    prize = db.session.get(Prize, prize_id)
    if prize is None:
        raise NotFound("Prize not found")
    _apply_fields(prize, data, only_set=True)
    db.session.commit()
    return prize


def delete_prize(prize_id):
    prize = db.session.get(Prize, prize_id)
    if prize is None:
        raise NotFound("Prize not found")
    redemptions = PrizeRedemption.query.filter_by(prize_id=prize.id).count()
    if redemptions:
        raise ValidationFailed(
            f"Cannot delete prize with {redemptions} redemptions. Deactivate it instead.",
            redemptions=redemptions,
        )
    db.session.delete(prize)
    db.session.commit()


# -------------------
# ADMIN CLAIMS
# -------------------
def list_claims(status=None, page=1, limit=20):
    query = PrizeRedemption.query
    if status and status != "all":
        query = query.filter(PrizeRedemption.status == status)
    total = query.count()
    rows = (
        query.order_by(PrizeRedemption.requested_at.desc(), PrizeRedemption.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "claims": [r.to_dict(include_user=True) for r in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit) if limit else 0,
        },
    }


def update_claim(data, admin_email=None):
    claim = db.session.get(PrizeRedemption, data.claimId)
    if claim is None:
        raise NotFound("Claim not found")

    old_status = claim.status
    values = {"status": data.status, "processed_at": utcnow()}
    if data.notes is not None:
        values["notes"] = data.notes

    guard = [PrizeRedemption.id == claim.id]
    if data.status == "rejected":
        # Refund happens only on the transition into rejected
        guard.append(PrizeRedemption.status != "rejected")

    res = db.session.execute(
        update(PrizeRedemption).where(*guard).values(**values).execution_options(synchronize_session=False)
    )
    refunded = 0
    if data.status == "rejected" and res.rowcount == 1:
        db.session.execute(
            update(User)
            .where(User.id == claim.user_id)
            .values(points=User.points + claim.points_used)
            .execution_options(synchronize_session=False)
        )
        refunded = claim.points_used

    db.session.commit()
    db.session.expire_all()
    if refunded:
        invalidate_leaderboard()
    claim = db.session.get(PrizeRedemption, data.claimId)
    logger.info("Claim %s moved %s -> %s by %s", claim.id, old_status, claim.status, admin_email)
    return {
        "message": "Claim status updated successfully",
        "claim": claim.to_dict(include_user=True),
        "oldStatus": old_status,
        "pointsRefunded": refunded,
    }
