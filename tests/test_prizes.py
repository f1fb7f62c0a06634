from extensions import db
from thinkquiz.models import Prize, PrizeRedemption, User

from conftest import ApiClient


def test_prizes_seed_defaults_in_points_order(client):
    prizes = client.get("/api/prizes").get_json()["prizes"]
    assert [p["pointsRequired"] for p in prizes] == [100, 250, 500, 1000]


def _rich_client(app, make_user, points=300):
    uid = make_user(email="rich@example.com", points=points)
    api = ApiClient(app.test_client())
    api.login("rich@example.com")
    return uid, api


def _first_prize(client):
    return client.get("/api/prizes").get_json()["prizes"][0]


def test_redeem_deducts_points(app, client, make_user):
    prize = _first_prize(client)
    uid, api = _rich_client(app, make_user)

    resp = api.post("/api/prize-redemption", json={"prizeId": prize["id"], "fullName": "Rich Player"})
    assert resp.status_code == 201
    assert resp.get_json()["remainingPoints"] == 200

    mine = api.get("/api/prize-redemption").get_json()["redemptions"]
    assert mine[0]["status"] == "pending"
    assert mine[0]["prize"]["name"] == prize["name"]


def test_pending_redemption_blocks_duplicate(app, client, make_user):
    prize = _first_prize(client)
    _, api = _rich_client(app, make_user)
    assert api.post("/api/prize-redemption", json={"prizeId": prize["id"]}).status_code == 201
    assert api.post("/api/prize-redemption", json={"prizeId": prize["id"]}).status_code == 409


def test_redeem_with_insufficient_points(app, client, make_user):
    prize = _first_prize(client)
    uid, api = _rich_client(app, make_user, points=10)
    resp = api.post("/api/prize-redemption", json={"prizeId": prize["id"]})
    assert resp.status_code == 400
    assert resp.get_json()["required"] == 100
    assert resp.get_json()["available"] == 10
    with app.app_context():
        assert db.session.get(User, uid).points == 10
        assert PrizeRedemption.query.count() == 0


def test_redeem_inactive_prize_is_404(app, client, make_user):
    prize = _first_prize(client)
    with app.app_context():
        db.session.get(Prize, prize["id"]).is_active = False
        db.session.commit()
    _, api = _rich_client(app, make_user)
    assert api.post("/api/prize-redemption", json={"prizeId": prize["id"]}).status_code == 404


def test_rejected_claim_refunds_once(app, client, admin_api, make_user):
    prize = _first_prize(client)
    uid, api = _rich_client(app, make_user)
    claim_id = api.post("/api/prize-redemption", json={"prizeId": prize["id"]}).get_json()["redemption"]["id"]

    claims = admin_api.get("/api/admin/claims?status=pending").get_json()
    assert claims["pagination"]["total"] == 1

    first = admin_api.put("/api/admin/claims", json={"claimId": claim_id, "status": "rejected"})
    assert first.get_json()["pointsRefunded"] == 100
    second = admin_api.put("/api/admin/claims", json={"claimId": claim_id, "status": "rejected"})
    assert second.get_json()["pointsRefunded"] == 0

    with app.app_context():
        assert db.session.get(User, uid).points == 300


def test_claim_fulfilment(client, app, admin_api, make_user):
    prize = _first_prize(client)
    _, api = _rich_client(app, make_user)
    claim_id = api.post("/api/prize-redemption", json={"prizeId": prize["id"]}).get_json()["redemption"]["id"]
    resp = admin_api.put("/api/admin/claims", json={"claimId": claim_id, "status": "fulfilled", "notes": "Shipped"})
    assert resp.status_code == 200
    assert resp.get_json()["claim"]["status"] == "fulfilled"
    assert resp.get_json()["claim"]["notes"] == "Shipped"


def test_admin_prize_crud(admin_api):
    created = admin_api.post("/api/admin/prizes", json={
        "name": "Headphones", "pointsRequired": 150, "category": "electronics", "stock": 3,
    })
    assert created.status_code == 201
    prize_id = created.get_json()["prize"]["id"]

    updated = admin_api.put(f"/api/admin/prizes/{prize_id}", json={"pointsRequired": 175})
    assert updated.get_json()["prize"]["pointsRequired"] == 175
    assert updated.get_json()["prize"]["name"] == "Headphones"

    assert admin_api.delete(f"/api/admin/prizes/{prize_id}").status_code == 200
    assert admin_api.delete(f"/api/admin/prizes/{prize_id}").status_code == 404


def test_prize_with_redemptions_cannot_be_deleted(app, client, admin_api, make_user):
    prize = _first_prize(client)
    uid, api = _rich_client(app, make_user)
    api.post("/api/prize-redemption", json={"prizeId": prize["id"]})

    resp = admin_api.delete(f"/api/admin/prizes/{prize['id']}")
    assert resp.status_code == 400
    assert resp.get_json()["redemptions"] == 1

    with app.app_context():
        assert db.session.get(Prize, prize["id"]) is not None
        claim = PrizeRedemption.query.one()
        assert claim.prize is not None
        assert db.session.get(User, uid).points == 200

    # deactivating stays possible
    resp = admin_api.put(f"/api/admin/prizes/{prize['id']}", json={"isActive": False})
    assert resp.get_json()["prize"]["isActive"] is False
