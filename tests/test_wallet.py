from extensions import db
from thinkquiz.models import User, WalletTransaction


def _deposit(api, tx="TX-1001", amount=50, method="Easypaisa"):
    return api.post("/api/wallet/deposits", json={
        "amount": amount, "paymentMethod": method, "transactionId": tx,
    })


def test_deposit_is_pending_and_listed(user_api):
    resp = _deposit(user_api)
    assert resp.status_code == 201
    assert resp.get_json()["transaction"]["status"] == "pending"

    wallet = user_api.get("/api/wallet").get_json()
    assert wallet["balance"] == 0.0
    assert len(wallet["transactions"]) == 1


def test_deposit_validation(user_api):
    assert _deposit(user_api, amount=1).status_code == 400
    assert _deposit(user_api, method="Paypal").status_code == 400


def test_duplicate_transaction_id_conflicts(user_api):
    assert _deposit(user_api).status_code == 201
    assert _deposit(user_api).status_code == 409


def test_admin_approves_deposit_once(app, user_api, admin_api, user_id):
    tx_id = _deposit(user_api).get_json()["transaction"]["id"]

    listing = admin_api.get("/api/admin/wallet-transactions?status=pending").get_json()
    assert [t["id"] for t in listing["transactions"]] == [tx_id]
    assert listing["transactions"][0]["user"]["id"] == user_id

    resp = admin_api.patch("/api/admin/wallet-transactions", json={"transactionId": tx_id, "action": "approve"})
    assert resp.status_code == 200
    assert resp.get_json()["newBalance"] == 50.0

    again = admin_api.patch("/api/admin/wallet-transactions", json={"transactionId": tx_id, "action": "approve"})
    assert again.status_code == 400

    with app.app_context():
        assert db.session.get(User, user_id).wallet_balance == 50.0
        tx = db.session.get(WalletTransaction, tx_id)
        assert tx.status == "approved"
        assert tx.processed_by == "admin@example.com"


def test_admin_rejects_deposit(app, user_api, admin_api, user_id):
    tx_id = _deposit(user_api).get_json()["transaction"]["id"]
    resp = admin_api.patch("/api/admin/wallet-transactions", json={
        "transactionId": tx_id, "action": "reject", "notes": "No such payment",
    })
    assert resp.status_code == 200
    with app.app_context():
        assert db.session.get(User, user_id).wallet_balance == 0.0
        tx = db.session.get(WalletTransaction, tx_id)
        assert tx.status == "rejected"
        assert tx.admin_notes == "No such payment"


def test_moderating_missing_transaction_is_404(admin_api):
    resp = admin_api.patch("/api/admin/wallet-transactions", json={"transactionId": 404, "action": "approve"})
    assert resp.status_code == 404


def test_pending_transactions_listed_first(user_api, admin_api):
    first = _deposit(user_api, tx="TX-A").get_json()["transaction"]["id"]
    second = _deposit(user_api, tx="TX-B").get_json()["transaction"]["id"]
    admin_api.patch("/api/admin/wallet-transactions", json={"transactionId": second, "action": "approve"})

    listing = admin_api.get("/api/admin/wallet-transactions").get_json()
    assert [t["id"] for t in listing["transactions"]] == [first, second]
