import datetime

import pytest

from app import create_app
from config import TestingConfig
from extensions import db
from thinkquiz.models import DailyPayment, Question, Quiz, User
from thinkquiz.services.leaderboard_service import leaderboard_cache
from thinkquiz.services.security_events import monitor, reset_perf_metrics
from thinkquiz.services.stream_service import invalidate_stream_cache
from thinkquiz.services.utils import utcnow

ADMIN_EMAIL = "admin@example.com"
PASSWORD = "Secret#123"


class ApiClient:
    """Test client that carries the session's CSRF token on every write."""

    def __init__(self, client):
        self.client = client
        self.token = client.get("/api/csrf-token").get_json()["csrfToken"]

    def _headers(self, kwargs):
        headers = dict(kwargs.pop("headers", {}) or {})
        headers.setdefault("X-CSRF-Token", self.token)
        return headers

    def get(self, url, **kwargs):
        return self.client.get(url, **kwargs)

    def post(self, url, **kwargs):
        return self.client.post(url, headers=self._headers(kwargs), **kwargs)

    def put(self, url, **kwargs):
        return self.client.put(url, headers=self._headers(kwargs), **kwargs)

    def patch(self, url, **kwargs):
        return self.client.patch(url, headers=self._headers(kwargs), **kwargs)

    def delete(self, url, **kwargs):
        return self.client.delete(url, headers=self._headers(kwargs), **kwargs)

    def login(self, email, password=PASSWORD):
        resp = self.post("/api/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.get_json()
        return resp


@pytest.fixture
def app(tmp_path):
    class Config(TestingConfig):
        UPLOADS_DIR = str(tmp_path / "uploads")

    app = create_app(Config)
    leaderboard_cache.clear()
    invalidate_stream_cache()
    monitor.reset()
    reset_perf_metrics()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(email="player@example.com", name="Test Player", points=0, wallet=0.0):
        with app.app_context():
            user = User(name=name, email=email, points=points, wallet_balance=wallet)
            user.set_password(PASSWORD)
            db.session.add(user)
            db.session.commit()
            return user.id
    return _make


@pytest.fixture
def api(app):
    return ApiClient(app.test_client())


@pytest.fixture
def user_id(make_user):
    return make_user()


@pytest.fixture
def user_api(app, user_id):
    api = ApiClient(app.test_client())
    api.login("player@example.com")
    return api


@pytest.fixture
def admin_api(app, make_user):
    make_user(email=ADMIN_EMAIL, name="Admin")
    api = ApiClient(app.test_client())
    api.login(ADMIN_EMAIL)
    return api


@pytest.fixture
def make_quiz(app):
    def _make(title="General Knowledge", questions=3, status="active", access_price=None):
        with app.app_context():
            quiz = Quiz(title=title, status=status, passing_score=50, access_price=access_price)
            db.session.add(quiz)
            db.session.flush()
            ids = []
            for i in range(questions):
                q = Question(quiz_id=quiz.id, text=f"Question {i + 1}?", position=i + 1)
                q.set_options(["A", "B", "C", "D"])
                db.session.add(q)
                db.session.flush()
                ids.append(q.id)
            db.session.commit()
            return quiz.id, ids
    return _make


@pytest.fixture
def grant_access(app):
    def _grant(uid, hours=24):
        with app.app_context():
            payment = DailyPayment(
                user_id=uid,
                amount=2.0,
                status="completed",
                payment_method="demo",
                expires_at=utcnow() + datetime.timedelta(hours=hours),
            )
            db.session.add(payment)
            db.session.commit()
            return payment.id
    return _grant
