from extensions import db
from thinkquiz.models import Question, Quiz


def _quiz_payload(**overrides):
    data = {
        "title": "Capitals",
        "description": "World capitals",
        "passingScore": 60,
        "questions": [
            {"text": "Capital of France?", "options": ["Paris", "Rome"], "correctOption": 0},
            {"text": "Capital of Italy?", "options": ["Paris", "Rome"]},
        ],
    }
    data.update(overrides)
    return data


def test_create_quiz_with_questions(app, admin_api):
    resp = admin_api.post("/api/admin/quizzes", json=_quiz_payload())
    assert resp.status_code == 201
    quiz = resp.get_json()["quiz"]
    assert quiz["questionCount"] == 2
    assert [q["position"] for q in quiz["questions"]] == [1, 2]
    assert quiz["questions"][0]["hasCorrectAnswer"] is True
    assert quiz["questions"][1]["hasCorrectAnswer"] is False

    listing = admin_api.get("/api/admin/quizzes").get_json()["quizzes"]
    assert [q["title"] for q in listing] == ["Capitals"]


def test_create_quiz_rejects_out_of_range_answer(admin_api):
    payload = _quiz_payload(questions=[{"text": "?", "options": ["a", "b"], "correctOption": 5}])
    assert admin_api.post("/api/admin/quizzes", json=payload).status_code == 400


def test_create_quiz_requires_csrf(app, admin_api):
    resp = admin_api.client.post("/api/admin/quizzes", json=_quiz_payload())
    assert resp.status_code == 403


def test_update_and_delete_quiz(app, admin_api):
    quiz_id = admin_api.post("/api/admin/quizzes", json=_quiz_payload()).get_json()["quiz"]["id"]

    resp = admin_api.put(f"/api/admin/quizzes/{quiz_id}", json={"status": "paused", "accessPrice": 5})
    assert resp.status_code == 200
    assert resp.get_json()["quiz"]["status"] == "paused"
    assert resp.get_json()["quiz"]["title"] == "Capitals"

    assert admin_api.delete(f"/api/admin/quizzes/{quiz_id}").status_code == 200
    assert admin_api.get(f"/api/admin/quizzes/{quiz_id}").status_code == 404
    with app.app_context():
        assert Quiz.query.count() == 0
        assert Question.query.count() == 0


def test_question_crud(app, admin_api, make_quiz):
    quiz_id, _ = make_quiz(questions=2)
    resp = admin_api.post("/api/admin/questions", json={
        "quizId": quiz_id, "text": "Extra?", "options": ["x", "y", "z"],
    })
    assert resp.status_code == 201
    question = resp.get_json()["question"]
    assert question["position"] == 3

    resp = admin_api.put(f"/api/admin/questions/{question['id']}", json={"correctOption": 2})
    assert resp.get_json()["question"]["correctOption"] == 2
    assert admin_api.put(f"/api/admin/questions/{question['id']}", json={"correctOption": 3}).status_code == 400

    assert admin_api.delete(f"/api/admin/questions/{question['id']}").status_code == 200
    with app.app_context():
        assert Question.query.filter_by(quiz_id=quiz_id).count() == 2


def test_dashboard_stats(admin_api, user_id, make_quiz):
    make_quiz()
    make_quiz(title="Paused", status="paused")
    stats = admin_api.get("/api/admin/stats").get_json()
    assert stats["totalUsers"] == 2
    assert stats["totalQuizzes"] == 2
    assert stats["activeQuizzes"] == 1
    assert stats["pendingEvaluations"] == 0
    assert stats["paidAttempts"] == 0
