from extensions import db
from thinkquiz.models import QuestionAttempt, QuizAttempt, User, Winning

from conftest import ApiClient


def _setup_two_players(app, make_user, make_quiz, grant_access):
    quiz_id, qids = make_quiz()
    players = []
    for email, options in (("top@example.com", [0, 0, 0]), ("low@example.com", [0, 1, 1])):
        uid = make_user(email=email)
        grant_access(uid)
        api = ApiClient(app.test_client())
        api.login(email)
        payload = {"answers": [
            {"questionId": qid, "selectedOption": opt} for qid, opt in zip(qids, options)
        ]}
        assert api.post(f"/api/quizzes/{quiz_id}/submit", json=payload).status_code == 200
        players.append((uid, api))
    return quiz_id, qids, players


def _evaluate(admin_api, quiz_id, qids):
    return admin_api.post("/api/admin/quiz-evaluation", json={
        "quizId": quiz_id,
        "correctAnswers": {str(qid): 0 for qid in qids},
    })


def test_evaluation_scores_attempts(app, admin_api, make_user, make_quiz, grant_access):
    quiz_id, qids, players = _setup_two_players(app, make_user, make_quiz, grant_access)

    resp = _evaluate(admin_api, quiz_id, qids)
    assert resp.status_code == 200
    assert resp.get_json()["evaluatedAttempts"] == 2

    with app.app_context():
        scores = {a.user_id: a.score for a in QuizAttempt.query.all()}
        assert scores[players[0][0]] == 100
        assert scores[players[1][0]] == 33
        assert QuestionAttempt.query.filter_by(is_correct=True).count() == 4

    results = players[1][1].get(f"/api/quizzes/{quiz_id}/results").get_json()
    assert results["correctAnswers"] == 1
    assert results["passed"] is False
    assert results["answers"][0]["correctOption"] == 0

    status = admin_api.get(f"/api/admin/quiz-evaluation?quizId={quiz_id}").get_json()
    assert status["isFullyEvaluated"] is True


def test_evaluation_requires_every_question(admin_api, make_quiz):
    quiz_id, qids = make_quiz()
    resp = admin_api.post("/api/admin/quiz-evaluation", json={
        "quizId": quiz_id,
        "correctAnswers": {str(qids[0]): 1},
    })
    assert resp.status_code == 400
    assert sorted(resp.get_json()["missingQuestions"]) == sorted(qids[1:])


def test_evaluation_rejects_out_of_range_option(admin_api, make_quiz):
    quiz_id, qids = make_quiz()
    resp = admin_api.post("/api/admin/quiz-evaluation", json={
        "quizId": quiz_id,
        "correctAnswers": {str(qid): 9 for qid in qids},
    })
    assert resp.status_code == 400


def test_points_allocation_pays_top_once(app, admin_api, make_user, make_quiz, grant_access):
    quiz_id, qids, players = _setup_two_players(app, make_user, make_quiz, grant_access)
    _evaluate(admin_api, quiz_id, qids)

    payload = {"quizId": quiz_id, "pointsPerWinner": 50, "percentageThreshold": 50}
    resp = admin_api.post("/api/admin/points-allocation", json=payload)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["winnerSlots"] == 1
    assert [w["userId"] for w in body["winners"]] == [players[0][0]]

    again = admin_api.post("/api/admin/points-allocation", json=payload).get_json()
    assert again["winners"] == []

    with app.app_context():
        assert db.session.get(User, players[0][0]).points == 50
        assert db.session.get(User, players[1][0]).points == 0

    history = admin_api.get(f"/api/admin/points-allocation?quizId={quiz_id}").get_json()
    assert history["pagination"]["total"] == 1


def test_points_allocation_with_prize_records_winning(app, admin_api, make_user, make_quiz, grant_access):
    quiz_id, qids, players = _setup_two_players(app, make_user, make_quiz, grant_access)
    _evaluate(admin_api, quiz_id, qids)
    prize = admin_api.post("/api/admin/prizes", json={"name": "Mug", "pointsRequired": 10}).get_json()["prize"]

    resp = admin_api.post("/api/admin/points-allocation", json={
        "quizId": quiz_id, "percentageThreshold": 100, "prizeId": prize["id"],
    })
    assert len(resp.get_json()["winners"]) == 2
    with app.app_context():
        assert Winning.query.count() == 2


def test_points_allocation_needs_evaluated_attempts(admin_api, make_quiz):
    quiz_id, _ = make_quiz()
    resp = admin_api.post("/api/admin/points-allocation", json={"quizId": quiz_id})
    assert resp.status_code == 400


def test_points_allocation_without_scoring_winners(app, admin_api, make_user, make_quiz, grant_access):
    quiz_id, qids, players = _setup_two_players(app, make_user, make_quiz, grant_access)
    # nobody picked option 3
    admin_api.post("/api/admin/quiz-evaluation", json={
        "quizId": quiz_id,
        "correctAnswers": {str(qid): 3 for qid in qids},
    })

    resp = admin_api.post("/api/admin/points-allocation", json={"quizId": quiz_id, "percentageThreshold": 100})
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["error"] == "No eligible winners found (all top performers scored 0)"
    assert body["totalEvaluated"] == 2
    with app.app_context():
        assert all(db.session.get(User, uid).points == 0 for uid, _ in players)
        assert Winning.query.count() == 0


def test_reattempt_after_evaluation_is_graded_again(app, admin_api, make_user, make_quiz, grant_access):
    quiz_id, qids, players = _setup_two_players(app, make_user, make_quiz, grant_access)
    _evaluate(admin_api, quiz_id, qids)

    created = admin_api.post("/api/admin/questions", json={
        "quizId": quiz_id, "text": "Extra?", "options": ["A", "B"],
    }).get_json()["question"]
    uid, api = players[1]
    api.post(f"/api/quizzes/{quiz_id}/submit",
             json={"answers": [{"questionId": created["id"], "selectedOption": 1}]})

    with app.app_context():
        attempt = QuizAttempt.query.filter_by(user_id=uid).one()
        assert attempt.is_evaluated is False

    correct = {str(qid): 0 for qid in qids}
    correct[str(created["id"])] = 1
    admin_api.post("/api/admin/quiz-evaluation", json={"quizId": quiz_id, "correctAnswers": correct})
    with app.app_context():
        attempt = QuizAttempt.query.filter_by(user_id=uid).one()
        assert attempt.is_evaluated is True
        assert attempt.score == 50
