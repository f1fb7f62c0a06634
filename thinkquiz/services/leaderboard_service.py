import threading
import time
from collections import defaultdict
from datetime import timedelta

from sqlalchemy import func

from extensions import db
from thinkquiz.models import Answer, PrizeRedemption, QuizAttempt, User, Winning
from thinkquiz.services.utils import isoformat, round_half_up, utcnow

TIMEFRAME_DAYS = {"weekly": 7, "monthly": 30, "allTime": None}
WIN_STATUSES = ("pending", "approved", "fulfilled")
SWEEP_THRESHOLD = 100


class ExpiringCache:
    """Plain map whose entries expire after ``ttl`` seconds.

    Expired entries are dropped when read, and swept in bulk once the map grows
    past ``sweep_threshold`` entries.
    """

    def __init__(self, ttl, sweep_threshold=SWEEP_THRESHOLD):
        self.ttl = ttl
        self.sweep_threshold = sweep_threshold
        self._data = {}
        self._lock = threading.Lock()

    def get(self, key):
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if time.monotonic() - stored_at >= self.ttl:
                del self._data[key]
                return None
            return value

    def set(self, key, value):
        with self._lock:
            now = time.monotonic()
            self._data[key] = (now, value)
            if len(self._data) > self.sweep_threshold:
                for k in [k for k, (ts, _) in self._data.items() if now - ts >= self.ttl]:
                    del self._data[k]

    def clear(self):
        with self._lock:
            self._data.clear()

    def __len__(self):
        return len(self._data)


leaderboard_cache = ExpiringCache(ttl=300)


def invalidate_leaderboard():
    leaderboard_cache.clear()


def _window_start(timeframe):
    days = TIMEFRAME_DAYS.get(timeframe)
    if days is None:
        return None
    return utcnow() - timedelta(days=days)


def build_leaderboard(limit=10, timeframe="allTime", quiz_id=None):
    since = _window_start(timeframe)

    attempts_q = db.session.query(QuizAttempt.user_id, QuizAttempt.score).filter(
        QuizAttempt.is_completed.is_(True)
    )
    if since is not None:
        attempts_q = attempts_q.filter(QuizAttempt.created_at >= since)
    if quiz_id is not None:
        attempts_q = attempts_q.filter(QuizAttempt.quiz_id == quiz_id)

    stats = defaultdict(lambda: {"quizzesTaken": 0, "totalScore": 0})
    for user_id, score in attempts_q:
        stats[user_id]["quizzesTaken"] += 1
        stats[user_id]["totalScore"] += score or 0

    if not stats:
        return []
    user_ids = list(stats)

    correct_q = (
        db.session.query(Answer.user_id, func.count(Answer.id))
        .filter(Answer.user_id.in_(user_ids), Answer.is_correct.is_(True))
    )
    if since is not None:
        correct_q = correct_q.filter(Answer.created_at >= since)
    if quiz_id is not None:
        correct_q = correct_q.join(QuizAttempt, Answer.quiz_attempt_id == QuizAttempt.id) \
            .filter(QuizAttempt.quiz_id == quiz_id)
    correct = dict(correct_q.group_by(Answer.user_id).all())

    winnings_q = db.session.query(Winning.user_id, func.count(Winning.id)).filter(Winning.user_id.in_(user_ids))
    if since is not None:
        winnings_q = winnings_q.filter(Winning.created_at >= since)
    winnings = dict(winnings_q.group_by(Winning.user_id).all())

    redemptions = dict(
        db.session.query(PrizeRedemption.user_id, func.count(PrizeRedemption.id))
        .filter(PrizeRedemption.user_id.in_(user_ids), PrizeRedemption.status.in_(WIN_STATUSES))
        .group_by(PrizeRedemption.user_id)
        .all()
    )
    names = dict(db.session.query(User.id, User.name).filter(User.id.in_(user_ids)).all())

    rows = []
    for user_id, s in stats.items():
        taken = s["quizzesTaken"]
        rows.append({
            "id": user_id,
            "userName": names.get(user_id) or "",
            "quizzesTaken": taken,
            "correctAnswers": correct.get(user_id, 0),
            "totalScore": s["totalScore"],
            "averageScore": round_half_up(s["totalScore"] / taken) if taken else 0,
            "winCount": winnings.get(user_id, 0) + redemptions.get(user_id, 0),
        })

    rows.sort(key=lambda r: (-r["totalScore"], -r["averageScore"], -r["quizzesTaken"]))
    ranked = rows[:limit]
    for index, row in enumerate(ranked, start=1):
        row["rank"] = index
    return ranked


def get_leaderboard(limit=10, timeframe="allTime", quiz_id=None):
    key = f"leaderboard_{limit}_{timeframe}_{quiz_id or 'all'}"
    cached = leaderboard_cache.get(key)
    if cached is not None:
        return cached

    ranked = build_leaderboard(limit, timeframe, quiz_id)
    data = {
        "leaderboard": ranked,
        "users": [
            {
                "id": r["id"],
                "username": r["userName"],
                "totalScore": r["totalScore"],
                "quizCount": r["quizzesTaken"],
                "averageScore": r["averageScore"],
            }
            for r in ranked
        ],
        "total": len(ranked),
        "timeframe": timeframe,
        "lastUpdated": isoformat(utcnow()),
    }
    leaderboard_cache.set(key, data)
    return data
