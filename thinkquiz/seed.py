import os

from extensions import db
from thinkquiz.models import Prize, Question, Quiz, User
from thinkquiz.services.prize_service import seed_default_prizes

DEMO_QUESTIONS = [
    ("Which planet is known as the Red Planet?", ["Venus", "Mars", "Jupiter", "Mercury"]),
    ("What is the capital of Pakistan?", ["Karachi", "Lahore", "Islamabad", "Peshawar"]),
    ("How many players are on a cricket team?", ["9", "10", "11", "12"]),
    ("What gas do plants absorb from the air?", ["Oxygen", "Carbon dioxide", "Nitrogen", "Helium"]),
    ("Who wrote 'Bang-e-Dra'?", ["Allama Iqbal", "Faiz Ahmed Faiz", "Ghalib", "Ahmad Faraz"]),
]


def seed_demo_data():
    summary = {"quizzes": 0, "prizes": 0, "users": 0}

    quiz = Quiz.query.filter_by(title="Daily General Knowledge").first()
    if quiz is None:
        quiz = Quiz(
            title="Daily General Knowledge",
            description="Five quick questions. Points go to the top scorers after evaluation.",
            duration=10,
            passing_score=60,
            time_limit=300,
            status="active",
        )
        db.session.add(quiz)
        db.session.flush()
        for position, (text, options) in enumerate(DEMO_QUESTIONS, start=1):
            q = Question(quiz_id=quiz.id, text=text, position=position, status="active")
            q.set_options(options)
            db.session.add(q)
        summary["quizzes"] += 1

    if Prize.query.count() == 0:
        db.session.commit()
        seed_default_prizes()
        summary["prizes"] = Prize.query.count()

    email = os.getenv("DEMO_USER_EMAIL", "player@thinkquiz.local")
    if User.query.filter_by(email=email).first() is None:
        user = User(name="Demo Player", email=email, wallet_balance=10.0)
        user.set_password(os.getenv("DEMO_USER_PASSWORD", "Demo@12345"))
        db.session.add(user)
        summary["users"] += 1

    db.session.commit()
    return summary
