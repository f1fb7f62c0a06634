from .admin_routes import admin_bp
from .auth_routes import auth_bp
from .leaderboard_routes import leaderboard_bp
from .payment_routes import payment_bp
from .prize_routes import prize_bp
from .profile_routes import profile_bp
from .public_routes import public_bp
from .quiz_routes import quiz_bp
from .wallet_routes import wallet_bp

def register_routes(app):
    app.register_blueprint(auth_bp)
    app.register_blueprint(quiz_bp)
    app.register_blueprint(payment_bp)
    app.register_blueprint(wallet_bp)
    app.register_blueprint(prize_bp)
    app.register_blueprint(profile_bp)
    app.register_blueprint(leaderboard_bp)
    app.register_blueprint(public_bp)
    app.register_blueprint(admin_bp, url_prefix="/api/admin")
