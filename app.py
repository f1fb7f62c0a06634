import logging
import os
import time

import click
from flask import Flask, g, jsonify, request, session
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from config import Config
from extensions import db, socketio

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


def configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("thinkquiz").setLevel(level)
    app.logger.setLevel(level)


def register_error_handlers(app):
    from thinkquiz.services.errors import ServiceError
    from thinkquiz.services.security_events import record_security_event

    @app.errorhandler(ServiceError)
    def handle_service_error(exc):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(404)
    def handle_not_found(exc):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(exc):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(413)
    def handle_too_large(exc):
        record_security_event(
            "FILE_SIZE_EXCEEDED",
            user_id=session.get("user_id"),
            contentLength=request.content_length,
            limit=app.config.get("MAX_CONTENT_LENGTH"),
        )
        limit_mb = app.config.get("MAX_PICTURE_BYTES", 2 * 1024 * 1024) // (1024 * 1024)
        return jsonify({"error": f"File size too large. Maximum size is {limit_mb}MB."}), 413

    @app.errorhandler(Exception)
    def handle_unexpected(exc):
        if isinstance(exc, HTTPException):
            return jsonify({"error": exc.description}), exc.code

        db.session.rollback()
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        try:
            record_security_event("SYSTEM_ERROR", error=str(exc), errorType=type(exc).__name__)
        except SQLAlchemyError:
            db.session.rollback()
            logger.error("Could not persist SYSTEM_ERROR event")
        return jsonify({"error": "Internal server error"}), 500


def register_request_hooks(app):
    from thinkquiz.services.security_events import record_perf_metric

    @app.before_request
    def start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def finish_request(response):
        started = g.pop("request_started", None)
        if started is not None and request.endpoint:
            record_perf_metric(f"request:{request.endpoint}", (time.perf_counter() - started) * 1000)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


def register_commands(app):

    @app.cli.command("init-db")
    def init_db():
        """Create all tables."""
        db.create_all()
        click.echo("Database initialised.")

    @app.cli.command("seed")
    def seed():
        """Create a demo quiz, default prizes and a demo player."""
        from thinkquiz.seed import seed_demo_data
        summary = seed_demo_data()
        click.echo(f"Seeded: {summary}")

    @app.cli.command("cleanup-payments")
    def cleanup_payments():
        """Mark expired daily payments."""
        from thinkquiz.services.payment_service import cleanup_expired_payments
        click.echo(f"Expired {cleanup_expired_payments()} daily payments.")

    @app.cli.command("cleanup-rate-limits")
    def cleanup_rate_limits():
        """Drop rate-limit hits outside every window."""
        from thinkquiz.services.rate_limiter import cleanup_rate_limit_hits
        click.echo(f"Removed {cleanup_rate_limit_hits()} rate-limit hits.")


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    configure_logging(app)

    os.makedirs(app.config["UPLOADS_DIR"], exist_ok=True)

    from thinkquiz import models  # noqa: F401  registers tables
    from thinkquiz.routes import register_routes
    from thinkquiz.sockets import register_sockets
    from thinkquiz.services.leaderboard_service import leaderboard_cache

    # Handlers must exist before init_app so every new server replays them
    register_sockets(socketio)
    db.init_app(app)
    socketio.init_app(app, cors_allowed_origins="*", async_mode="threading")

    leaderboard_cache.ttl = app.config.get("LEADERBOARD_CACHE_SECONDS", 300)

    register_routes(app)
    register_error_handlers(app)
    register_request_hooks(app)
    register_commands(app)

    with app.app_context():
        db.create_all()

    logger.info("ThinkQuiz app created (db=%s)", app.config["SQLALCHEMY_DATABASE_URI"].split("://")[0])
    return app


if __name__ == "__main__":
    app = create_app()
    port = int(os.getenv("PORT", 5000))
    print(f"THINKQUIZ READY ON 0.0.0.0:{port}")
    socketio.run(app, host="0.0.0.0", port=port, debug=os.getenv("FLASK_DEBUG") == "1",
                 allow_unsafe_werkzeug=True)
