from flask import Blueprint, current_app, jsonify, send_from_directory

from thinkquiz.services.health_service import health_report
from thinkquiz.services.stream_service import active_stream

public_bp = Blueprint("public", __name__)


@public_bp.route("/api/streaming/active")
def streaming_active():
    return jsonify(active_stream())


@public_bp.route("/api/health")
def health():
    report, status = health_report()
    return jsonify(report), status


@public_bp.route("/uploads/<path:filename>")
def uploaded_file(filename):
    # send_from_directory rejects paths escaping the uploads dir
    return send_from_directory(current_app.config["UPLOADS_DIR"], filename)
