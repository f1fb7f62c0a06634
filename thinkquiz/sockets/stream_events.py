import logging

from flask import request
from flask_socketio import emit, join_room, leave_room

from thinkquiz.services.stream_service import STREAM_ROOM, active_stream

logger = logging.getLogger(__name__)


def register_stream_events(socketio):

    # ---------------------------
    # VIEWER JOIN / LEAVE
    # ---------------------------
    @socketio.on("viewer_join")
    def handle_viewer_join(data=None):
        join_room(STREAM_ROOM)
        logger.debug("Viewer %s joined stream room", request.sid)
        emit("stream_status", active_stream(), to=request.sid)

    @socketio.on("viewer_leave")
    def handle_viewer_leave(data=None):
        leave_room(STREAM_ROOM)
        logger.debug("Viewer %s left stream room", request.sid)
        emit("viewer_left", {"room": STREAM_ROOM}, to=request.sid)
