from .stream_events import register_stream_events

_registered = False

def register_sockets(socketio):
    # Called before socketio.init_app: handlers are kept on the singleton and
    # attached to the server of every app created afterwards
    global _registered
    if _registered:
        return
    register_stream_events(socketio)
    _registered = True
