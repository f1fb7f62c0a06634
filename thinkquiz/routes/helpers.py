from flask import request, session

from thinkquiz.services.errors import ValidationFailed
from thinkquiz.services.schemas import parse_payload
from thinkquiz.services.security_events import record_security_event


def load_json(model):
    """Validate the JSON body; failures are recorded as INVALID_INPUT and re-raised."""
    return _load(model, request.get_json(silent=True))


def load_args(model):
    args = {key: value for key, value in request.args.items() if value != ""}
    return _load(model, args)


def _load(model, data):
    try:
        return parse_payload(model, data)
    except ValidationFailed as exc:
        record_security_event(
            "INVALID_INPUT",
            user_id=session.get("user_id"),
            errors=exc.payload.get("details", []),
        )
        raise
