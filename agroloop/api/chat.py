from flask import Blueprint
import structlog

from agroloop.api import clean_text, get_services, json_body, success_response
from agroloop.errors import ValidationError
from agroloop.extensions import limiter
from agroloop.utils import track_request_time

logger = structlog.get_logger()
chat_bp = Blueprint('chat', __name__, url_prefix='/api/chat')

MAX_MESSAGE_LENGTH = 500


@chat_bp.route("", methods=["POST"])
@limiter.limit("30 per minute")
@track_request_time
def chat():
    message = clean_text(json_body().get("message"), "message")
    if len(message) > MAX_MESSAGE_LENGTH:
        raise ValidationError('message', f"message must be at most {MAX_MESSAGE_LENGTH} characters")

    reply = get_services().chat_advisor().ask(message)
    logger.info("Chat response generated", message_length=len(message),
                response_time_ms=reply.processing_time, outcome=reply.outcome.kind)
    return success_response(response=reply.to_dict())


@chat_bp.route("/history", methods=["GET"])
def history():
    services = get_services()
    services.require_user()
    messages = services.chat_advisor().history
    return success_response(messages=messages)


@chat_bp.route("/history", methods=["DELETE"])
def clear_history():
    services = get_services()
    services.require_user()
    services.chat_advisor().clear()
    return success_response()
