from flask import Blueprint
import structlog

from agroloop.api import clean_text, get_services, json_body, success_response
from agroloop.extensions import limiter
from agroloop.utils import track_request_time

logger = structlog.get_logger()
auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


def _credentials():
    data = json_body()
    email = clean_text(data.get("email"), "email")
    password = data.get("password")
    if not isinstance(password, str):
        password = None
    return email, password


@auth_bp.route("/signin", methods=["POST"])
@limiter.limit("10 per minute")
@track_request_time
def sign_in():
    email, password = _credentials()
    user = get_services().sign_in(email, password)
    return success_response(user=user.to_dict())


@auth_bp.route("/signup", methods=["POST"])
@limiter.limit("5 per minute")
@track_request_time
def sign_up():
    email, password = _credentials()
    user = get_services().sign_up(email, password)
    return success_response(201, user=user.to_dict())


@auth_bp.route("/signout", methods=["POST"])
def sign_out():
    get_services().sign_out()
    return success_response()


@auth_bp.route("/account", methods=["DELETE"])
@track_request_time
def delete_account():
    services = get_services()
    services.require_user()
    password = json_body().get("password")
    services.delete_account(password if isinstance(password, str) else None)
    return success_response()


@auth_bp.route("/me", methods=["GET"])
def me():
    return success_response(user=get_services().require_user().to_dict())
