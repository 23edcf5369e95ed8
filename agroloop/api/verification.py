from flask import Blueprint, jsonify, request
import structlog

from agroloop.api import clean_text, get_services, json_body, success_response
from agroloop.services.verification import VerificationRequest
from agroloop.utils import track_request_time

logger = structlog.get_logger()
verification_bp = Blueprint('verification', __name__, url_prefix='/api/verification')


@verification_bp.route("/codes", methods=["POST"])
@track_request_time
def issue_code():
    data = json_body()
    verification_request = VerificationRequest(
        waste_type=clean_text(data.get("wasteType"), "wasteType", required=False),
        quantity=data.get("quantity"),
        location=clean_text(data.get("location"), "location", required=False),
        farmer_id=clean_text(data.get("farmerId"), "farmerId", required=False),
    )
    code = get_services().verification.issue(verification_request)
    return success_response(201, code=code.to_dict())


@verification_bp.route("/codes", methods=["GET"])
def list_codes():
    services = get_services()
    farmer_id = request.args.get("farmerId")
    if not farmer_id:
        farmer_id = services.require_user().uid
    codes = services.verification.codes_for(farmer_id)
    return success_response(codes=[vc.to_dict() for vc in codes])


@verification_bp.route("/redeem", methods=["POST"])
@track_request_time
def redeem_code():
    services = get_services()
    user = services.require_user()
    code = json_body().get("code")
    if isinstance(code, int) and not isinstance(code, bool):
        code = str(code)
    code = clean_text(code, "code")
    redeemed = services.verification.redeem(code, user.uid)
    if redeemed is None:
        return jsonify({"success": False, "error": "Verification code not found"}), 404
    return success_response(code=redeemed.to_dict())


@verification_bp.route("/stats", methods=["GET"])
def stats():
    services = get_services()
    user = services.require_user()
    return success_response(stats=services.verification.stats(user.uid).to_dict())


@verification_bp.route("/cleanup", methods=["POST"])
def cleanup():
    removed = get_services().verification.cleanup_expired()
    return success_response(removed=removed)
