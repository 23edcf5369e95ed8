from flask import Blueprint, request
import structlog

from agroloop.api import clean_text, get_services, json_body, success_response
from agroloop.errors import ValidationError
from agroloop.services.ledger import ACTIVITY_TYPES
from agroloop.services.waste import WASTE_TYPES, estimate_credits, validate_quantity
from agroloop.utils import track_request_time

logger = structlog.get_logger()
activities_bp = Blueprint('activities', __name__, url_prefix='/api')

EXTRA_FIELDS = {
    'severity': 'severity',
    'verificationCode': 'verification_code',
    'wasteType': 'waste_type',
    'location': 'location',
}


@activities_bp.route("/activities", methods=["GET"])
def list_activities():
    ledger = get_services().ledger()
    activity_type = request.args.get("type")
    if activity_type and activity_type not in ACTIVITY_TYPES:
        raise ValidationError('type', f"type must be one of {', '.join(ACTIVITY_TYPES)}")
    activities = ledger.by_type(activity_type) if activity_type else ledger.activities
    return success_response(
        activities=[a.to_dict() for a in activities],
        ecoCredits=ledger.eco_credits,
        wasteLogged=ledger.waste_logged,
    )


@activities_bp.route("/activities", methods=["POST"])
@track_request_time
def add_activity():
    ledger = get_services().ledger()
    data = json_body()
    fields = {attr: clean_text(data.get(key), key, required=False) for key, attr in EXTRA_FIELDS.items()}
    if data.get("quantity") is not None:
        fields["quantity"] = validate_quantity(data["quantity"])
    activity = ledger.append(
        data.get("type"),
        clean_text(data.get("title"), "title"),
        credits=data.get("credits"),
        **{k: v for k, v in fields.items() if v is not None},
    )
    return success_response(201, activity=activity.to_dict(), ecoCredits=ledger.eco_credits, wasteLogged=ledger.waste_logged)


@activities_bp.route("/activities", methods=["DELETE"])
def clear_activities():
    get_services().ledger().clear()
    return success_response()


@activities_bp.route("/activities/summary", methods=["GET"])
def summary():
    return success_response(summary=get_services().ledger().summary().to_dict())


@activities_bp.route("/waste-types", methods=["GET"])
def waste_types():
    return success_response(wasteTypes=[
        {"id": key, "label": value["label"], "creditsPerKg": value["credits"]} for key, value in WASTE_TYPES.items()
    ])


@activities_bp.route("/waste-logs", methods=["POST"])
@track_request_time
def log_waste():
    services = get_services()
    ledger = services.ledger()
    data = json_body()
    code = data.get("verificationCode")
    if isinstance(code, int) and not isinstance(code, bool):
        code = str(code)
    activity = services.waste.log_waste(
        ledger,
        clean_text(data.get("wasteType"), "wasteType"),
        data.get("quantity"),
        clean_text(data.get("location"), "location"),
        clean_text(code, "verificationCode"),
    )
    return success_response(201, activity=activity.to_dict(), ecoCredits=ledger.eco_credits, wasteLogged=ledger.waste_logged)


@activities_bp.route("/waste-logs/estimate", methods=["GET"])
def estimate():
    quantity = validate_quantity(request.args.get("quantity", type=float))
    return success_response(credits=estimate_credits(request.args.get("wasteType"), quantity))


@activities_bp.route("/rewards", methods=["GET"])
def list_rewards():
    rewards = get_services().rewards.list_rewards(request.args.get("category"))
    return success_response(rewards=[r.to_dict() for r in rewards])


@activities_bp.route("/rewards/<reward_id>/redeem", methods=["POST"])
@track_request_time
def redeem_reward(reward_id):
    services = get_services()
    ledger = services.ledger()
    activity = services.rewards.redeem(ledger, reward_id)
    return success_response(activity=activity.to_dict(), ecoCredits=ledger.eco_credits)
