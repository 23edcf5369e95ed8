from flask import Blueprint
import requests
import structlog

from agroloop.api import get_services, json_body, success_response
from agroloop.errors import ValidationError
from agroloop.services.advisor import ConversationalAdvisoryClient
from agroloop.services.ai_config import AIConfig
from agroloop.services.disease import API_CONFIG as DISEASE_API_CONFIG
from agroloop.utils import track_async_request_time

logger = structlog.get_logger()
settings_bp = Blueprint('settings', __name__, url_prefix='/api')

VENDOR_ENDPOINTS = {
    "plantnet": {"name": "PlantNet API", "url": DISEASE_API_CONFIG["PLANTNET"]["url"], "key": "plantnet_api_key"},
    "openai": {"name": "OpenAI API", "url": "https://api.openai.com/v1/models", "key": "openai_api_key"},
}


@settings_bp.route("/ai-config", methods=["GET"])
def get_ai_config():
    repository = get_services().ai_config
    config = repository.load()
    return success_response(config=config.to_dict(redact=True), models=repository.supported_models())


@settings_bp.route("/ai-config", methods=["PUT"])
def save_ai_config():
    repository = get_services().ai_config
    data = json_body()
    current = repository.load().to_dict()
    for key in ('plantnetApiKey', 'openaiApiKey'):
        # Redacted values echoed back from GET keep the stored key
        if data.get(key) == '***':
            data[key] = current.get(key)
    config = repository.save(AIConfig.from_dict(data))
    return success_response(config=config.to_dict(redact=True))


@settings_bp.route("/ai-config/real-time", methods=["POST"])
def set_real_time():
    enabled = json_body().get("enabled")
    if not isinstance(enabled, bool):
        raise ValidationError('enabled', "enabled must be a boolean")
    config = get_services().ai_config.set_real_time(enabled)
    return success_response(config=config.to_dict(redact=True))


@settings_bp.route("/ai-config/test", methods=["POST"])
@track_async_request_time
async def test_connections():
    services = get_services()
    disease_ok = await services.disease_client().test_connection()
    # A throwaway advisor keeps the probe out of the user's conversation
    advisor = ConversationalAdvisoryClient(services.ai_config.load(), client_factory=services.advisor.client_factory,
                                           model=services.advisor.model, timeout=services.advisor.timeout)
    return success_response(diseaseDetection=disease_ok, aiExpert=advisor.test_connection())


@settings_bp.route("/check-status", methods=["GET"])
def check_status():
    config = get_services().ai_config.load()
    results = []
    for vendor_id, vendor in VENDOR_ENDPOINTS.items():
        configured = bool(getattr(config, vendor["key"]))
        try:
            # Any HTTP answer, even 401/405, means the host is reachable
            requests.get(vendor["url"], timeout=5)
            reachable = True
        except requests.RequestException as e:
            reachable = False
            logger.warning("API status check failed", api=vendor["name"], error=str(e))
        results.append({
            "id": f"{vendor_id}-status",
            "name": vendor["name"],
            "configured": configured,
            "reachable": reachable,
            "status": "Active" if configured and reachable else "Offline",
        })
    return success_response(apis=results)
