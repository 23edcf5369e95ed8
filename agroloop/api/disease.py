import base64
import binascii
import io

from flask import Blueprint, current_app, request
from PIL import Image
from werkzeug.utils import secure_filename
import structlog

from agroloop.api import get_services, success_response
from agroloop.errors import ValidationError
from agroloop.extensions import cache, limiter
from agroloop.services.ledger import DISEASE_DETECTION
from agroloop.services.disease import image_hash
from agroloop.utils import track_async_request_time

logger = structlog.get_logger()
disease_bp = Blueprint('disease', __name__, url_prefix='/api')


def validate_image(file):
    if not file or not secure_filename(file.filename or ''):
        return False, "Invalid filename"
    extension = file.filename.rsplit('.', 1)[-1].lower() if '.' in file.filename else ''
    if extension not in current_app.config['ALLOWED_EXTENSIONS']:
        return False, "Invalid file type"
    try:
        Image.open(file.stream).verify()
        file.stream.seek(0)
        return True, "Valid image"
    except Exception as e:
        return False, f"Invalid image: {str(e)}"


def read_image():
    if 'image' in request.files:
        file = request.files['image']
        is_valid, message = validate_image(file)
        if not is_valid:
            raise ValidationError('image', message)
        return file.read()

    data = request.get_json(silent=True) or {}
    image_uri = data.get("image")
    if not isinstance(image_uri, str) or not image_uri:
        raise ValidationError('image', "No image provided")
    try:
        image_data = base64.b64decode(image_uri.partition(',')[2] if image_uri.startswith('data:') else image_uri, validate=True)
        Image.open(io.BytesIO(image_data)).verify()
    except (binascii.Error, ValueError, OSError, SyntaxError) as e:
        raise ValidationError('image', f"Invalid image: {str(e)}")
    return image_data


def record_scan(ledger, result):
    if result["detected"]:
        ledger.append(DISEASE_DETECTION, f"Disease detected: {result['diseaseName']}", severity=result["severity"])
    else:
        ledger.append(DISEASE_DETECTION, "Crop health scan: no disease detected")


@disease_bp.route("/detect-disease", methods=["POST"])
@limiter.limit("20 per minute")
@track_async_request_time
async def detect_disease():
    services = get_services()
    ledger = services.ledger()
    image_data = read_image()

    cache_key = f"disease_analysis:hash:{image_hash(image_data)}"
    cached_result = cache.get(cache_key)
    if cached_result:
        logger.info("Cache hit for disease detection", cache_key=cache_key)
        record_scan(ledger, cached_result)
        return success_response(result=cached_result, cached=True)

    result = await services.disease_client().classify(image_data)
    result_dict = result.to_dict()
    record_scan(ledger, result_dict)
    # Local answers are random guesses; only vendor answers are worth reusing
    if result.served_by_vendor:
        cache.set(cache_key, result_dict, timeout=3600)
    return success_response(result=result_dict)
