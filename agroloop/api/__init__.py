import bleach
from flask import current_app, jsonify, request

from agroloop.errors import ValidationError


def get_services():
    return current_app.extensions['agroloop']


def json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('body', "Request body must be a JSON object")
    return data


def clean_text(value, field, required=True):
    if value is None or value == '':
        if required:
            raise ValidationError(field, f"{field} is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(field, f"{field} must be a string")
    cleaned = bleach.clean(value, tags=[], strip=True).strip()
    if required and not cleaned:
        raise ValidationError(field, f"{field} is required")
    return cleaned


def success_response(status_code=200, **data):
    return jsonify({"success": True, **data}), status_code
