import time
from datetime import datetime, timezone
from functools import wraps

import structlog
from flask import request

logger = structlog.get_logger()


def utc_now():
    return datetime.now(timezone.utc)


def to_iso(value):
    return value.isoformat() if value else None


def from_iso(value):
    if not value:
        return None
    # Records written by the mobile app end in "Z"
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def elapsed_ms(start_time):
    return int((time.time() - start_time) * 1000)


def track_request_time(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        start_time = time.time()
        try:
            result = f(*args, **kwargs)
            logger.info("Request completed", endpoint=request.endpoint, method=request.method, duration_ms=elapsed_ms(start_time))
            return result
        except Exception as e:
            logger.error("Request failed", endpoint=request.endpoint, method=request.method, duration_ms=elapsed_ms(start_time), error=str(e))
            raise
    return decorated_function


def track_async_request_time(f):
    @wraps(f)
    async def decorated_function(*args, **kwargs):
        start_time = time.time()
        try:
            result = await f(*args, **kwargs)
            logger.info("Request completed", endpoint=request.endpoint, method=request.method, duration_ms=elapsed_ms(start_time))
            return result
        except Exception as e:
            logger.error("Request failed", endpoint=request.endpoint, method=request.method, duration_ms=elapsed_ms(start_time), error=str(e))
            raise
    return decorated_function
