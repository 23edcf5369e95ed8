from flask import Flask, jsonify
from flask_cors import CORS
from flask_limiter.util import get_remote_address
from sqlalchemy import text
import structlog

from agroloop.api.activities import activities_bp
from agroloop.api.auth import auth_bp
from agroloop.api.chat import chat_bp
from agroloop.api.disease import disease_bp
from agroloop.api.settings import settings_bp
from agroloop.api.verification import verification_bp
from agroloop.config import get_config
from agroloop.errors import AgroLoopError, ValidationError
from agroloop.extensions import cache, limiter
from agroloop.models import db, migrate
from agroloop.services import AIConfig, Services
from agroloop.storage import SQLAlchemyStore

# Enhanced logging configuration
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)
logger = structlog.get_logger()


def create_app(config_class=None, store=None, **service_options):
    """Build the app. ``store`` and ``service_options`` override what
    :class:`~agroloop.services.Services` would otherwise get from config."""
    app = Flask(__name__)
    app.config.from_object(config_class or get_config())

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    cache.init_app(app)
    limiter.init_app(app)
    CORS(app, origins=app.config['CORS_ORIGINS'])

    # Register blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(verification_bp)
    app.register_blueprint(activities_bp)
    app.register_blueprint(disease_bp)
    app.register_blueprint(chat_bp)
    app.register_blueprint(settings_bp)

    with app.app_context():
        db.create_all()
        logger.info("Database tables initialized")

    service_options.setdefault('default_ai_config', AIConfig(
        plantnet_api_key=app.config.get('PLANTNET_KEY'),
        openai_api_key=app.config.get('OPENAI_API_KEY'),
    ))
    service_options.setdefault('simulation_mode', app.config['VERIFICATION_SIMULATION_MODE'])
    service_options.setdefault('openai_model', app.config['OPENAI_MODEL'])
    service_options.setdefault('vendor_timeout', app.config['VENDOR_TIMEOUT'])
    app.extensions['agroloop'] = Services(store if store is not None else SQLAlchemyStore(), **service_options)

    # Error handlers
    @app.errorhandler(AgroLoopError)
    def agroloop_error(e):
        body = {"success": False, "error": str(e)}
        if isinstance(e, ValidationError):
            body["field"] = e.field
        if e.status_code >= 500:
            logger.error("Service error", error=str(e))
        return jsonify(body), e.status_code

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"success": False, "error": "Not found"}), 404

    @app.errorhandler(429)
    def ratelimit_handler(e):
        logger.warning("Rate limit exceeded", remote_addr=get_remote_address())
        return jsonify({"success": False, "error": "Rate limit exceeded. Please try again later."}), 429

    @app.errorhandler(413)
    def too_large(e):
        return jsonify({"success": False, "error": "File too large. Maximum size is 16MB."}), 413

    @app.errorhandler(500)
    def internal_error(e):
        logger.error("Internal server error", error=str(e))
        return jsonify({"success": False, "error": "Internal server error occurred."}), 500

    # Health check
    @app.route("/health")
    @limiter.exempt
    def health_check():
        try:
            db.session.execute(text('SELECT 1'))
            return jsonify({"status": "healthy", "database": "connected"})
        except Exception as e:
            logger.error("Health check failed", error=str(e))
            return jsonify({"status": "unhealthy", "error": str(e)}), 503

    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=5000)
