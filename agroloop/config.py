import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///agroloop.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CACHE_TYPE = os.environ.get('CACHE_TYPE') or 'SimpleCache'
    CACHE_REDIS_URL = os.environ.get('REDIS_URL') or 'redis://localhost:6379/1'
    CACHE_DEFAULT_TIMEOUT = 3600
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB max file size
    ALLOWED_EXTENSIONS = {'png', 'jpg', 'jpeg', 'webp'}
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', 'http://localhost:8081').split(',')

    # API Keys (seed the persisted AI config on first start)
    PLANTNET_KEY = os.environ.get("PLANTNET_KEY")
    OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")
    OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-3.5-turbo")
    VENDOR_TIMEOUT = int(os.environ.get("VENDOR_TIMEOUT", "25"))

    # Accept any code in 1-100 without an issued record. Demo builds only.
    VERIFICATION_SIMULATION_MODE = os.environ.get('VERIFICATION_SIMULATION_MODE', 'false').lower() == 'true'

    # Rate limiting
    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI') or 'memory://'
    RATELIMIT_DEFAULT = "1000 per hour"


class ProductionConfig(Config):
    DEBUG = False
    TESTING = False
    CACHE_TYPE = 'RedisCache'
    RATELIMIT_STORAGE_URI = os.environ.get('REDIS_URL') or 'memory://'


class DevelopmentConfig(Config):
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    DEBUG = True
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    CACHE_TYPE = 'SimpleCache'
    RATELIMIT_ENABLED = False
    PLANTNET_KEY = None
    OPENAI_API_KEY = None
    VERIFICATION_SIMULATION_MODE = False


config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig,
}


def get_config():
    return config.get(os.environ.get('FLASK_ENV', 'development'), config['default'])
