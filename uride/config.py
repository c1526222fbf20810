import os
from pathlib import Path


class Config:
    """Base configuration - shared across all environments"""

    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False

    BASE_DIR = os.path.dirname(os.path.abspath(__file__))
    LOGS_DIR = os.environ.get('URIDE_LOGS_DIR', os.path.join(BASE_DIR, 'logs'))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Fares and shift times are shown to riders and drivers in local time
    DISPLAY_TIMEZONE = os.environ.get('DISPLAY_TIMEZONE', 'Asia/Kolkata')

    # Rate limiting
    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')
    RATELIMIT_DEFAULTS = ["1000 per day", "500 per hour"]

    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            'CORS_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000,http://localhost:8080'
        ).split(',')
        if origin.strip()
    ]

    # Injectable source of "now"; None means the system clock
    CLOCK = None

    STORAGE_PATH = os.environ.get(
        'URIDE_STORAGE_PATH',
        str(Path(__file__).resolve().parents[1] / "uride-storage" / "database"))
    DB_PATH = os.path.join(STORAGE_PATH, 'uride.db')


class DevConfig(Config):
    """Development configuration"""
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')
    FLASK_HOST = '0.0.0.0'
    FLASK_PORT = 5000
    SQLALCHEMY_DATABASE_URI = os.environ.get('SQLALCHEMY_DATABASE_URI', f"sqlite:///{Config.DB_PATH}")


class TestConfig(Config):
    """Test configuration - in-memory database, no rate limits"""
    TESTING = True
    DEBUG = False
    RATELIMIT_ENABLED = False
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    FLASK_HOST = '::'
    FLASK_PORT = 5000
    # Production database - MUST be set via environment
    SQLALCHEMY_DATABASE_URI = os.environ.get('SQLALCHEMY_DATABASE_URI', f"sqlite:///{Config.DB_PATH}")


CONFIGS = {
    'development': DevConfig,
    'testing': TestConfig,
    'production': ProductionConfig,
}


def get_config(env_name=None):
    """Resolve the config class from URIDE_ENV (defaults to development)."""
    env_name = (env_name or os.environ.get('URIDE_ENV', 'development')).lower()
    return CONFIGS.get(env_name, DevConfig)
