import logging
import os
from dotenv import load_dotenv
from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.errors import RateLimitExceeded
from flask_limiter.util import get_remote_address

# Load environment variables from .env file
load_dotenv()

from uride.config import get_config
from uride.extensions import db

config_class = get_config()

# Logging setup
LOGS_DIR = config_class.LOGS_DIR
os.makedirs(LOGS_DIR, exist_ok=True)
logging.basicConfig(
    level=getattr(logging, str(config_class.LOG_LEVEL).upper(), logging.INFO),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    handlers=[
        logging.FileHandler(os.path.join(LOGS_DIR, 'app.log')),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

# Initialize app and extensions
app = Flask(__name__)
app.config.from_object(config_class)

if app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite:///') and ':memory:' not in app.config['SQLALCHEMY_DATABASE_URI']:
    os.makedirs(os.path.dirname(app.config['DB_PATH']), exist_ok=True)

db.init_app(app)

limiter = Limiter(
    key_func=get_remote_address,
    app=app,
    default_limits=app.config['RATELIMIT_DEFAULTS'],
    storage_uri=app.config['RATELIMIT_STORAGE_URI'],
)

CORS(app, supports_credentials=True, resources={r"/api/*": {"origins": app.config['CORS_ORIGINS']}})

logger.info("Database connected: %s", "sqlite" if "sqlite" in app.config.get("SQLALCHEMY_DATABASE_URI", "") else "non-sqlite")

# Models must be imported before create_all
from uride.models.driver import Driver  # noqa: E402,F401
from uride.models.vehicle import Vehicle  # noqa: E402,F401
from uride.models.shift import Shift  # noqa: E402,F401
from uride.models.ride import Ride  # noqa: E402,F401
from uride.models.admin_activity import AdminActivity  # noqa: E402,F401
from uride.models.penalty import DriverPenalty  # noqa: E402,F401
from uride.models.commission_settings import CommissionSettings  # noqa: E402,F401

from uride.api.driver import driver_bp  # noqa: E402
from uride.api.vehicle import vehicle_bp  # noqa: E402
from uride.api.ride import ride_bp  # noqa: E402
from uride.api.reports import reports_bp  # noqa: E402
from uride.api.settings import settings_bp  # noqa: E402

blueprints = [
    (driver_bp, '/api'),
    (vehicle_bp, '/api'),
    (ride_bp, '/api'),
    (reports_bp, '/api'),
    (settings_bp, '/api'),
]
for blueprint, prefix in blueprints:
    app.register_blueprint(blueprint, url_prefix=prefix)
    logger.debug(f"Registered blueprint: {blueprint.name} with prefix: {prefix}")

with app.app_context():
    db.create_all()


@app.route('/api/health')
def health():
    healthy = db.health_check()
    body = {
        'status': 'ok' if healthy else 'degraded',
        'database': db.get_dialect_info(),
    }
    return jsonify(body), 200 if healthy else 503


@app.errorhandler(404)
def not_found(error):
    logger.warning(f"404 error for path: {request.path}")
    return jsonify({'error': 'API endpoint not found', 'path': request.path}), 404


@app.errorhandler(405)
def method_not_allowed(error):
    return jsonify({'error': 'Method not allowed', 'path': request.path}), 405


@app.errorhandler(RateLimitExceeded)
def ratelimit_handler(e):
    logger.warning(f"Rate limit exceeded for {request.method} {request.url}")
    return jsonify({'error': 'Rate limit exceeded. Please try again later.'}), 429


if __name__ == '__main__':
    app.run(host=app.config.get('FLASK_HOST', '127.0.0.1'), port=app.config.get('FLASK_PORT', 5000),
            debug=app.config.get('DEBUG', False))
