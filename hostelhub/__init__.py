"""
Hostel Hub - Flask Backend

REST API for hostel life: canteen menu, cart and orders, mess menus and
meal ratings, maintenance requests, outpasses and announcements.
"""

import json
import logging
from datetime import datetime

import jwt
from flask import Flask, request
from flask_cors import CORS
from flask_pymongo import PyMongo
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError
from werkzeug.exceptions import HTTPException

from .auth import Authenticator
from .config import Config
from .errors import ApiError, Conflict, Unauthorized, ValidationFailed
from .events import EventPublisher
from .repositories import Repositories
from .routes import register_blueprints
from .schemas import error_details
from .tasks import register_commands
from .utils import json_response

__version__ = '1.0.0'

logger = logging.getLogger(__name__)

HTTP_CODES = {
    400: 'BAD_REQUEST',
    404: 'NOT_FOUND',
    405: 'METHOD_NOT_ALLOWED',
    415: 'UNSUPPORTED_MEDIA_TYPE',
}


def create_app(config=None, db=None, publisher=None):
    """Build the app.

    ``config`` is a ``Config`` or a mapping of overrides; ``db`` is any
    pymongo-compatible database (PyMongo is used when omitted);
    ``publisher`` receives real-time events.
    """
    settings = config if isinstance(config, Config) else Config(config)

    app = Flask(__name__)
    app.config.from_mapping(settings.as_dict())
    configure_logging(app)
    CORS(app, origins=app.config['CLIENT_URL'])

    if db is None:
        db = PyMongo(app).db

    repos = Repositories(db)
    repos.ensure_indexes()
    auth = Authenticator(repos.users, app.config['SECRET_KEY'], app.config['JWT_EXPIRE_HOURS'])
    publisher = publisher or EventPublisher()

    app.extensions['hostelhub'] = {
        'repos': repos,
        'auth': auth,
        'publisher': publisher,
    }

    register_request_logging(app)
    register_error_handlers(app)
    register_root_routes(app)
    register_blueprints(app, repos, auth, publisher)
    register_commands(app, repos)

    return app


def configure_logging(app):
    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
    logging.getLogger('hostelhub').setLevel(app.config['LOG_LEVEL'])


# ==================== REQUEST LOGGING MIDDLEWARE ====================

def register_request_logging(app):

    @app.before_request
    def log_request():
        """Log incoming requests"""
        logger.info('📥 %s %s', request.method, request.path)

        if request.args:
            logger.info('📋 Query Params: %s', dict(request.args))

        body = request.get_json(silent=True) if request.is_json else None
        if isinstance(body, dict):
            body_to_log = dict(body)
            if 'password' in body_to_log:
                body_to_log['password'] = '***hidden***'
            logger.debug('📤 Request Body: %s', json.dumps(body_to_log, default=str))


# ==================== ERROR HANDLERS ====================

def register_error_handlers(app):

    @app.errorhandler(ApiError)
    def api_error(e):
        if e.status_code >= 500:
            logger.error('❌ %s', e.message)
        else:
            logger.warning('⚠️ %s %s: %s', e.status_code, e.code, e.message)
        return json_response(e.to_dict(), e.status_code)

    @app.errorhandler(ValidationError)
    def schema_error(e):
        return api_error(ValidationFailed(details=error_details(e)))

    @app.errorhandler(DuplicateKeyError)
    def duplicate_key(e):
        return api_error(Conflict('Duplicate entry', details=[{'field': _duplicate_field(e), 'message': 'already exists'}]))

    @app.errorhandler(jwt.PyJWTError)
    def token_error(e):
        return api_error(Unauthorized())

    @app.errorhandler(HTTPException)
    def http_error(e):
        return json_response({
            'success': False,
            'message': 'Resource not found' if e.code == 404 else e.description,
            'code': HTTP_CODES.get(e.code, 'HTTP_ERROR')
        }, e.code)

    @app.errorhandler(Exception)
    def server_error(e):
        logger.exception('💥 Unhandled error on %s %s', request.method, request.path)
        return json_response({
            'success': False,
            'message': 'Internal server error',
            'code': 'INTERNAL_ERROR'
        }, 500)


def _duplicate_field(error):
    key = (error.details or {}).get('keyValue') or (error.details or {}).get('keyPattern')
    if key:
        return ','.join(key)
    return 'unknown'


# ==================== ROOT ROUTES ====================

def register_root_routes(app):

    @app.route('/')
    def root():
        """Root route"""
        return json_response({
            'success': True,
            'message': 'Welcome to Hostel Hub API',
            'version': __version__,
            'endpoints': {
                'auth': '/api/auth',
                'canteen': '/api/canteen',
                'cart': '/api/cart',
                'orders': '/api/orders',
                'dining': '/api/dining',
                'maintenance': '/api/maintenance',
                'outpass': '/api/outpass',
                'announcements': '/api/announcements'
            }
        })

    @app.route('/health')
    def health():
        """Health check endpoint"""
        return json_response({
            'success': True,
            'message': 'Hostel Hub Backend is running',
            'timestamp': datetime.now().isoformat()
        })
