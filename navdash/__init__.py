"""Self-hosted navigation dashboard."""
import logging
import logging.config
import os

from flask import Flask
from flask_jwt_extended import JWTManager
from werkzeug.exceptions import RequestEntityTooLarge

from .config import config
from .deps import EXTENSION_KEY, api_error
from .errors import StorageError
from .services import Services

__version__ = '1.0.0'

jwt = JWTManager()


def configure_logging(level):
    logging.config.dictConfig({
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {'format': '%(asctime)s %(levelname)s:%(name)s:%(message)s'}
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'standard',
            }
        },
        'root': {
            'level': level,
            'handlers': ['console']
        },
        'loggers': {
            'navdash': {'level': level},
            'urllib3': {'level': 'WARNING'},
        }
    })


def _resolve_secret_key(app, store):
    """SESSION_SECRET wins, otherwise the secretKey kept in users.json."""
    if app.config.get('SECRET_KEY'):
        return app.config['SECRET_KEY']
    try:
        secret_key = store.load_secret_key()
    except StorageError as e:
        raise RuntimeError(f"Failed to read secretKey from users.json: {e}") from e
    if not secret_key:
        raise RuntimeError(
            'secretKey is not configured. Set "secretKey" in users.json '
            'or the SESSION_SECRET environment variable.'
        )
    return secret_key


def _warn_insecure_defaults(app, store):
    if app.config['SECRET_KEY'] == app.config['DEFAULT_SECRET_KEY']:
        app.logger.warning('Using the default secretKey, change it in users.json!')
    try:
        users = store.load_users()
    except StorageError:
        return
    admin = users.get('admin')
    if admin and admin.password == app.config['DEFAULT_ADMIN_PASSWORD']:
        app.logger.warning('Default account admin / 123456 is active, change the password in users.json!')


def create_app(config_name=None, **overrides):
    """Application factory."""
    config_name = config_name or os.environ.get('FLASK_CONFIG', 'default')

    app = Flask(__name__, static_folder=None)
    app.config.from_object(config[config_name])
    app.config.update(overrides)

    if not app.config.get('TESTING'):
        configure_logging(app.config['LOG_LEVEL'])

    app.config['DATA_DIR'] = os.path.abspath(app.config['DATA_DIR'])
    app.config['PUBLIC_DIR'] = os.path.abspath(app.config['PUBLIC_DIR'])

    services = Services(app.config['DATA_DIR'], max_upload_size=app.config['MAX_UPLOAD_SIZE'])
    app.extensions[EXTENSION_KEY] = services

    app.config['SECRET_KEY'] = _resolve_secret_key(app, services.store)
    if not app.config.get('JWT_SECRET_KEY'):
        app.config['JWT_SECRET_KEY'] = app.config['SECRET_KEY']
    jwt.init_app(app)

    from .api import api_bp
    from .auth import auth_bp, hash_password_command
    from .main import main_bp

    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(api_bp, url_prefix='/api')
    app.register_blueprint(main_bp)
    app.cli.add_command(hash_password_command)

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(error):
        return api_error('File must not exceed 2MB', 413)

    _warn_insecure_defaults(app, services.store)
    app.logger.info(f"Navdash {__version__} ready - data dir: {app.config['DATA_DIR']}")
    return app
