"""Request-scoped helpers shared by the blueprints."""
from functools import wraps

from flask import current_app, jsonify, session
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError

from .models import ANONYMOUS, Actor

EXTENSION_KEY = 'navdash'


def get_services():
    """The store, asset manager and lifecycle services of the running app."""
    return current_app.extensions[EXTENSION_KEY]


def get_current_actor():
    """Current admin from a bearer token or the session cookie, or None."""
    try:
        verify_jwt_in_request(optional=True)
        username = get_jwt_identity()
        if username:
            return Actor(username=username, role=get_jwt().get('role', ''))
    except (JWTExtendedException, PyJWTError) as e:
        current_app.logger.info(f"Ignoring invalid access token: {str(e)}")

    # Fallback to session-based auth for the admin pages
    username = session.get('username')
    if username:
        return Actor(username=username, role=session.get('role', ''))

    return None


def audit_actor():
    return get_current_actor() or ANONYMOUS


def api_response(data=None, message=None, status=200, success=True):
    payload = {'success': success}
    if message:
        payload['message'] = message
    if data is not None:
        payload['data'] = data
    return jsonify(payload), status


def api_error(message, status):
    return api_response(message=message, status=status, success=False)


def require_auth(view):
    """Reject the request with 401 unless an admin is logged in."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        if get_current_actor() is None:
            return api_error('Authentication required', 401)
        return view(*args, **kwargs)
    return wrapper
