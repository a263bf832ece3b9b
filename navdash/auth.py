import hmac
from datetime import datetime, timezone

import click
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from flask import Blueprint, current_app, request, session
from flask_jwt_extended import create_access_token

from .deps import api_error, api_response, get_current_actor, get_services
from .errors import StorageError

auth_bp = Blueprint('auth', __name__)
ph = PasswordHasher()

ARGON2_PREFIX = '$argon2'


def hash_password(password):
    return ph.hash(password)


def check_password(stored, password):
    """Check a password against users.json, which may hold argon2 hashes or plaintext."""
    if not stored or not password:
        return False
    if stored.startswith(ARGON2_PREFIX):
        try:
            return ph.verify(stored, password)
        except (VerificationError, InvalidHashError):
            return False
    return hmac.compare_digest(stored.encode('utf-8'), password.encode('utf-8'))


@auth_bp.route('/login', methods=['POST'])
def login():
    """Authenticate an admin and open a session."""
    data = request.get_json(silent=True) or {}
    username = (data.get('username') or '').strip()
    password = data.get('password') or ''

    if not username or not password:
        return api_error('Username and password required', 400)

    try:
        users = get_services().store.load_users()
    except StorageError as e:
        current_app.logger.error(f"Login error: {str(e)}")
        return api_error('Login failed', 500)

    user = next((u for u in users.values() if u.username == username), None)
    if not user or not check_password(user.password, password):
        current_app.logger.warning(f"Login failed for user {username}: bad credentials")
        return api_error('Invalid username or password', 401)

    session.clear()
    session['username'] = user.username
    session['role'] = user.role
    session['loginTime'] = datetime.now(timezone.utc).isoformat()
    session.permanent = True

    access_token = create_access_token(identity=user.username, additional_claims={'role': user.role})

    current_app.logger.info(f"User logged in: {user.username} ({user.role})")
    data = user.to_dict()
    data['access_token'] = access_token
    return api_response(data=data, message='Login successful')


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """Close the admin session."""
    username = session.get('username', 'unknown')
    session.clear()
    current_app.logger.info(f"User logged out: {username}")
    return api_response(message='Logout successful')


@auth_bp.route('/status', methods=['GET'])
def status():
    """Report whether the caller is logged in."""
    actor = get_current_actor()
    if actor is None:
        return api_response(data={'isLoggedIn': False})

    return api_response(data={
        'isLoggedIn': True,
        'user': {
            'username': actor.username,
            'role': actor.role,
            'loginTime': session.get('loginTime'),
        },
    })


@click.command('hash-password')
@click.argument('password')
def hash_password_command(password):
    """Print an argon2 hash to paste into users.json."""
    click.echo(hash_password(password))
