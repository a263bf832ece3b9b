from flask import Blueprint, abort, current_app, redirect, send_from_directory, session

from .deps import get_services

main_bp = Blueprint('main', __name__)

LOGIN_PAGE = '/admin/login.html'
ADMIN_HOME = '/admin/categories.html'
ADMIN_PAGES = ('categories.html', 'category-detail.html', 'settings.html')


def public_dir():
    return current_app.config['PUBLIC_DIR']


@main_bp.route('/')
def index():
    """Public dashboard."""
    return send_from_directory(public_dir(), 'index.html')


@main_bp.route('/static/<path:filename>')
def static_files(filename):
    return send_from_directory(public_dir(), filename)


@main_bp.route('/uploads/<path:filename>')
def uploads(filename):
    """Uploaded icons. A dangling reference is a plain 404."""
    return send_from_directory(get_services().store.uploads_path, filename)


@main_bp.route('/favicon.ico')
def favicon():
    path = get_services().assets.favicon_path
    if not path.is_file():
        abort(404)
    return send_from_directory(path.parent, path.name)


@main_bp.route('/admin')
@main_bp.route('/admin/')
def admin():
    """Admin entry point."""
    if session.get('username'):
        return redirect(ADMIN_HOME)
    return redirect(LOGIN_PAGE)


@main_bp.route(LOGIN_PAGE)
def login_page():
    """Login page."""
    return send_from_directory(public_dir(), 'admin/login.html')


@main_bp.route('/admin/<page>')
def admin_page(page):
    """Admin pages, only with a logged-in session."""
    if page not in ADMIN_PAGES:
        abort(404)
    if not session.get('username'):
        current_app.logger.info(f"No session for /admin/{page}, redirecting to login")
        return redirect(LOGIN_PAGE)
    return send_from_directory(public_dir(), f'admin/{page}')
