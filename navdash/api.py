from flask import Blueprint, current_app, request

from .deps import api_error, api_response, audit_actor, get_services, require_auth
from .errors import NavdashError, NotFound, StorageError, ValidationError
from .models import ALL_CATEGORY, DEFAULT_ICON
from .utils import fetch_metadata, validate_url

api_bp = Blueprint('api', __name__)


@api_bp.errorhandler(NavdashError)
def handle_navdash_error(error):
    """Map lifecycle errors to the JSON envelope."""
    if isinstance(error, StorageError):
        current_app.logger.error(f"Storage failure: {error.path}: {error.detail}")
        return api_error('Failed to read or write data', 500)
    if isinstance(error, NotFound):
        return api_error(f'{error.entity_kind.capitalize()} not found', 404)
    return api_error(error.message, error.status_code)


def get_json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError(ValidationError.MISSING_FIELD, 'JSON data required')
    return data


def int_field(data, key, default=0):
    value = data.get(key, default)
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        raise ValidationError(ValidationError.OUT_OF_RANGE, f'{key} must be an integer')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(ValidationError.OUT_OF_RANGE, f'{key} must be an integer')


def str_field(data, key, default=''):
    value = data.get(key, default)
    return value if isinstance(value, str) else default


def bookmark_fields(data):
    tags = data.get('tags')
    return {
        'name': str_field(data, 'name'),
        'url': str_field(data, 'url').strip(),
        'description': str_field(data, 'description'),
        'icon': str_field(data, 'icon'),
        'category': str_field(data, 'category'),
        'tags': tags if isinstance(tags, (list, str)) else None,
        'sort': int_field(data, 'sort'),
    }


def category_fields(data):
    return {
        'name': str_field(data, 'name'),
        'icon': str_field(data, 'icon'),
        'upload_dir': str_field(data, 'uploadDir'),
        'sort': int_field(data, 'sort'),
    }


# Aggregated view for the dashboard front page
@api_bp.route('/data', methods=['GET'])
def get_data():
    """Categories, bookmarks and settings in one payload."""
    services = get_services()
    categories = services.categories.list()
    bookmarks = services.bookmarks.list()

    try:
        settings = services.settings.get()
    except StorageError as e:
        current_app.logger.error(f"Failed to read settings, using defaults: {str(e)}")
        settings = services.settings.defaults()

    return api_response(data={
        'categories': [category.to_dict() for category in categories],
        'bookmarks': [bookmark.to_dict() for bookmark in bookmarks],
        'settings': settings.to_dict(),
    })


# Categories API
@api_bp.route('/categories/', methods=['GET'])
def get_categories():
    """List categories ordered by their sort value."""
    categories = get_services().categories.list()
    return api_response(data=[category.to_dict() for category in categories])


@api_bp.route('/categories/<category_id>', methods=['GET'])
def get_category(category_id):
    """Get a specific category."""
    category = get_services().categories.get(category_id)
    return api_response(data=category.to_dict())


@api_bp.route('/categories/', methods=['POST'])
@require_auth
def create_category():
    """Create a new category."""
    fields = category_fields(get_json_body())
    category = get_services().categories.create(actor=audit_actor(), **fields)
    return api_response(data=category.to_dict(), message='Category created successfully')


@api_bp.route('/categories/<category_id>', methods=['PUT'])
@require_auth
def update_category(category_id):
    """Update a category."""
    fields = category_fields(get_json_body())
    category = get_services().categories.update(category_id, actor=audit_actor(), **fields)
    return api_response(data=category.to_dict(), message='Category updated successfully')


@api_bp.route('/categories/<category_id>', methods=['DELETE'])
@require_auth
def delete_category(category_id):
    """Delete a category, its bookmarks and its upload directory."""
    get_services().categories.delete(category_id, actor=audit_actor())
    return api_response(message='Category deleted successfully')


# Bookmarks API
@api_bp.route('/bookmarks/', methods=['GET'])
def get_bookmarks():
    """List bookmarks, optionally filtered by category and keyword."""
    category = request.args.get('category', '').strip() or None
    keyword = request.args.get('q', '').strip() or None
    bookmarks = get_services().bookmarks.list(category=category, keyword=keyword)
    return api_response(data=[bookmark.to_dict() for bookmark in bookmarks])


@api_bp.route('/bookmarks/category/<category_id>', methods=['GET'])
def get_bookmarks_by_category(category_id):
    """List the bookmarks of one category ('all' for every bookmark)."""
    bookmarks = get_services().bookmarks.by_category(category_id)
    return api_response(data=[bookmark.to_dict() for bookmark in bookmarks])


@api_bp.route('/bookmarks/search/<path:keyword>', methods=['GET'])
def search_bookmarks(keyword):
    """Search bookmark names, descriptions and tags."""
    bookmarks = get_services().bookmarks.search(keyword)
    return api_response(data=[bookmark.to_dict() for bookmark in bookmarks])


@api_bp.route('/bookmarks/<bookmark_id>', methods=['GET'])
def get_bookmark(bookmark_id):
    """Get a specific bookmark."""
    bookmark = get_services().bookmarks.get(bookmark_id)
    return api_response(data=bookmark.to_dict())


@api_bp.route('/bookmarks/', methods=['POST'])
@require_auth
def create_bookmark():
    """Create a new bookmark."""
    fields = bookmark_fields(get_json_body())
    bookmark = get_services().bookmarks.create(actor=audit_actor(), **fields)
    return api_response(data=bookmark.to_dict(), message='Bookmark created successfully')


@api_bp.route('/bookmarks/<bookmark_id>', methods=['PUT'])
@require_auth
def update_bookmark(bookmark_id):
    """Update a bookmark, moving or deleting its icon file as needed."""
    fields = bookmark_fields(get_json_body())
    bookmark = get_services().bookmarks.update(bookmark_id, actor=audit_actor(), **fields)
    return api_response(data=bookmark.to_dict(), message='Bookmark updated successfully')


@api_bp.route('/bookmarks/<bookmark_id>', methods=['DELETE'])
@require_auth
def delete_bookmark(bookmark_id):
    """Delete a bookmark and its local icon."""
    get_services().bookmarks.delete(bookmark_id, actor=audit_actor())
    return api_response(message='Bookmark deleted successfully')


@api_bp.route('/bookmarks/meta', methods=['POST'])
@require_auth
def get_url_meta():
    """Fetch title, description and icon of a page to prefill a bookmark."""
    url = str_field(get_json_body(), 'url').strip()
    if not validate_url(url):
        return api_error('Invalid URL', 400)

    metadata = fetch_metadata(
        url,
        timeout=current_app.config.get('METADATA_FETCH_TIMEOUT', 10),
        max_size=current_app.config.get('MAX_CONTENT_SIZE', 1024 * 1024),
    )
    metadata['url'] = url
    return api_response(data=metadata)


# Upload API
@api_bp.route('/upload/icon', methods=['POST'])
@require_auth
def upload_icon():
    """Store an uploaded bookmark icon in its category's upload directory."""
    upload = request.files.get('icon')
    if upload is None or not upload.filename:
        return api_error('Please choose a file to upload', 400)

    category_id = request.form.get('category', '').strip() or ALL_CATEGORY
    old_icon = request.form.get('oldIcon', '').strip()

    services = get_services()
    categories = services.categories.list()
    icon, filename, size = services.assets.save_icon_upload(
        upload.stream, upload.filename, category_id, categories, old_icon=old_icon
    )

    current_app.logger.info(f"Icon uploaded for category {category_id} by {audit_actor()}: {icon}")
    return api_response(
        data={'url': icon, 'filename': filename, 'originalname': upload.filename, 'size': size},
        message='File uploaded successfully'
    )


@api_bp.route('/upload/favicon', methods=['POST'])
@require_auth
def upload_favicon():
    """Replace the site favicon."""
    upload = request.files.get('favicon')
    if upload is None or not upload.filename:
        return api_error('Please choose a file to upload', 400)

    size = get_services().assets.save_favicon_upload(upload.stream, upload.filename)
    return api_response(
        data={'url': DEFAULT_ICON, 'filename': 'favicon.ico', 'originalname': upload.filename, 'size': size},
        message='Site icon updated successfully'
    )


# Settings API
@api_bp.route('/settings/', methods=['GET'])
def get_settings():
    """Get display settings."""
    settings = get_services().settings.get()
    return api_response(data=settings.to_dict())


@api_bp.route('/settings/', methods=['POST'])
@require_auth
def update_settings():
    """Validate and save display settings."""
    data = get_json_body()
    settings = get_services().settings.update(
        site_title=str_field(data, 'siteTitle'),
        card_width=int_field(data, 'cardWidth'),
        card_height=int_field(data, 'cardHeight'),
        icon_width=int_field(data, 'iconWidth'),
        icon_height=int_field(data, 'iconHeight'),
        sidebar_width=int_field(data, 'sidebarWidth'),
        theme=str_field(data, 'theme'),
        actor=audit_actor(),
    )
    return api_response(data=settings.to_dict(), message='Settings saved successfully')
