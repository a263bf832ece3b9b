"""Category and bookmark lifecycle.

Each mutating call is one load -> validate -> mutate -> save cycle against
the JSON store. Validation and lookups fail before anything is written;
icon housekeeping goes through the AssetManager and never fails a call.
"""
import logging
from datetime import datetime, timezone

from .assets import MAX_UPLOAD_SIZE, AssetManager
from .errors import Forbidden, NotFound, ValidationError
from .models import ALL_CATEGORY, ANONYMOUS, DEFAULT_ICON, Bookmark, Category, Settings, utcnow
from .storage import JsonStore
from .utils import clean_tags, is_local_icon, new_id, validate_url

logger = logging.getLogger(__name__)

CATEGORY_ID_PREFIX = 'cat'
BOOKMARK_ID_PREFIX = 'bookmark'

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def bookmark_sort_key(bookmark):
    return (bookmark.sort, bookmark.created_at or _EPOCH)


def sort_bookmarks(bookmarks):
    """Order by sort value, then creation time. Stable for full ties."""
    return sorted(bookmarks, key=bookmark_sort_key)


def sort_categories(categories):
    return sorted(categories, key=lambda category: category.sort)


def matches_keyword(bookmark, keyword):
    """Case-insensitive substring match over name, description and tags."""
    if not keyword:
        return True
    needle = keyword.lower()
    if needle in (bookmark.name or '').lower():
        return True
    if needle in (bookmark.description or '').lower():
        return True
    return any(needle in (tag or '').lower() for tag in bookmark.tags)


def _require(**fields):
    for field_name, value in fields.items():
        if value is None or not str(value).strip():
            raise ValidationError(ValidationError.MISSING_FIELD, f'{field_name} is required')


def _check_upload_dir(upload_dir):
    if upload_dir in ('.', '..') or '/' in upload_dir or '\\' in upload_dir:
        raise ValidationError(
            ValidationError.BAD_UPLOAD_DIR,
            'Upload directory must be a single directory name'
        )


class CategoryService:
    def __init__(self, store, assets):
        self.store = store
        self.assets = assets

    def list(self):
        return sort_categories(self.store.load_categories())

    def get(self, category_id):
        for category in self.store.load_categories():
            if category.id == category_id:
                return category
        raise NotFound('category', category_id)

    @staticmethod
    def _check_unique(categories, name, upload_dir, exclude_id=None):
        others = [category for category in categories if category.id != exclude_id]
        if any(category.name == name for category in others):
            raise ValidationError(ValidationError.DUPLICATE_NAME, 'Category name already exists')
        if any(category.upload_dir == upload_dir for category in others):
            raise ValidationError(ValidationError.DUPLICATE_UPLOAD_DIR, 'Upload directory already exists')

    def create(self, name, icon, upload_dir, sort=0, actor=ANONYMOUS):
        _require(name=name, icon=icon, uploadDir=upload_dir)
        _check_upload_dir(upload_dir)

        categories = self.store.load_categories()
        self._check_unique(categories, name, upload_dir)

        category = Category(
            id=new_id(CATEGORY_ID_PREFIX),
            name=name,
            icon=icon,
            upload_dir=upload_dir,
            sort=sort or len(categories),
            created_at=utcnow(),
        )
        categories.append(category)
        self.store.save_categories(categories)

        self.assets.ensure_upload_dir(upload_dir)
        logger.info(f"Category created: {category.name} (upload dir: {upload_dir}) - user: {actor}")
        return category

    def update(self, category_id, name, icon, upload_dir, sort=0, actor=ANONYMOUS):
        _require(name=name, icon=icon, uploadDir=upload_dir)
        _check_upload_dir(upload_dir)

        categories = self.store.load_categories()
        category = next((c for c in categories if c.id == category_id), None)
        if category is None:
            raise NotFound('category', category_id)
        self._check_unique(categories, name, upload_dir, exclude_id=category_id)

        category.name = name
        category.icon = icon
        category.upload_dir = upload_dir
        category.sort = sort
        category.updated_at = utcnow()
        self.store.save_categories(categories)

        self.assets.ensure_upload_dir(upload_dir)
        logger.info(f"Category updated: {category.name} (upload dir: {upload_dir}) - user: {actor}")
        return category

    def delete(self, category_id, actor=ANONYMOUS):
        """Delete a category together with its bookmarks and their icons.

        Bookmarks are saved before categories; if the second save fails the
        bookmarks stay deleted while the category survives.
        """
        if category_id == ALL_CATEGORY:
            raise Forbidden('The "all" category cannot be deleted')

        categories = self.store.load_categories()
        category = next((c for c in categories if c.id == category_id), None)
        if category is None:
            raise NotFound('category', category_id)

        bookmarks = self.store.load_bookmarks()
        owned = [b for b in bookmarks if b.category == category_id]
        if owned:
            logger.info(f"Deleting category {category_id} with {len(owned)} bookmarks")
            for bookmark in owned:
                self.assets.delete_icon_if_local(bookmark.icon)
            self.store.save_bookmarks([b for b in bookmarks if b.category != category_id])

        self.assets.remove_upload_dir(category.upload_dir)

        self.store.save_categories([c for c in categories if c.id != category_id])
        logger.info(f"Category deleted: {category.name} - user: {actor}")
        return category


class BookmarkService:
    def __init__(self, store, assets):
        self.store = store
        self.assets = assets

    def list(self, category=None, keyword=None):
        bookmarks = self.store.load_bookmarks()
        if category and category != ALL_CATEGORY:
            bookmarks = [b for b in bookmarks if b.category == category]
        if keyword:
            bookmarks = [b for b in bookmarks if matches_keyword(b, keyword)]
        return sort_bookmarks(bookmarks)

    def by_category(self, category_id):
        return self.list(category=category_id)

    def search(self, keyword):
        return self.list(keyword=keyword)

    def get(self, bookmark_id):
        for bookmark in self.store.load_bookmarks():
            if bookmark.id == bookmark_id:
                return bookmark
        raise NotFound('bookmark', bookmark_id)

    def _validate(self, name, url, category):
        """Shared create/update checks. Returns the loaded categories."""
        _require(name=name, url=url, category=category)
        if not validate_url(url):
            raise ValidationError(ValidationError.BAD_URL, 'Invalid URL')

        categories = self.store.load_categories()
        if category != ALL_CATEGORY and not any(c.id == category for c in categories):
            raise ValidationError(ValidationError.UNKNOWN_CATEGORY, 'Category does not exist')
        return categories

    @staticmethod
    def _check_unique(bookmarks, category, name, exclude_id=None):
        for bookmark in bookmarks:
            if bookmark.id != exclude_id and bookmark.category == category and bookmark.name == name:
                raise ValidationError(
                    ValidationError.DUPLICATE_NAME,
                    'A bookmark with this name already exists in the category'
                )

    def create(self, name, url, description='', icon='', category=ALL_CATEGORY,
               tags=None, sort=0, actor=ANONYMOUS):
        self._validate(name, url, category)

        bookmarks = self.store.load_bookmarks()
        self._check_unique(bookmarks, category, name)

        if not sort:
            sort = sum(1 for b in bookmarks if b.category == category) + 1

        bookmark = Bookmark(
            id=new_id(BOOKMARK_ID_PREFIX),
            name=name,
            url=url,
            description=description or '',
            icon=icon or DEFAULT_ICON,
            category=category,
            tags=clean_tags(tags),
            sort=sort,
            created_at=utcnow(),
        )
        bookmarks.append(bookmark)
        self.store.save_bookmarks(bookmarks)

        logger.info(f"Bookmark created: {bookmark.name} ({bookmark.category}) - user: {actor}")
        return bookmark

    def _transition_icon(self, old_icon, new_icon, old_category, new_category, categories):
        """Work out the icon to store and keep the upload dirs in step."""
        category_changed = old_category != new_category

        if old_icon == new_icon:
            if category_changed and is_local_icon(old_icon):
                return self.assets.move_icon(old_icon, old_category, new_category, categories)
            return new_icon

        if not is_local_icon(old_icon):
            return new_icon

        if is_local_icon(new_icon):
            if category_changed:
                # The old reference follows the category, the fresh upload is not moved.
                return self.assets.move_icon(old_icon, old_category, new_category, categories)
            # The upload step deletes the replaced file when it stores the new one.
            logger.info(f"Icon replaced, old file removed at upload: {old_icon} -> {new_icon}")
            return new_icon

        self.assets.delete_icon_if_local(old_icon)
        return new_icon

    def update(self, bookmark_id, name, url, description='', icon='', category=ALL_CATEGORY,
               tags=None, sort=0, actor=ANONYMOUS):
        categories = self._validate(name, url, category)

        bookmarks = self.store.load_bookmarks()
        bookmark = next((b for b in bookmarks if b.id == bookmark_id), None)
        if bookmark is None:
            raise NotFound('bookmark', bookmark_id)
        self._check_unique(bookmarks, category, name, exclude_id=bookmark_id)

        old_category = bookmark.category
        icon = self._transition_icon(bookmark.icon, icon or '', old_category, category, categories)

        bookmark.name = name
        bookmark.url = url
        bookmark.description = description or ''
        bookmark.icon = icon or DEFAULT_ICON
        bookmark.category = category
        bookmark.tags = clean_tags(tags)
        bookmark.sort = sort
        bookmark.updated_at = utcnow()
        self.store.save_bookmarks(bookmarks)

        logger.info(f"Bookmark updated: {bookmark.name} ({old_category} -> {category}) - user: {actor}")
        return bookmark

    def delete(self, bookmark_id, actor=ANONYMOUS):
        bookmarks = self.store.load_bookmarks()
        bookmark = next((b for b in bookmarks if b.id == bookmark_id), None)
        if bookmark is None:
            raise NotFound('bookmark', bookmark_id)

        self.assets.delete_icon_if_local(bookmark.icon)
        self.store.save_bookmarks([b for b in bookmarks if b.id != bookmark_id])

        logger.info(f"Bookmark deleted: {bookmark.name} ({bookmark.category}) - user: {actor}")
        return bookmark


class SettingsService:
    def __init__(self, store):
        self.store = store

    def get(self):
        return self.store.load_settings()

    @staticmethod
    def defaults():
        return Settings()

    def update(self, site_title, card_width, card_height, icon_width, icon_height,
               sidebar_width, theme, actor=ANONYMOUS):
        site_title = (site_title or '').strip()
        if not site_title or len(site_title) > Settings.MAX_TITLE_LENGTH:
            raise ValidationError(
                ValidationError.OUT_OF_RANGE,
                f'Site title must be 1-{Settings.MAX_TITLE_LENGTH} characters'
            )

        settings = Settings(
            site_title=site_title,
            card_width=card_width,
            card_height=card_height,
            icon_width=icon_width,
            icon_height=icon_height,
            sidebar_width=sidebar_width,
            theme=theme,
        )
        for field_name, (low, high) in Settings.RANGES.items():
            value = getattr(settings, field_name)
            if not isinstance(value, int) or isinstance(value, bool) or not low <= value <= high:
                raise ValidationError(ValidationError.OUT_OF_RANGE, f'{field_name} must be between {low} and {high}')
        if theme not in Settings.THEMES:
            raise ValidationError(ValidationError.OUT_OF_RANGE, 'Invalid theme')

        self.store.save_settings(settings)
        logger.info(f"Settings updated - user: {actor}")
        return settings


class Services:
    """Everything a request handler needs, wired to one data directory."""

    def __init__(self, data_dir, max_upload_size=MAX_UPLOAD_SIZE):
        self.store = JsonStore(data_dir)
        self.assets = AssetManager(self.store.uploads_path, max_upload_size=max_upload_size)
        self.categories = CategoryService(self.store, self.assets)
        self.bookmarks = BookmarkService(self.store, self.assets)
        self.settings = SettingsService(self.store)
