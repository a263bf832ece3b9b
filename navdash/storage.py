"""Whole-file JSON persistence for categories, bookmarks, settings and users.

Every read goes back to disk; there is no cache to invalidate. A save
replaces the whole file through a temporary sibling, so two writers racing
each other can lose an update but never leave a half-written file behind.
"""
import json
import logging
import os
import tempfile
from pathlib import Path

from .errors import StorageError
from .models import Bookmark, Category, Settings, User, utcnow

logger = logging.getLogger(__name__)

CATEGORIES_FILE = 'categories.json'
BOOKMARKS_FILE = 'bookmarks.json'
SETTINGS_FILE = 'settings.json'
USERS_FILE = 'users.json'
UPLOADS_DIR = 'uploads'

SECRET_KEY_FIELD = 'secretKey'

COLLECTIONS = {
    'categories': (CATEGORIES_FILE, Category),
    'bookmarks': (BOOKMARKS_FILE, Bookmark),
}


class JsonStore:
    """Repository over the data directory."""

    def __init__(self, data_dir):
        self.data_dir = Path(data_dir)

    @property
    def uploads_path(self):
        return self.data_dir / UPLOADS_DIR

    def path_for(self, filename):
        return self.data_dir / filename

    # Raw file access

    def _read_json(self, filename):
        path = self.path_for(filename)
        try:
            with path.open('r', encoding='utf-8') as handle:
                return json.load(handle)
        except FileNotFoundError as exc:
            raise StorageError(path, 'file not found') from exc
        except (OSError, ValueError) as exc:
            raise StorageError(path, str(exc)) from exc

    def _write_json(self, filename, payload):
        path = self.path_for(filename)
        text = json.dumps(payload, indent=2, ensure_ascii=False)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f'.{path.name}.', suffix='.tmp', dir=str(path.parent)
            )
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as handle:
                    handle.write(text)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            raise StorageError(path, str(exc)) from exc

    # Collections

    def load(self, kind):
        """Load the named collection ('categories' or 'bookmarks')."""
        filename, model = COLLECTIONS[kind]
        data = self._read_json(filename)
        if data is None:
            return []
        if not isinstance(data, list):
            raise StorageError(self.path_for(filename), 'expected a JSON array')
        try:
            return [model.from_dict(item) for item in data]
        except (AttributeError, TypeError, ValueError) as exc:
            raise StorageError(self.path_for(filename), str(exc)) from exc

    def save(self, kind, items):
        filename, _ = COLLECTIONS[kind]
        self._write_json(filename, [item.to_dict() for item in items])

    def load_categories(self):
        return self.load('categories')

    def save_categories(self, categories):
        self.save('categories', categories)

    def load_bookmarks(self):
        return self.load('bookmarks')

    def save_bookmarks(self, bookmarks):
        self.save('bookmarks', bookmarks)

    # Settings

    def load_settings(self):
        """Return stored settings, or the defaults when none were saved yet."""
        if not self.path_for(SETTINGS_FILE).exists():
            return Settings()
        data = self._read_json(SETTINGS_FILE)
        if not isinstance(data, dict):
            raise StorageError(self.path_for(SETTINGS_FILE), 'expected a JSON object')
        try:
            return Settings.from_dict(data)
        except (AttributeError, TypeError, ValueError) as exc:
            raise StorageError(self.path_for(SETTINGS_FILE), str(exc)) from exc

    def save_settings(self, settings):
        settings.updated_at = utcnow()
        self._write_json(SETTINGS_FILE, settings.to_dict())
        return settings

    # Users

    def _load_users_file(self):
        data = self._read_json(USERS_FILE)
        if not isinstance(data, dict):
            raise StorageError(self.path_for(USERS_FILE), 'expected a JSON object')
        return data

    def load_users(self):
        users = {}
        for key, value in self._load_users_file().items():
            if key == SECRET_KEY_FIELD or not isinstance(value, dict):
                continue
            users[key] = User.from_dict(value)
        return users

    def load_secret_key(self):
        value = self._load_users_file().get(SECRET_KEY_FIELD)
        return value if isinstance(value, str) else ''
