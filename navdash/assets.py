"""Icon files under ``<data>/uploads/<uploadDir>/<file>``.

The JSON records are the source of truth for what the dashboard shows.
Everything here is best effort: filesystem failures are logged and the
caller carries on with the old value, or with nothing done at all.
"""
import logging
import os
import shutil
from pathlib import Path, PurePosixPath

from .errors import AssetError, StorageError, ValidationError
from .models import ALL_CATEGORY, UPLOADS_PREFIX
from .utils import is_local_icon, new_id

logger = logging.getLogger(__name__)

COMMON_DIR = 'common'
FAVICON_DIR = 'favicon'
FAVICON_FILE = 'favicon.ico'

ALLOWED_EXTENSIONS = {'.jpeg', '.jpg', '.png', '.gif', '.svg', '.ico', '.webp'}
MAX_UPLOAD_SIZE = 2 * 1024 * 1024


def local_reference(upload_dir, filename):
    return f'{UPLOADS_PREFIX}{upload_dir}/{filename}'


def is_allowed_image(filename):
    return PurePosixPath(filename or '').suffix.lower() in ALLOWED_EXTENSIONS


class AssetManager:
    def __init__(self, uploads_root, max_upload_size=MAX_UPLOAD_SIZE):
        self.uploads_root = Path(uploads_root)
        self.max_upload_size = max_upload_size

    @property
    def favicon_path(self):
        return self.uploads_root / FAVICON_DIR / FAVICON_FILE

    def _inside_root(self, path):
        root = self.uploads_root.resolve()
        resolved = path.resolve()
        return resolved == root or root in resolved.parents

    def dir_path(self, upload_dir):
        path = self.uploads_root / upload_dir
        if not upload_dir or not self._inside_root(path) or path.resolve() == self.uploads_root.resolve():
            raise AssetError(f'upload dir escapes uploads root: {upload_dir!r}')
        return path

    def icon_path(self, icon):
        """Physical path for a local icon reference."""
        if not is_local_icon(icon):
            raise AssetError(f'not a local icon: {icon!r}')
        path = self.uploads_root / icon[len(UPLOADS_PREFIX):]
        if not self._inside_root(path):
            raise AssetError(f'icon escapes uploads root: {icon!r}')
        return path

    @staticmethod
    def resolve_upload_dir(category_id, categories):
        """Upload directory of a category, 'common' for unknown ids and 'all'."""
        if category_id and category_id != ALL_CATEGORY:
            for category in categories:
                if category.id == category_id:
                    return category.upload_dir
        return COMMON_DIR

    def ensure_upload_dir(self, upload_dir):
        try:
            self.dir_path(upload_dir).mkdir(parents=True, exist_ok=True)
        except (AssetError, OSError) as e:
            logger.error(f"Failed to create upload dir {upload_dir}: {e}")

    def remove_upload_dir(self, upload_dir):
        """Remove a category's upload directory with everything in it."""
        if not upload_dir:
            return
        try:
            path = self.dir_path(upload_dir)
            if path.exists():
                shutil.rmtree(path)
                logger.info(f"Removed upload dir: {path}")
        except (AssetError, OSError) as e:
            logger.error(f"Failed to remove upload dir {upload_dir}: {e}")

    def delete_icon_if_local(self, icon):
        if not is_local_icon(icon):
            return
        try:
            path = self.icon_path(icon)
            if path.is_file():
                path.unlink()
                logger.info(f"Deleted icon file: {path}")
            else:
                logger.info(f"Icon file already gone: {path}")
        except FileNotFoundError:
            pass
        except (AssetError, OSError) as e:
            logger.error(f"Failed to delete icon {icon}: {e}")

    def move_icon(self, old_icon, old_category_id, new_category_id, categories):
        """Move a local icon into the upload dir of ``new_category_id``.

        Returns the icon reference the bookmark should store. When the
        source file is missing the rewritten reference is returned anyway;
        when the move itself fails the old reference is kept.
        """
        if not is_local_icon(old_icon):
            logger.warning(f"Not a local icon, leaving as is: {old_icon}")
            return old_icon

        parts = old_icon[len(UPLOADS_PREFIX):].split('/')
        if len(parts) < 2:
            logger.warning(f"Malformed icon path: {old_icon}")
            return old_icon
        old_dir, filename = parts[0], parts[1]

        new_dir = self.resolve_upload_dir(new_category_id, categories)
        new_icon = local_reference(new_dir, filename)

        try:
            source = self.icon_path(local_reference(old_dir, filename))
            target_dir = self.dir_path(new_dir)
        except AssetError as e:
            logger.error(f"Refusing to move icon {old_icon}: {e}")
            return old_icon

        if not source.exists():
            logger.info(f"Icon file missing, only rewriting reference: {source}")
            return new_icon

        target = target_dir / filename
        if source == target:
            return new_icon
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            os.replace(source, target)
        except OSError as e:
            logger.error(f"Failed to move icon {source} -> {target}: {e}")
            return old_icon

        logger.info(f"Moved icon ({old_category_id} -> {new_category_id}): {source} -> {target}")
        return new_icon

    # Upload receiver

    def _read_upload(self, stream, filename):
        if not filename:
            raise ValidationError(ValidationError.BAD_UPLOAD, 'No file selected')
        if not is_allowed_image(filename):
            raise ValidationError(
                ValidationError.BAD_UPLOAD,
                'Only image files are allowed (jpeg, jpg, png, gif, svg, ico, webp)'
            )
        content = stream.read(self.max_upload_size + 1)
        if len(content) > self.max_upload_size:
            raise ValidationError(ValidationError.BAD_UPLOAD, 'File must not exceed 2MB')
        return content

    def _write_file(self, path, content):
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as e:
            try:
                path.unlink()
            except OSError:
                pass
            raise StorageError(path, str(e)) from e

    def save_icon_upload(self, stream, filename, category_id, categories, old_icon=''):
        """Store an uploaded icon for a bookmark and return its local reference.

        The previous icon, when given and local, is deleted first.
        """
        content = self._read_upload(stream, filename)
        upload_dir = self.resolve_upload_dir(category_id, categories)
        try:
            target_dir = self.dir_path(upload_dir)
        except AssetError as e:
            raise ValidationError(ValidationError.BAD_UPLOAD_DIR, str(e)) from e

        if old_icon:
            self.delete_icon_if_local(old_icon)

        ext = PurePosixPath(filename).suffix
        stored_name = f'{new_id("icon")}{ext}'
        self._write_file(target_dir / stored_name, content)

        icon = local_reference(upload_dir, stored_name)
        logger.info(f"Icon uploaded: {filename} -> {icon} ({len(content) // 1024}KB)")
        return icon, stored_name, len(content)

    def save_favicon_upload(self, stream, filename):
        content = self._read_upload(stream, filename)
        self._write_file(self.favicon_path, content)
        logger.info(f"Site favicon updated: {filename} ({len(content) // 1024}KB)")
        return len(content)
