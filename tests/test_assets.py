"""Unit tests for navdash.assets."""

import io
from unittest.mock import patch

import pytest

from navdash.assets import AssetManager, is_allowed_image
from navdash.errors import AssetError, ValidationError
from navdash.models import Category


@pytest.fixture
def uploads(tmp_path):
    root = tmp_path / 'uploads'
    root.mkdir()
    return root


@pytest.fixture
def assets(uploads):
    return AssetManager(uploads, max_upload_size=1024)


@pytest.fixture
def categories():
    return [
        Category(id='cat_dev', name='Dev', icon='💻', upload_dir='dev'),
        Category(id='cat_news', name='News', icon='📰', upload_dir='news'),
    ]


def put_icon(uploads, upload_dir, filename, content=b'png'):
    path = uploads / upload_dir / filename
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


class TestPaths:
    """Test path resolution inside the uploads root."""

    def test_resolve_upload_dir(self, categories):
        """Should map ids to dirs and fall back to common."""
        assert AssetManager.resolve_upload_dir('cat_dev', categories) == 'dev'
        assert AssetManager.resolve_upload_dir('all', categories) == 'common'
        assert AssetManager.resolve_upload_dir('cat_missing', categories) == 'common'
        assert AssetManager.resolve_upload_dir('', categories) == 'common'

    def test_icon_path(self, assets, uploads):
        """Should map a reference onto the uploads root."""
        assert assets.icon_path('/uploads/dev/a.png') == uploads / 'dev' / 'a.png'

    def test_icon_path_rejects_traversal(self, assets):
        """Should refuse references that leave the uploads root."""
        with pytest.raises(AssetError):
            assets.icon_path('/uploads/../../etc/passwd')

    def test_icon_path_rejects_remote(self, assets):
        with pytest.raises(AssetError):
            assets.icon_path('https://example.com/favicon.ico')

    def test_dir_path_rejects_root_and_traversal(self, assets):
        """Should refuse the root itself and parent directories."""
        for bad in ('', '.', '..', '../outside'):
            with pytest.raises(AssetError):
                assets.dir_path(bad)

    def test_allowed_extensions(self):
        assert is_allowed_image('logo.PNG')
        assert is_allowed_image('icon.svg')
        assert not is_allowed_image('script.js')
        assert not is_allowed_image('')


class TestDirectories:
    """Test upload directory housekeeping."""

    def test_ensure_upload_dir(self, assets, uploads):
        assets.ensure_upload_dir('dev')
        assert (uploads / 'dev').is_dir()

    def test_remove_upload_dir_recursive(self, assets, uploads):
        """Should remove the directory and everything inside."""
        put_icon(uploads, 'dev', 'a.png')
        put_icon(uploads, 'dev/nested', 'b.png')
        assets.remove_upload_dir('dev')
        assert not (uploads / 'dev').exists()

    def test_remove_upload_dir_missing_is_noop(self, assets):
        assets.remove_upload_dir('never-created')

    def test_remove_upload_dir_refuses_escape(self, assets, tmp_path):
        """Should log and leave directories outside the root alone."""
        outside = tmp_path / 'keep'
        outside.mkdir()
        assets.remove_upload_dir('../keep')
        assert outside.exists()

    def test_remove_failure_is_swallowed(self, assets, uploads):
        put_icon(uploads, 'dev', 'a.png')
        with patch('navdash.assets.shutil.rmtree', side_effect=OSError('busy')):
            assets.remove_upload_dir('dev')
        assert (uploads / 'dev').exists()


class TestDeleteIcon:
    """Test delete_icon_if_local."""

    def test_deletes_local_file(self, assets, uploads):
        path = put_icon(uploads, 'dev', 'a.png')
        assets.delete_icon_if_local('/uploads/dev/a.png')
        assert not path.exists()

    def test_missing_file_is_fine(self, assets):
        assets.delete_icon_if_local('/uploads/dev/gone.png')

    def test_remote_icon_untouched(self, assets):
        with patch('navdash.assets.Path.unlink') as unlink:
            assets.delete_icon_if_local('https://example.com/icon.png')
            assets.delete_icon_if_local('/favicon.ico')
        unlink.assert_not_called()


class TestMoveIcon:
    """Test move_icon."""

    def test_moves_file_between_dirs(self, assets, uploads, categories):
        """Should move the file and return the rewritten reference."""
        put_icon(uploads, 'dev', 'a.png', b'data')
        icon = assets.move_icon('/uploads/dev/a.png', 'cat_dev', 'cat_news', categories)
        assert icon == '/uploads/news/a.png'
        assert not (uploads / 'dev' / 'a.png').exists()
        assert (uploads / 'news' / 'a.png').read_bytes() == b'data'

    def test_move_to_all_uses_common(self, assets, uploads, categories):
        put_icon(uploads, 'dev', 'a.png')
        icon = assets.move_icon('/uploads/dev/a.png', 'cat_dev', 'all', categories)
        assert icon == '/uploads/common/a.png'
        assert (uploads / 'common' / 'a.png').exists()

    def test_missing_source_rewrites_reference(self, assets, uploads, categories):
        """Should rewrite the reference without touching the filesystem."""
        icon = assets.move_icon('/uploads/dev/gone.png', 'cat_dev', 'cat_news', categories)
        assert icon == '/uploads/news/gone.png'
        assert not (uploads / 'news').exists()

    def test_non_local_returned_unchanged(self, assets, categories):
        icon = 'https://example.com/favicon.ico'
        assert assets.move_icon(icon, 'cat_dev', 'cat_news', categories) == icon

    def test_malformed_returned_unchanged(self, assets, categories):
        assert assets.move_icon('/uploads/a.png', 'cat_dev', 'cat_news', categories) == '/uploads/a.png'

    def test_failed_move_keeps_old_reference(self, assets, uploads, categories):
        """Should keep the old reference when the rename fails."""
        put_icon(uploads, 'dev', 'a.png')
        with patch('navdash.assets.os.replace', side_effect=OSError('read-only')):
            icon = assets.move_icon('/uploads/dev/a.png', 'cat_dev', 'cat_news', categories)
        assert icon == '/uploads/dev/a.png'
        assert (uploads / 'dev' / 'a.png').exists()


class TestUploads:
    """Test the upload receiver."""

    def test_save_icon_upload(self, assets, uploads, categories):
        """Should store the file under the category's upload dir."""
        icon, stored_name, size = assets.save_icon_upload(
            io.BytesIO(b'img'), 'logo.png', 'cat_dev', categories
        )
        assert icon == f'/uploads/dev/{stored_name}'
        assert stored_name.startswith('icon_') and stored_name.endswith('.png')
        assert size == 3
        assert (uploads / 'dev' / stored_name).read_bytes() == b'img'

    def test_unknown_category_goes_to_common(self, assets, uploads, categories):
        icon, stored_name, _ = assets.save_icon_upload(
            io.BytesIO(b'img'), 'logo.png', 'cat_missing', categories
        )
        assert icon == f'/uploads/common/{stored_name}'

    def test_old_icon_deleted(self, assets, uploads, categories):
        """Should delete the replaced local icon."""
        old = put_icon(uploads, 'dev', 'old.png')
        assets.save_icon_upload(io.BytesIO(b'img'), 'new.png', 'cat_dev', categories,
                                old_icon='/uploads/dev/old.png')
        assert not old.exists()

    def test_rejects_bad_extension(self, assets, categories):
        with pytest.raises(ValidationError) as exc_info:
            assets.save_icon_upload(io.BytesIO(b'x'), 'evil.html', 'cat_dev', categories)
        assert exc_info.value.reason == ValidationError.BAD_UPLOAD

    def test_rejects_missing_filename(self, assets, categories):
        with pytest.raises(ValidationError):
            assets.save_icon_upload(io.BytesIO(b'x'), '', 'cat_dev', categories)

    def test_rejects_oversized(self, assets, uploads, categories):
        """Should reject files over the size limit and write nothing."""
        with pytest.raises(ValidationError) as exc_info:
            assets.save_icon_upload(io.BytesIO(b'x' * 1025), 'big.png', 'cat_dev', categories)
        assert '2MB' in exc_info.value.message
        assert not (uploads / 'dev').exists()

    def test_save_favicon_upload(self, assets, uploads):
        size = assets.save_favicon_upload(io.BytesIO(b'ico'), 'site.ico')
        assert size == 3
        assert (uploads / 'favicon' / 'favicon.ico').read_bytes() == b'ico'
