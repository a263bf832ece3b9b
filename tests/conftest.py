import json

import pytest

from navdash import create_app
from navdash.services import Services

ADMIN_PASSWORD = 'correct-horse'


def write_json(path, payload):
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding='utf-8')


@pytest.fixture
def data_dir(tmp_path):
    """A data directory with one admin user and empty collections."""
    root = tmp_path / 'data'
    (root / 'uploads').mkdir(parents=True)
    write_json(root / 'users.json', {
        'secretKey': 'users-json-secret',
        'admin': {
            'username': 'admin',
            'password': ADMIN_PASSWORD,
            'role': 'admin',
            'createdAt': '2025-01-01T00:00:00Z',
        },
    })
    write_json(root / 'categories.json', [])
    write_json(root / 'bookmarks.json', [])
    return root


@pytest.fixture
def services(data_dir):
    return Services(data_dir)


@pytest.fixture
def public_dir(tmp_path):
    root = tmp_path / 'public'
    (root / 'admin').mkdir(parents=True)
    (root / 'index.html').write_text('<h1>dashboard</h1>', encoding='utf-8')
    (root / 'admin' / 'login.html').write_text('<h1>login</h1>', encoding='utf-8')
    (root / 'admin' / 'categories.html').write_text('<h1>categories</h1>', encoding='utf-8')
    return root


@pytest.fixture
def app(data_dir, public_dir):
    return create_app('testing', DATA_DIR=str(data_dir), PUBLIC_DIR=str(public_dir))


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(client):
    """Test client holding a logged-in admin session."""
    response = client.post('/api/auth/login', json={'username': 'admin', 'password': ADMIN_PASSWORD})
    assert response.status_code == 200
    return client
