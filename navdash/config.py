import os
from datetime import timedelta


class Config:
    # Data files and uploads
    DATA_DIR = os.environ.get('NAVDASH_DATA_DIR', './data')
    PUBLIC_DIR = os.environ.get('NAVDASH_PUBLIC_DIR', './public')

    # Security
    # Empty means: use the secretKey stored in users.json
    SECRET_KEY = os.environ.get('SESSION_SECRET', '')
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY', '')
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=24)
    DEFAULT_SECRET_KEY = 'your-secure-random-key-2025-navdesk-session'
    DEFAULT_ADMIN_PASSWORD = '123456'

    # Session configuration
    SESSION_COOKIE_NAME = 'navdash_session'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SECURE = os.environ.get('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
    PERMANENT_SESSION_LIFETIME = timedelta(days=30)

    # Uploads
    MAX_UPLOAD_SIZE = 2 * 1024 * 1024  # 2MB
    # Leave room for the multipart envelope around the file itself
    MAX_CONTENT_LENGTH = MAX_UPLOAD_SIZE + 64 * 1024

    # Request timeouts for metadata fetching
    METADATA_FETCH_TIMEOUT = 10
    MAX_CONTENT_SIZE = 1024 * 1024  # 1MB

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    PORT = int(os.environ.get('PORT', '3000'))


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')


class ProductionConfig(Config):
    DEBUG = False
    SESSION_COOKIE_SECURE = os.environ.get('SESSION_COOKIE_SECURE', 'true').lower() == 'true'


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'testing-secret'
    JWT_SECRET_KEY = 'testing-jwt-secret-key-with-32-bytes-or-more'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(minutes=5)


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
