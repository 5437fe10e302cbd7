import os
from dotenv import load_dotenv

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

load_dotenv(os.path.join(BASE_DIR, '.env'))


class Config:
    ENV_NAME = os.getenv('APP_ENV', 'development')
    SECRET_KEY = os.getenv('SECRET_KEY', 'visual-history-dev-secret')
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///' + os.path.join(BASE_DIR, 'app.db'))
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # base64 screenshots are large
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024

    # bearer tokens
    TOKEN_MAX_AGE = int(os.getenv('TOKEN_MAX_AGE', 30 * 24 * 3600))

    # image host (freeimage.host compatible)
    IMAGE_HOST_URL = os.getenv('IMAGE_HOST_URL', 'https://freeimage.host/api/1/upload')
    IMAGE_HOST_API_KEY = os.getenv('IMAGE_HOST_API_KEY', '')
    IMAGE_UPLOAD_TIMEOUT = float(os.getenv('IMAGE_UPLOAD_TIMEOUT', 10))

    # history
    HISTORY_PAGE_SIZE = int(os.getenv('HISTORY_PAGE_SIZE', 50))
    HISTORY_MAX_PAGE_SIZE = int(os.getenv('HISTORY_MAX_PAGE_SIZE', 100))
    DEFAULT_RETENTION_DAYS = int(os.getenv('DEFAULT_RETENTION_DAYS', 30))
    MIN_RETENTION_DAYS = 1
    MAX_RETENTION_DAYS = 365
    RETENTION_WORKERS = int(os.getenv('RETENTION_WORKERS', 2))

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_FILE = os.getenv('LOG_FILE')


class TestConfig(Config):
    ENV_NAME = 'test'
    TESTING = True
    SECRET_KEY = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    IMAGE_HOST_URL = 'https://images.test/api/1/upload'
    IMAGE_HOST_API_KEY = 'test-key'
    LOG_LEVEL = 'DEBUG'
    LOG_FILE = None
