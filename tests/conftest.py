from concurrent.futures import Future
from datetime import timedelta

import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from auth import generate_token
from config import TestConfig
from extensions import db
from history_store import HistoryStore
from models import User, utcnow

# 1x1 transparent PNG
PNG_1X1 = 'iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII='
PASSWORD = 'Passw0rd!'


class FakeImageHost:
    def __init__(self):
        self.uploads = []
        self.error = None

    def upload(self, image_bytes):
        if self.error is not None:
            raise self.error
        self.uploads.append(image_bytes)
        return f'https://images.test/i/{len(self.uploads)}.png'


class InlineExecutor:
    """Runs submitted jobs immediately so cleanup results are visible to the test."""

    def __init__(self):
        self.submitted = 0

    def submit(self, fn, *args, **kwargs):
        self.submitted += 1
        future = Future()
        future.set_result(fn(*args, **kwargs))
        return future


@pytest.fixture
def image_host():
    return FakeImageHost()


@pytest.fixture
def executor():
    return InlineExecutor()


@pytest.fixture
def app(tmp_path, image_host, executor):
    class Config(TestConfig):
        SQLALCHEMY_DATABASE_URI = 'sqlite:///' + str(tmp_path / 'test.db')

    app = create_app(Config, image_host=image_host, executor=executor)
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def service(app):
    return app.extensions['history_service']


@pytest.fixture
def make_user(app):
    def _make(email='user@example.com', capture_enabled=True, retention_days=30):
        with app.app_context():
            user = User(
                email=email,
                password=generate_password_hash(PASSWORD),
                capture_enabled=capture_enabled,
                retention_days=retention_days,
            )
            db.session.add(user)
            db.session.commit()
            return user.id
    return _make


@pytest.fixture
def user_id(make_user):
    return make_user()


@pytest.fixture
def token_for(app):
    def _token(uid):
        with app.app_context():
            return generate_token(db.session.get(User, uid))
    return _token


@pytest.fixture
def auth_headers(user_id, token_for):
    return {'Authorization': f'Bearer {token_for(user_id)}'}


@pytest.fixture
def add_item(app):
    """Insert a history item directly, ``days_ago`` controls its timestamp."""
    def _add(uid, url='https://example.com/page', title='Example', days_ago=0, seconds_ago=0):
        with app.app_context():
            item = HistoryStore().create(
                uid,
                url=url,
                title=title,
                image_url='https://images.test/i/seed.png',
                timestamp=utcnow() - timedelta(days=days_ago, seconds=seconds_ago),
            )
            return item.id
    return _add
