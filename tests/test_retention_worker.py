import atexit
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from flask import current_app, has_app_context

from app import create_app
from config import TestConfig
from extensions import db
from models import HistoryItem
from conftest import PNG_1X1


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix='history-cleanup-test')
    yield pool
    pool.shutdown(wait=True)


def test_cleanup_runs_after_add_returns(app, service, make_user, add_item, executor, monkeypatch):
    uid = make_user(retention_days=1)
    add_item(uid, 'https://stale.example.com/', days_ago=5)

    started = threading.Event()
    release = threading.Event()
    seen = {}
    delete_older_than = service.delete_older_than

    def gated(user_id, days):
        seen['thread'] = threading.current_thread().name
        seen['app'] = has_app_context() and current_app._get_current_object()
        started.set()
        assert release.wait(timeout=5)
        return delete_older_than(user_id, days)
    monkeypatch.setattr(service, 'delete_older_than', gated)

    with app.app_context():
        item = service.add_history_item(uid, {
            'imageBase64': PNG_1X1, 'url': 'https://example.com/page', 'title': 'Example',
        })
        assert started.wait(timeout=5)
        # add has returned while the cleanup is still parked
        assert HistoryItem.query.filter_by(user_id=uid).count() == 2
        item_id = item.id
        db.session.remove()

    release.set()
    executor.shutdown(wait=True)

    assert seen['thread'].startswith('history-cleanup-test')
    assert seen['app'] is app
    with app.app_context():
        remaining = HistoryItem.query.filter_by(user_id=uid).all()
        assert [i.id for i in remaining] == [item_id]


def test_cleanup_errors_in_worker_thread_are_logged(app, service, user_id, executor, monkeypatch, caplog):
    def explode(*args):
        raise RuntimeError('database is locked')
    monkeypatch.setattr(service, 'delete_older_than', explode)

    with app.app_context():
        service.add_history_item(user_id, {
            'imageBase64': PNG_1X1, 'url': 'https://example.com/page', 'title': 'Example',
        })
    executor.shutdown(wait=True)

    assert 'Error cleaning up old history items' in caplog.text


def test_default_executor_is_shut_down_at_exit(tmp_path, image_host, monkeypatch):
    registered = []
    monkeypatch.setattr(atexit, 'register', registered.append)

    class Config(TestConfig):
        SQLALCHEMY_DATABASE_URI = 'sqlite:///' + str(tmp_path / 'exit.db')

    app = create_app(Config, image_host=image_host)
    pool = app.extensions['history_service'].executor

    assert isinstance(pool, ThreadPoolExecutor)
    assert registered == [pool.shutdown]
    pool.shutdown(wait=True)
    with app.app_context():
        db.engine.dispose()


def test_injected_executor_is_left_to_its_owner(tmp_path, image_host, executor, monkeypatch):
    registered = []
    monkeypatch.setattr(atexit, 'register', registered.append)

    class Config(TestConfig):
        SQLALCHEMY_DATABASE_URI = 'sqlite:///' + str(tmp_path / 'owned.db')

    app = create_app(Config, image_host=image_host, executor=executor)

    assert app.extensions['history_service'].executor is executor
    assert registered == []
    with app.app_context():
        db.engine.dispose()
