# app.py
import atexit
import logging
import logging.handlers
from concurrent.futures import ThreadPoolExecutor
from datetime     import datetime, timezone

import click
from flask        import Flask, jsonify
from config       import Config
from extensions   import db, login_manager
from errors       import register_error_handlers


def configure_logging(app):
    app.logger.setLevel(getattr(logging, str(app.config['LOG_LEVEL']).upper(), logging.INFO))
    log_file = app.config.get('LOG_FILE')
    if log_file:
        handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding='utf-8'
        )
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(levelname)s - %(name)s - %(funcName)s:%(lineno)d - %(message)s'
        ))
        app.logger.addHandler(handler)


def create_app(config=Config, image_host=None, executor=None):
    app = Flask(__name__)
    app.config.from_object(config)
    configure_logging(app)

    # initialize extensions
    db.init_app(app)
    login_manager.init_app(app)

    # create tables
    with app.app_context():
        import models  # noqa: F401
        db.create_all()

    from history_service import HistoryService
    from history_store   import HistoryStore
    from image_host      import ImageHost
    if executor is None:
        executor = ThreadPoolExecutor(
            max_workers=app.config['RETENTION_WORKERS'],
            thread_name_prefix='history-cleanup'
        )
        # queued cleanups are drained at interpreter exit
        atexit.register(executor.shutdown)
    app.extensions['history_service'] = HistoryService(
        HistoryStore(),
        image_host or ImageHost.from_config(app.config),
        executor,
        default_limit=app.config['HISTORY_PAGE_SIZE'],
        max_limit=app.config['HISTORY_MAX_PAGE_SIZE'],
    )

    # register blueprints
    from auth    import auth_bp
    from history import history_bp
    app.register_blueprint(auth_bp)
    app.register_blueprint(history_bp)
    register_error_handlers(app)

    @app.route('/health')
    def health():
        return jsonify({
            'status': 'success',
            'message': 'Server is running',
            'environment': app.config['ENV_NAME'],
            'timestamp': datetime.now(timezone.utc).isoformat(),
        })

    @app.cli.command('prune-history')
    def prune_history():
        """Delete history older than each user's retention window."""
        deleted = app.extensions['history_service'].prune_all()
        click.echo(f"Deleted {deleted} expired history items")

    return app


if __name__ == '__main__':
    create_app().run(debug=True)
