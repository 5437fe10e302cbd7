# extensions.py
import sqlite3

from flask_sqlalchemy import SQLAlchemy
from flask_login      import LoginManager
from sqlalchemy       import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()
login_manager = LoginManager()


def _casefold(value):
    return value.casefold() if isinstance(value, str) else value


@event.listens_for(Engine, 'connect')
def register_sqlite_functions(dbapi_connection, connection_record):
    # SQLite's lower()/LIKE only fold ASCII; casefold() covers the rest of Unicode.
    if isinstance(dbapi_connection, sqlite3.Connection):
        dbapi_connection.create_function('casefold', 1, _casefold, deterministic=True)
