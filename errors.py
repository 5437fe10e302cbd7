from flask import jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from extensions import db


class ApiError(Exception):
    """Base error carrying the HTTP status it should be answered with."""

    status_code = 500
    default_message = 'Something went wrong'

    def __init__(self, message=None, status_code=None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class BadRequest(ApiError):
    status_code = 400
    default_message = 'Bad request'


class ValidationError(BadRequest):
    default_message = 'Validation failed'


class Unauthorized(ApiError):
    status_code = 401
    default_message = 'Not authorized to access this route'


class NotFound(ApiError):
    status_code = 404
    default_message = 'Resource not found'


class Conflict(ApiError):
    status_code = 409
    default_message = 'Conflict'


class UploadFailed(ApiError):
    status_code = 500
    default_message = 'Image upload failed'


class Internal(ApiError):
    status_code = 500
    default_message = 'Internal server error'


def error_response(status_code, message):
    return jsonify({'success': False, 'status': status_code, 'message': message}), status_code


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(error):
        db.session.rollback()
        if error.status_code >= 500:
            app.logger.error(f"{error.__class__.__name__}: {error.message}")
        return error_response(error.status_code, error.message)

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(error):
        db.session.rollback()
        app.logger.warning(f"Integrity error: {error.orig}")
        return error_response(409, 'Duplicate field value entered')

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return error_response(error.code, error.description)

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        app.logger.exception(f"Unhandled error: {error}")
        internal = Internal()
        return error_response(internal.status_code, internal.message)
