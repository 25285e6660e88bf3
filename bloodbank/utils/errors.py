from flask import jsonify
from sqlalchemy.exc import (
    DataError, DisconnectionError, IntegrityError, InterfaceError, OperationalError,
)
from werkzeug.exceptions import HTTPException, NotFound
import logging

logger = logging.getLogger(__name__)


class ErrorType:
    DATABASE_CONNECTION = 'database_connection'
    VALIDATION = 'validation'
    AUTHENTICATION = 'authentication'
    NOT_FOUND = 'not_found'
    SERVER = 'server'


STATUS_CODES = {
    ErrorType.VALIDATION: 400,
    ErrorType.AUTHENTICATION: 403,
    ErrorType.NOT_FOUND: 404,
    ErrorType.DATABASE_CONNECTION: 503,
    ErrorType.SERVER: 500,
}


class AppError(Exception):
    """
    Application error carrying a taxonomy type, mapped to an HTTP status by the route layer
    """

    def __init__(self, message, error_type=ErrorType.SERVER, details=None):
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.details = details

    @property
    def status_code(self):
        return STATUS_CODES.get(self.error_type, 500)

    def to_dict(self):
        data = {'success': False, 'error': self.message}
        if self.details:
            data['details'] = self.details
        return data


def classify_error(error, operation):
    """
    Re-classify an arbitrary exception into an AppError tagged with the operation name
    """
    if isinstance(error, AppError):
        return error

    if isinstance(error, (OperationalError, InterfaceError, DisconnectionError)):
        return AppError(f'{operation}: database connection failed',
                        ErrorType.DATABASE_CONNECTION, details=str(getattr(error, 'orig', None) or error))

    if isinstance(error, (IntegrityError, DataError)):
        return AppError(f'{operation}: invalid data', ErrorType.VALIDATION,
                        details=str(getattr(error, 'orig', None) or error))

    if isinstance(error, NotFound):
        return AppError(f'{operation}: resource not found', ErrorType.NOT_FOUND)

    return AppError(f'{operation} failed', ErrorType.SERVER, details=str(error))


def log_error(error, operation):
    app_error = classify_error(error, operation)
    logger.error(f"Error in {operation}: {str(error)} ({app_error.error_type})")
    return app_error


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(error):
        if error.status_code >= 500:
            app.logger.error(f"{error.message}: {error.details}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'success': False, 'error': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        app_error = classify_error(error, 'Request')
        app.logger.exception(f"Unhandled error: {str(error)}")
        return jsonify(app_error.to_dict()), app_error.status_code


def form_error(form):
    """
    AppError for a failed form validation; the first message becomes the error text
    """
    for field, messages in form.errors.items():
        if messages:
            return AppError(f'{field}: {messages[0]}', ErrorType.VALIDATION, details=form.errors)
    return AppError('Invalid input', ErrorType.VALIDATION)
