"""
Error taxonomy shared by the lifecycle services and the HTTP layer.

Every domain failure carries a stable ``code`` (the mobile client branches on
it) and the HTTP status it maps to. Routes never build error responses for
these by hand; they raise and the handler registered in ``register_error_handlers``
renders the JSON envelope.
"""
import logging

from flask import jsonify
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class LifecycleError(Exception):
    """Base class for failures reported to the caller."""
    code = 'INTERNAL'
    status_code = 500

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__

    def to_dict(self):
        return {'success': False, 'error': self.message, 'code': self.code}


class NotFound(LifecycleError):
    code = 'NOT_FOUND'
    status_code = 404


class Unauthenticated(LifecycleError):
    code = 'UNAUTHENTICATED'
    status_code = 401


class Forbidden(LifecycleError):
    code = 'FORBIDDEN'
    status_code = 403


class InvalidArgument(LifecycleError):
    code = 'INVALID_ARGUMENT'
    status_code = 400


class FailedPrecondition(LifecycleError):
    code = 'FAILED_PRECONDITION'
    status_code = 400


class Conflict(LifecycleError):
    code = 'CONFLICT'
    status_code = 409


class AlreadyExists(Conflict):
    code = 'ALREADY_EXISTS'


class DeadlineExceeded(LifecycleError):
    code = 'DEADLINE_EXCEEDED'
    status_code = 504


class Internal(LifecycleError):
    code = 'INTERNAL'
    status_code = 500


_TIMEOUT_MARKERS = (
    'statement timeout',
    'canceling statement',
    'database is locked',
    'lock timeout',
)


def is_timeout_error(error):
    """True when the driver gave up on a statement because of our timeout."""
    if not isinstance(error, OperationalError):
        return False
    text = str(getattr(error, 'orig', error)).lower()
    return any(marker in text for marker in _TIMEOUT_MARKERS)


def register_error_handlers(app):
    """Render LifecycleError and unexpected failures as JSON envelopes."""
    from telemed.extensions import db

    @app.errorhandler(LifecycleError)
    def handle_lifecycle_error(error):
        if error.status_code >= 500:
            logger.error("%s: %s", error.code, error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_store_error(error):
        db.session.rollback()
        if is_timeout_error(error):
            logger.warning("Store call exceeded the request timeout: %s", error)
            return jsonify(DeadlineExceeded('Request timed out, please retry').to_dict()), 504
        logger.error("Store failure: %s", error, exc_info=True)
        return jsonify(Internal('Internal server error').to_dict()), 500

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({
            'success': False,
            'error': 'Endpoint not found',
            'code': NotFound.code
        }), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({
            'success': False,
            'error': 'Method not allowed',
            'code': InvalidArgument.code
        }), 405

    @app.errorhandler(Exception)
    def handle_exception(e):
        if isinstance(e, HTTPException):
            return jsonify({
                'success': False,
                'error': e.description,
                'code': InvalidArgument.code if e.code and e.code < 500 else Internal.code
            }), e.code
        db.session.rollback()
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Internal server error. Check server logs for details.',
            'code': Internal.code
        }), 500
