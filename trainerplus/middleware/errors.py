"""
Error handlers

Every failure leaves the API as ``{"error": <kind>, "message": ...}``.
Typed core failures carry their own status; database and validation errors
are mapped here.
"""
from flask import jsonify
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from werkzeug.exceptions import HTTPException

from trainerplus.services.errors import CoreError
from trainerplus.services.structured_logging import get_logger

logger = get_logger(__name__)

UNIQUE_MARKERS = ('unique', 'duplicate')


def error_response(kind: str, message: str, status: int, **extra):
    body = {'error': kind, 'message': message}
    body.update(extra)
    return jsonify(body), status


def register_error_handlers(app):

    @app.errorhandler(CoreError)
    def on_core_error(e):
        status = e.kind.http_status
        if status >= 500:
            logger.error("Core error", kind=e.kind.value, error_message=e.message)
        return jsonify(e.to_dict()), status

    @app.errorhandler(ValidationError)
    def on_validation_error(e):
        details = e.errors(include_url=False, include_context=False, include_input=False)
        return error_response('validation_error', 'Request validation failed', 422, details=details)

    @app.errorhandler(IntegrityError)
    def on_integrity_error(e):
        reason = str(getattr(e, 'orig', None) or e)
        logger.warning("Integrity violation", error=reason)
        if any(marker in reason.lower() for marker in UNIQUE_MARKERS):
            return error_response('conflict', 'Record already exists', 409)
        return error_response('bad_request', 'Referenced record is missing or invalid', 400)

    @app.errorhandler(OperationalError)
    def on_operational_error(e):
        logger.error("Database unavailable", error=str(getattr(e, 'orig', None) or e))
        return error_response('database_error', 'Database is unavailable, retry later', 503)

    @app.errorhandler(HTTPException)
    def on_http_exception(e):
        kind = (e.name or 'error').lower().replace(' ', '_')
        return error_response(kind, e.description, e.code)

    @app.errorhandler(Exception)
    def on_unexpected(e):
        logger.exception("Unhandled error", error=str(e))
        return error_response('internal_error', 'Unexpected server error', 500)
