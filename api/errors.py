from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError
import logging

from utils.exceptions import AuthError, SessionPersistenceError

logger = logging.getLogger(__name__)

# Public messages per code. Internal exception messages never reach the client.
AUTH_MESSAGES = {
    "INVALID_CREDENTIALS": "Invalid email or password",
    "INVALID_TOKEN": "Invalid or expired token",
    "UNAUTHORIZED": "Authentication required",
}

HTTP_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
}


def error_response(error: str, message: str, status: int, details: dict | None = None):
    payload = {"error": error, "message": message, "status": status}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def register_error_handlers(app):
    # Every authentication failure gets the same shape; only the code differs
    @app.errorhandler(AuthError)
    def handle_auth_error(err: AuthError):
        logger.info("authentication failed: %s: %s", err.__class__.__name__, err)
        return error_response(err.code, AUTH_MESSAGES.get(err.code, AUTH_MESSAGES["UNAUTHORIZED"]), err.status_code)

    # The session store could not record a session: fail the request, never degrade
    @app.errorhandler(SessionPersistenceError)
    def handle_persistence_error(err: SessionPersistenceError):
        logging.exception("Session persistence failure", exc_info=err)
        return error_response(err.code, "Could not establish a session, please retry", err.status_code)

    # Marshmallow validation errors map to 422
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        # err.messages contains field-level details
        return error_response("VALIDATION_ERROR", "Invalid input", 422, details=err.messages)

    # Integrity errors (unique constraints, FK violations)
    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        message = str(getattr(err, "orig", err))
        if current_app and current_app.debug:
            logging.exception("Unhandled exception", exc_info=err)
        if "unique" in message.lower():
            return error_response("CONFLICT", "Unique constraint violated.", 409)
        return error_response("BAD_REQUEST", "Integrity error.", 400)

    # Werkzeug HTTPExceptions (abort(...)) keep their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = err.code or 400
        return error_response(HTTP_CODES.get(status, "HTTP_ERROR"), err.description, status)

    # 500 Internal Error (catch-all)
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logging.exception("Unhandled exception", exc_info=err)
        details = None
        # In dev, include exception details to speed up debugging
        if current_app and current_app.debug:
            details = {"type": err.__class__.__name__, "message": str(err)}
        return error_response("INTERNAL_ERROR", "An unexpected error occurred", 500, details=details)
