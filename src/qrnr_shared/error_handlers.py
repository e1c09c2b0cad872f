"""
Centralized error handlers for Flask applications.
"""

from http import HTTPStatus

from flask import Flask, jsonify
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from qrnr_shared.errors import AppError, ErrorCode, RateLimitedError
from qrnr_shared.logging_config import get_logger
from qrnr_shared.serializers import error_response
from qrnr_shared.services.payment_providers import PaymentError

logger = get_logger(__name__)

_HTTP_CODES = {
    400: ErrorCode.VALIDATION_ERROR.value,
    401: ErrorCode.AUTH_MISSING.value,
    403: ErrorCode.AUTH_FORBIDDEN.value,
    404: ErrorCode.NOT_FOUND.value,
    405: "METHOD_NOT_ALLOWED",
    409: ErrorCode.CONFLICT.value,
    429: ErrorCode.RATE_LIMITED.value,
}


def register_error_handlers(app: Flask) -> None:
    """
    Register centralized error handlers for the Flask app.

    Args:
        app: Flask application instance
    """

    @app.errorhandler(AppError)
    def handle_app_error(e: AppError):
        """Handle controlled errors raised by the gate and the services."""
        if e.status >= 500:
            logger.error(f"{e.code.value}: {e.message}", exc_info=True)
        elif e.code in (ErrorCode.AUTH_MISSING, ErrorCode.AUTH_INVALID, ErrorCode.AUTH_FORBIDDEN):
            logger.warning(f"Auth failure {e.code.value}: {e.message}")
        else:
            logger.info(f"{e.detail_code or e.code.value}: {e.message}")

        response = jsonify(e.to_dict())
        response.status_code = int(e.status)
        if isinstance(e, RateLimitedError):
            response.headers["Retry-After"] = str(e.retry_after)
        return response

    @app.errorhandler(PydanticValidationError)
    def handle_pydantic_validation_error(e: PydanticValidationError):
        """Handle Pydantic validation errors."""
        logger.warning(f"Pydantic validation error: {e.error_count()} error(s)")
        details = e.errors(include_url=False, include_context=False, include_input=False)
        return jsonify(
            error_response("입력값이 올바르지 않습니다.", ErrorCode.VALIDATION_ERROR.value, {"errors": details})
        ), HTTPStatus.BAD_REQUEST

    @app.errorhandler(PaymentError)
    def handle_payment_error(e: PaymentError):
        """Provider failures keep the provider's status and body."""
        logger.error(f"Payment provider error ({e.status_code}): {e.message}")
        body = error_response(e.message, e.provider_code or ErrorCode.UPSTREAM_FAILURE.value)
        body["category"] = ErrorCode.UPSTREAM_FAILURE.value
        if e.body is not None:
            body["provider"] = e.body
        return jsonify(body), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e: SQLAlchemyError):
        """Handle database errors."""
        logger.error(f"Database error: {e}", exc_info=True)
        return jsonify(
            error_response("일시적인 서버 오류입니다.", ErrorCode.UPSTREAM_FAILURE.value)
        ), HTTPStatus.INTERNAL_SERVER_ERROR

    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        """Handle HTTP exceptions from Werkzeug."""
        logger.warning(f"HTTP exception {e.code}: {e.description}")
        code = _HTTP_CODES.get(e.code or 500, f"HTTP_{e.code}")
        response = e.get_response()
        response.data = app.json.dumps(error_response(e.description or str(e), code))
        response.content_type = "application/json"
        return response

    @app.errorhandler(Exception)
    def handle_generic_exception(e: Exception):
        """Handle any unhandled exceptions."""
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        return jsonify(
            error_response("일시적인 서버 오류입니다.", ErrorCode.UPSTREAM_FAILURE.value)
        ), HTTPStatus.INTERNAL_SERVER_ERROR
