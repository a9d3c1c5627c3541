"""
Domain error hierarchy and the DRF exception handler that renders it.

Services raise these exceptions; the HTTP adapter never builds error
payloads by hand.
"""
import logging
import uuid
from typing import Any, Optional

from rest_framework import status
from rest_framework.exceptions import (
    APIException,
    MethodNotAllowed,
    NotAuthenticated,
    NotFound,
    ParseError,
    PermissionDenied,
    ValidationError as DRFValidationError,
)
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_default_exception_handler

logger = logging.getLogger(__name__)


class VenueServiceError(Exception):
    """Base class for every error raised by the venue services."""

    code = 'SERVER_ERROR'
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(VenueServiceError):
    """Invalid input, rejected before the store is touched."""

    code = 'VALIDATION_ERROR'
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(VenueServiceError):
    code = 'NOT_FOUND'
    status_code = status.HTTP_404_NOT_FOUND


class PermissionDeniedError(VenueServiceError):
    code = 'FORBIDDEN'
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(VenueServiceError):
    """Duplicate review for (user, venue) or duplicate vote for (user, review)."""

    code = 'CONFLICT'
    status_code = status.HTTP_409_CONFLICT


class StoreError(VenueServiceError):
    """Connectivity or transaction failure. The whole unit has rolled back."""

    code = 'STORE_ERROR'
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


def _new_trace_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


def error_response(code: str, message: str, details: Any = None, status_code: int = 400) -> Response:
    """
    Build the common error payload.

    Shape: { "error": { "code", "message", "details", "trace_id" } }
    """
    payload = {
        'error': {
            'code': code,
            'message': message,
            'details': details or {},
            'trace_id': _new_trace_id(),
        }
    }
    return Response(payload, status=status_code)


def custom_exception_handler(exc: Exception, context: dict) -> Optional[Response]:
    """
    DRF EXCEPTION_HANDLER: renders domain errors and DRF errors in one format.
    Anything else is left to DRF (and ultimately Django) so it is not hidden.
    """
    if isinstance(exc, VenueServiceError):
        if isinstance(exc, StoreError):
            logger.error(f"Store failure while handling request: {exc.message}")
        return error_response(exc.code, exc.message, exc.details, exc.status_code)

    resp = drf_default_exception_handler(exc, context)
    if resp is None:
        return None

    code = 'API_ERROR'
    message = 'api error'
    details: Any = None

    if isinstance(exc, DRFValidationError):
        code = 'VALIDATION_ERROR'
        message = 'validation error'
        details = resp.data
    elif isinstance(exc, NotAuthenticated):
        code = 'UNAUTHORIZED'
        message = 'authentication required'
    elif isinstance(exc, PermissionDenied):
        code = 'FORBIDDEN'
        message = 'forbidden'
    elif isinstance(exc, NotFound):
        code = 'NOT_FOUND'
        message = 'not found'
    elif isinstance(exc, MethodNotAllowed):
        code = 'METHOD_NOT_ALLOWED'
        message = 'method not allowed'
    elif isinstance(exc, ParseError):
        code = 'BAD_REQUEST'
        message = 'request parse error'
    elif isinstance(exc, APIException):
        message = str(getattr(exc, 'detail', message)) or message

    resp.data = {
        'error': {
            'code': code,
            'message': message,
            'details': details or {},
            'trace_id': _new_trace_id(),
        }
    }
    return resp
