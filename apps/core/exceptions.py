"""
Domain exceptions and the DRF exception handler.
"""
import logging
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status

logger = logging.getLogger(__name__)


class WardenException(Exception):
    """Base exception for Tenant Warden errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = 'ERROR'

    def __init__(self, message, details=None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class PermissionDenied(WardenException):
    """Raised when authorization fails (role missing, permission absent, role mismatch)."""
    status_code = status.HTTP_403_FORBIDDEN
    code = 'PERMISSION_DENIED'


class InvalidFlag(WardenException):
    """Raised when a feature flag name is not in the recognized set."""
    status_code = status.HTTP_400_BAD_REQUEST
    code = 'INVALID_FLAG'


class NotFound(WardenException):
    """Raised when a role, tenant document, or history entry is absent."""
    status_code = status.HTTP_404_NOT_FOUND
    code = 'NOT_FOUND'


class RoleNotFound(NotFound):
    """No role with the requested name exists in tenant or global scope."""
    pass


class RoleDeleted(NotFound):
    """The requested role exists only as soft-deleted records."""
    pass


class StorageError(WardenException):
    """Raised when the persistence layer fails."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = 'STORAGE_ERROR'


class JobEffectError(WardenException):
    """Raised when a periodic task's effect fails."""
    code = 'JOB_EFFECT_ERROR'


class ValidationError(WardenException):
    """Raised when input validation fails."""
    status_code = status.HTTP_400_BAD_REQUEST
    code = 'VALIDATION_ERROR'


class AppendOnlyViolation(WardenException):
    """Raised on an attempt to change or remove an append-only record."""
    status_code = status.HTTP_409_CONFLICT
    code = 'APPEND_ONLY'


def custom_exception_handler(exc, context):
    """
    Custom exception handler that logs errors and returns consistent format.
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None

    if isinstance(exc, WardenException):
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            f"Domain exception: {exc.__class__.__name__}",
            extra={
                'exception': exc.message,
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
            }
        )
        return Response(
            {
                'error': exc.message,
                'code': exc.code,
                'request_id': request_id,
            },
            status=exc.status_code
        )

    # Call DRF's default exception handler first
    response = exception_handler(exc, context)

    logger.error(
        f"API Exception: {exc.__class__.__name__}",
        extra={
            'exception': str(exc),
            'request_id': request_id,
            'path': request.path if request else None,
            'method': request.method if request else None,
        },
        exc_info=response is None
    )

    # If DRF didn't handle it, return a generic 500 error
    if response is None:
        return Response(
            {
                'error': 'Internal server error',
                'detail': 'An unexpected error occurred',
                'request_id': request_id,
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    # Add request_id to all error responses
    if request_id and isinstance(response.data, dict):
        response.data['request_id'] = request_id

    return response
