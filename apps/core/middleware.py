"""
Core middleware for request processing.
"""
import uuid
import logging
import threading
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)

_context = threading.local()


def set_request_context(request_id=None, tenant_id=None):
    """Bind request_id/tenant_id to the current thread for log records."""
    if request_id is not None:
        _context.request_id = request_id
    if tenant_id is not None:
        _context.tenant_id = tenant_id


def clear_request_context():
    _context.__dict__.clear()


class RequestIDMiddleware(MiddlewareMixin):
    """
    Inject a unique request_id into each request for tracing.
    The request_id is added to the request object and to log records.
    """

    def process_request(self, request):
        """Generate and attach request_id to the request."""
        request_id = request.META.get('HTTP_X_REQUEST_ID') or str(uuid.uuid4())
        request.request_id = request_id
        clear_request_context()
        set_request_context(request_id=request_id)

    def process_response(self, request, response):
        """Add request_id to response headers."""
        if hasattr(request, 'request_id'):
            response['X-Request-ID'] = request.request_id
        clear_request_context()
        return response


class RequestContextFilter(logging.Filter):
    """
    Add request_id and tenant_id to log records from thread-local storage.
    """

    def filter(self, record):
        if not getattr(record, 'request_id', None):
            request_id = getattr(_context, 'request_id', None)
            if request_id:
                record.request_id = request_id

        if not getattr(record, 'tenant_id', None):
            tenant_id = getattr(_context, 'tenant_id', None)
            if tenant_id:
                record.tenant_id = tenant_id

        return True
