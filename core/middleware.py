# core/middleware.py
"""
Request logging and exception translation for the JSON API.
"""
import logging

from django.conf import settings
from django.http import JsonResponse

from .exceptions import MusicSchoolException

logger = logging.getLogger(__name__)


# ============ EXCEPTION HANDLING MIDDLEWARE ============

class ExceptionHandlingMiddleware:
    """Handles MusicSchoolException and general server errors."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        return self.get_response(request)

    def process_exception(self, request, exception):
        # Business logic error
        if isinstance(exception, MusicSchoolException):
            logger.warning(f"Business exception on {request.path}: {exception}")
            return JsonResponse(exception.as_dict(), status=exception.status_code)

        # System error
        logger.error(f"System exception on {request.path}: {exception}", exc_info=True)
        if settings.DEBUG:
            # Let Django render its debug page
            return None

        return JsonResponse({
            'error': "System error. Our team has been notified.",
            'error_code': 'SERVER_ERROR',
        }, status=500)


# ============ REQUEST LOGGING MIDDLEWARE ============

class RequestLoggingMiddleware:
    """Debug-level structured request/response logging."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        # Skip logging for static files and health checks
        if self._should_skip_logging(request):
            return self.get_response(request)

        if settings.DEBUG:
            logger.debug("Request", extra={
                "method": request.method,
                "path": request.path,
                "ip": self._get_client_ip(request),
                "user": getattr(request.user, "id", None) if hasattr(request, 'user') else None,
            })

        response = self.get_response(request)

        if settings.DEBUG:
            logger.debug("Response", extra={
                "path": request.path,
                "status": getattr(response, "status_code", None),
            })

        return response

    def _should_skip_logging(self, request) -> bool:
        """Skip logging for noisy requests."""
        skip_paths = ['/static/', '/media/', '/favicon.ico', '/health/']
        return any(request.path.startswith(path) for path in skip_paths)

    def _get_client_ip(self, request) -> str:
        xff = request.META.get("HTTP_X_FORWARDED_FOR")
        return xff.split(",")[0] if xff else request.META.get("REMOTE_ADDR", "unknown")
