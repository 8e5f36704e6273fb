# config/views.py
"""
Project-level views: health check and JSON error handlers.
"""

from django.http import JsonResponse
from django.utils import timezone


# ============================================================================
# HEALTH
# ============================================================================

def health_check_view(request):
    """System health check endpoint."""
    from django.db import connection
    from django.db.utils import OperationalError

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
        db_status = True
    except OperationalError:
        db_status = False

    status_code = 200 if db_status else 503

    return JsonResponse({
        'status': 'healthy' if db_status else 'unhealthy',
        'database': 'connected' if db_status else 'disconnected',
        'timestamp': timezone.now().isoformat(),
    }, status=status_code)


# ============================================================================
# ERROR HANDLERS
# ============================================================================

def _error_response(error_code, error_message):
    return JsonResponse({
        'error': error_message,
        'error_code': error_code,
    }, status=error_code)


def handler404(request, exception):
    return _error_response(404, 'The resource you are looking for does not exist.')


def handler500(request):
    return _error_response(500, 'Something went wrong on our end.')


def handler403(request, exception):
    return _error_response(403, 'You do not have permission to access this resource.')


def handler400(request, exception):
    return _error_response(400, 'Your request could not be processed.')
