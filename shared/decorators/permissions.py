# shared/decorators/permissions.py
"""
ROLE-BASED ACCESS CONTROL
=========================

Admins manage everything, teachers run their lessons, students see their own
records. All role logic flows through PermissionChecker for consistency.
"""

import logging
from functools import wraps

from django.core.exceptions import PermissionDenied

from shared.constants import UserRole

logger = logging.getLogger(__name__)


class PermissionChecker:
    """Centralized permission validation used across entire system."""

    @staticmethod
    def has_role(user, roles) -> bool:
        """
        Check whether a user holds one of the given roles.

        Superusers pass every check.
        """
        if not user or not user.is_authenticated:
            return False

        if user.is_superuser:
            return True

        return getattr(user, 'role', None) in roles

    @staticmethod
    def is_admin(user) -> bool:
        return PermissionChecker.has_role(user, (UserRole.ADMIN,))

    @staticmethod
    def can_view_student(user, student_id) -> bool:
        """Admins and teachers see every student; students only themselves."""
        if PermissionChecker.has_role(user, (UserRole.ADMIN, UserRole.TEACHER)):
            return True
        return user.is_authenticated and str(user.pk) == str(student_id)


def require_role(*roles):
    """
    Restrict a view to users holding one of `roles`.

    Usage:
        @api_view(['POST'])
        @require_role(UserRole.ADMIN)
        def create_pack_view(request): ...
    """
    def decorator(view_func):
        @wraps(view_func)
        def _wrapped_view(request, *args, **kwargs):
            if not PermissionChecker.has_role(request.user, roles):
                logger.warning(
                    f"Role check failed for user {getattr(request.user, 'pk', None)} "
                    f"on {view_func.__name__}: requires {', '.join(roles)}"
                )
                raise PermissionDenied("You do not have permission to perform this action.")
            return view_func(request, *args, **kwargs)
        return _wrapped_view
    return decorator


def require_admin(view_func):
    """Shortcut for require_role(UserRole.ADMIN)."""
    return require_role(UserRole.ADMIN)(view_func)
