# users/services.py
"""
User lookups and student onboarding shared by the scheduling, billing and
bulk import code.
"""
import logging
from typing import Optional, List, Tuple

from django.db import transaction, DatabaseError

from core.exceptions import NotFoundError, ValidationError, TransportError
from shared.constants import UserRole

from .models import User, StudentProfile

logger = logging.getLogger(__name__)


def split_subjects(raw: Optional[str]) -> List[str]:
    """Split a comma-separated subject list, dropping blanks."""
    if not raw:
        return []
    return [part.strip() for part in raw.split(',') if part.strip()]


class UserService:
    """Role-aware user resolution."""

    @staticmethod
    def get_by_email(email: str, role: Optional[str] = None) -> Optional[User]:
        """
        Find an active user by email, optionally restricted to a role.

        Returns:
            User or None when no match exists
        """
        if not email:
            return None

        queryset = User.objects.filter(email__iexact=email.strip(), is_active=True)
        if role:
            queryset = queryset.filter(role=role)
        return queryset.first()

    @staticmethod
    def resolve(user_id=None, email=None, role=None, label='User') -> User:
        """
        Resolve a user by direct id or by email.

        Args:
            user_id: Primary key, takes precedence when given
            email: Natural key used when no id is given
            role: Required role of the resolved user
            label: Used in the error message ("Student", "Teacher")

        Raises:
            NotFoundError: If neither identifier matches a user with `role`
        """
        if user_id not in (None, ''):
            try:
                queryset = User.objects.filter(pk=user_id)
                if role:
                    queryset = queryset.filter(role=role)
                user = queryset.first()
            except (ValueError, TypeError):
                user = None
            if user is None:
                raise NotFoundError(f"{label} with id {user_id} not found")
            return user

        user = UserService.get_by_email(email, role=role)
        if user is None:
            raise NotFoundError(f"{label} with email {email} not found")
        return user

    @staticmethod
    def email_exists(email: str) -> bool:
        return User.objects.filter(email__iexact=email.strip()).exists()

    @staticmethod
    @transaction.atomic
    def create_student(name: str, email: str, preferred_subjects=None, notes: str = '') -> Tuple[User, bool]:
        """
        Create a student user with a profile, or return the existing one.

        Returns:
            tuple: (user, created)

        Raises:
            ValidationError: If name or email is blank
            TransportError: If the database write fails
        """
        if not name or not email:
            raise ValidationError("Missing required fields: name and email are required")

        existing = User.objects.filter(email__iexact=email.strip()).first()
        if existing:
            return existing, False

        try:
            user = User.objects.create_user(
                email=email.strip(),
                name=name.strip(),
                role=UserRole.STUDENT,
            )
            StudentProfile.objects.create(
                user=user,
                preferred_subjects=list(preferred_subjects or []),
                notes=notes or '',
            )
        except DatabaseError as e:
            logger.error(f"Failed to create student {email}: {str(e)}", exc_info=True)
            raise TransportError(f"Could not create student {email}") from e

        logger.info(f"Student created: {user.email} (id={user.pk})")
        return user, True
