# users/managers.py
"""
CUSTOM USER MANAGER - Uses email as username
"""
from django.contrib.auth.base_user import BaseUserManager
from django.utils.translation import gettext_lazy as _

from shared.constants import UserRole


class UserManager(BaseUserManager):
    """
    Custom manager for User model with email as username.
    """

    use_in_migrations = True

    def create_user(self, email, password=None, **extra_fields):
        """
        Create and save a regular User with the given email and password.

        Args:
            email: User's email address (required)
            password: User's password (optional)
            **extra_fields: Additional user fields

        Returns:
            User instance

        Raises:
            ValueError: If email is not provided
        """
        if not email:
            raise ValueError(_('The Email must be set'))

        email = self.normalize_email(email).lower()
        extra_fields.setdefault('is_staff', False)
        extra_fields.setdefault('is_superuser', False)

        user = self.model(email=email, **extra_fields)

        if password:
            user.set_password(password)
        else:
            # Imported users sign in through a reset link
            user.set_unusable_password()

        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """
        Create and save a SuperUser with the given email and password.

        Raises:
            ValueError: If is_staff or is_superuser are not True
        """
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('role', UserRole.ADMIN)

        if extra_fields.get('is_staff') is not True:
            raise ValueError(_('Superuser must have is_staff=True.'))
        if extra_fields.get('is_superuser') is not True:
            raise ValueError(_('Superuser must have is_superuser=True.'))

        return self.create_user(email, password, **extra_fields)

    def get_by_natural_key(self, email):
        """Get user by natural key (email)."""
        return self.get(email__iexact=email)

    def students(self):
        return self.filter(role=UserRole.STUDENT, is_active=True)

    def teachers(self):
        return self.filter(role=UserRole.TEACHER, is_active=True)
