# users/tests/test_models.py
from django.test import TestCase

from users.models import User, TeacherProfile
from shared.constants import UserRole


class UserModelTest(TestCase):
    def test_create_user(self):
        user = User.objects.create_user(
            email="test@example.com",
            name="Test User",
            password="testpass123"
        )
        self.assertEqual(user.email, "test@example.com")
        self.assertTrue(user.check_password("testpass123"))
        self.assertFalse(user.is_staff)
        self.assertTrue(user.is_active)
        self.assertEqual(user.role, UserRole.STUDENT)

    def test_create_user_without_password_is_unusable(self):
        user = User.objects.create_user(email="imported@example.com", name="Imported")
        self.assertFalse(user.has_usable_password())

    def test_create_superuser(self):
        admin_user = User.objects.create_superuser(
            email="admin@example.com",
            name="Admin",
            password="adminpass123"
        )
        self.assertTrue(admin_user.is_staff)
        self.assertTrue(admin_user.is_superuser)
        self.assertEqual(admin_user.role, UserRole.ADMIN)
        self.assertTrue(admin_user.is_admin)

    def test_email_normalization(self):
        user = User(email='TEST@EXAMPLE.COM', name='Test')
        user.clean()
        self.assertEqual(user.email, 'test@example.com')

    def test_create_user_requires_email(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email='', name='Nobody')

    def test_role_properties(self):
        teacher = User.objects.create_user(email="t@example.com", name="Tara", role=UserRole.TEACHER)
        self.assertTrue(teacher.is_teacher)
        self.assertFalse(teacher.is_student)
        self.assertEqual(teacher.get_short_name(), "Tara")


class TeacherProfileTest(TestCase):
    def test_unknown_subject_rejected(self):
        from django.core.exceptions import ValidationError

        teacher = User.objects.create_user(email="t@example.com", name="Tara", role=UserRole.TEACHER)
        profile = TeacherProfile(user=teacher, subjects=['Guitar', 'Banjo'])
        with self.assertRaises(ValidationError):
            profile.full_clean()
