# core/tests/test_middleware.py
import json

from django.test import RequestFactory, SimpleTestCase, TestCase, override_settings
from django.urls import reverse

from core.exceptions import (
    ConflictError, MusicSchoolException, NotFoundError, RolePermissionError,
    TransportError, ValidationError,
)
from core.middleware import ExceptionHandlingMiddleware, RequestLoggingMiddleware
from lessons.conflicts import SessionSlot


class ExceptionTaxonomyTest(SimpleTestCase):
    def test_status_codes_and_error_codes(self):
        cases = [
            (ValidationError("bad"), 400, 'VALIDATION_ERROR'),
            (NotFoundError("gone"), 404, 'NOT_FOUND'),
            (ConflictError("busy"), 409, 'CONFLICT'),
            (RolePermissionError("no"), 403, 'PERMISSION_ERROR'),
            (TransportError("down"), 503, 'TRANSPORT_ERROR'),
        ]
        for exception, status_code, error_code in cases:
            with self.subTest(error_code=error_code):
                self.assertIsInstance(exception, MusicSchoolException)
                self.assertEqual(exception.status_code, status_code)
                self.assertEqual(exception.as_dict()['error_code'], error_code)

    def test_transport_errors_hide_their_message(self):
        self.assertEqual(TransportError("connection refused").as_dict()['error'], "Operation failed.")
        self.assertEqual(ValidationError("Duration must be greater than zero").as_dict()['error'],
                         "Duration must be greater than zero")

    def test_conflict_carries_session_id(self):
        slot = SessionSlot(id=42)
        error = ConflictError("Teacher is busy", conflicting_session=slot)
        self.assertIs(error.conflicting_session, slot)
        self.assertEqual(error.details, {'conflicting_session_id': 42})


class ExceptionHandlingMiddlewareTest(SimpleTestCase):
    def setUp(self):
        self.factory = RequestFactory()
        self.middleware = ExceptionHandlingMiddleware(lambda request: None)

    def test_business_exception_becomes_json(self):
        request = self.factory.get('/api/lessons/sessions/')
        response = self.middleware.process_exception(request, NotFoundError("Teacher with id 7 not found"))

        self.assertEqual(response.status_code, 404)
        self.assertEqual(json.loads(response.content), {
            'error': "Teacher with id 7 not found",
            'error_code': 'NOT_FOUND',
            'details': {},
        })

    @override_settings(DEBUG=False)
    def test_system_error_is_generic(self):
        request = self.factory.get('/api/billing/fee-plans/')
        with self.assertLogs('core.middleware', level='ERROR'):
            response = self.middleware.process_exception(request, RuntimeError("boom"))

        self.assertEqual(response.status_code, 500)
        self.assertEqual(json.loads(response.content)['error_code'], 'SERVER_ERROR')

    @override_settings(DEBUG=True)
    def test_system_error_falls_through_in_debug(self):
        request = self.factory.get('/api/billing/fee-plans/')
        with self.assertLogs('core.middleware', level='ERROR'):
            self.assertIsNone(self.middleware.process_exception(request, RuntimeError("boom")))


class RequestLoggingMiddlewareTest(SimpleTestCase):
    def test_skips_static_paths(self):
        middleware = RequestLoggingMiddleware(lambda request: 'response')
        request = RequestFactory().get('/static/app.css')
        self.assertTrue(middleware._should_skip_logging(request))
        self.assertEqual(middleware(request), 'response')

    def test_client_ip_prefers_forwarded_for(self):
        middleware = RequestLoggingMiddleware(lambda request: None)
        request = RequestFactory().get('/', HTTP_X_FORWARDED_FOR='10.0.0.1, 10.0.0.2')
        self.assertEqual(middleware._get_client_ip(request), '10.0.0.1')


class HealthCheckTest(TestCase):
    def test_health(self):
        response = self.client.get(reverse('health_check'))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['database'], 'connected')
