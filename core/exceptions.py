# core/exceptions.py
class MusicSchoolException(Exception):
    """Base exception for all music school administration errors."""

    status_code = 400

    def __init__(self, message=None, user_friendly=False, details=None, error_code=None):
        self.message = message or "An error occurred"
        self.user_friendly = user_friendly
        self.details = details or {}
        self.error_code = error_code
        super().__init__(self.message)

    def as_dict(self):
        return {
            'error': self.message if self.user_friendly else "Operation failed.",
            'error_code': self.error_code,
            'details': self.details,
        }


class ValidationError(MusicSchoolException):
    """Malformed input or a missing required field."""
    def __init__(self, message=None, user_friendly=True, details=None):
        super().__init__(message or "Validation failed", user_friendly, details, "VALIDATION_ERROR")


class NotFoundError(MusicSchoolException):
    """A referenced student, teacher, pack or plan cannot be resolved."""
    status_code = 404

    def __init__(self, message=None, user_friendly=True, details=None):
        super().__init__(message or "Record not found", user_friendly, details, "NOT_FOUND")


class ConflictError(MusicSchoolException):
    """Scheduling overlap, duo capacity exceeded or an exhausted pack."""
    status_code = 409

    def __init__(self, message=None, user_friendly=True, details=None, conflicting_session=None):
        self.conflicting_session = conflicting_session
        details = dict(details or {})
        if conflicting_session is not None:
            details.setdefault('conflicting_session_id', getattr(conflicting_session, 'id', None))
        super().__init__(message or "Scheduling conflict", user_friendly, details, "CONFLICT")


class RolePermissionError(MusicSchoolException):
    """Authorization and permission-related errors."""
    status_code = 403

    def __init__(self, message=None, user_friendly=True, details=None):
        super().__init__(message or "Insufficient permissions", user_friendly, details, "PERMISSION_ERROR")


class TransportError(MusicSchoolException):
    """The database or file storage call underneath a service failed."""
    status_code = 503

    def __init__(self, message=None, user_friendly=False, details=None):
        super().__init__(message or "Data store unavailable", user_friendly, details, "TRANSPORT_ERROR")
