"""
Application error taxonomy.

Every failure that reaches a client is an ``AppError`` (or is converted into
one by the handlers registered in ``app.register_error_handlers``) and is
rendered as::

    {"success": false, "code": "...", "message": "...", "messageAr": "...",
     "details": {...}}

Route handlers and services raise these directly; they never build error
responses by hand.
"""
from datetime import datetime, timezone


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    code = 'INTERNAL_ERROR'
    status_code = 500
    default_message = 'An unexpected error occurred'
    default_message_ar = 'حدث خطأ غير متوقع'

    def __init__(self, message=None, message_ar=None, details=None):
        self.message = message or self.default_message
        self.message_ar = message_ar or self.default_message_ar
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)
        super().__init__(self.message)

    def to_dict(self):
        payload = {
            'success': False,
            'code': self.code,
            'message': self.message,
            'messageAr': self.message_ar,
        }
        if self.details:
            payload['details'] = self.details
        return payload


class ValidationError(AppError):
    code = 'VALIDATION_ERROR'
    status_code = 400
    default_message = 'Validation failed'
    default_message_ar = 'البيانات المدخلة غير صالحة'

    def __init__(self, message=None, message_ar=None, field_errors=None, details=None):
        self.field_errors = field_errors or {}
        details = dict(details or {})
        if self.field_errors:
            details['fieldErrors'] = self.field_errors
        super().__init__(message, message_ar, details)


class AuthenticationError(AppError):
    code = 'AUTHENTICATION_ERROR'
    status_code = 401
    default_message = 'Unauthorized'
    default_message_ar = 'غير مصرح'


class AuthorizationError(AppError):
    code = 'AUTHORIZATION_ERROR'
    status_code = 403
    default_message = 'No permission'
    default_message_ar = 'لا تملك الصلاحية'

    def __init__(self, message=None, message_ar=None, required_permission=None):
        self.required_permission = required_permission
        details = {'requiredPermission': required_permission} if required_permission else None
        super().__init__(message, message_ar, details)


class NotFoundError(AppError):
    code = 'NOT_FOUND_ERROR'
    status_code = 404
    default_message = 'Resource not found'
    default_message_ar = 'العنصر غير موجود'

    def __init__(self, message=None, message_ar=None, resource_type=None, resource_id=None):
        self.resource_type = resource_type
        self.resource_id = resource_id
        details = None
        if resource_type:
            details = {'resourceType': resource_type, 'resourceId': resource_id}
        super().__init__(message, message_ar, details)


class ConflictError(AppError):
    code = 'CONFLICT_ERROR'
    status_code = 409
    default_message = 'Already processed'
    default_message_ar = 'تمت المعالجة مسبقاً'


class RateLimitError(AppError):
    code = 'RATE_LIMIT_ERROR'
    status_code = 429
    default_message = 'Too many requests. Please try again later.'
    default_message_ar = 'عدد كبير جداً من الطلبات. يرجى المحاولة لاحقاً.'

    def __init__(self, message=None, message_ar=None, retry_after=60):
        self.retry_after = retry_after
        super().__init__(message, message_ar, {'retryAfter': retry_after})


class DatabaseError(AppError):
    code = 'DATABASE_ERROR'
    status_code = 500
    default_message = 'Database operation failed'
    default_message_ar = 'فشلت عملية قاعدة البيانات'


class InternalError(AppError):
    code = 'INTERNAL_ERROR'
    status_code = 500


class ExternalServiceError(AppError):
    code = 'EXTERNAL_SERVICE_ERROR'
    status_code = 502
    default_message = 'External service error'
    default_message_ar = 'خطأ في خدمة خارجية'

    def __init__(self, message=None, message_ar=None, service=None, details=None):
        self.service = service
        details = dict(details or {})
        if service:
            details['service'] = service
        super().__init__(message, message_ar, details)


def form_errors(form):
    """Flatten WTForms errors to ``{field: first_message}``."""
    return {name: messages[0] for name, messages in form.errors.items() if messages}
