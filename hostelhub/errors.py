"""
Error kinds raised by domain logic and route handlers.

Every kind maps to an HTTP status and a machine-readable code; the app
factory registers a handler that turns any ``ApiError`` into the JSON
error shape ``{success: False, message, code, details?}``.
"""


class ApiError(Exception):
    status_code = 500
    code = 'INTERNAL_ERROR'
    default_message = 'Internal server error'

    def __init__(self, message=None, details=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details

    def to_dict(self):
        body = {
            'success': False,
            'message': self.message,
            'code': self.code
        }
        if self.details:
            body['details'] = self.details
        return body


class ValidationFailed(ApiError):
    status_code = 400
    code = 'VALIDATION_ERROR'
    default_message = 'Validation failed'


class Unauthorized(ApiError):
    status_code = 401
    code = 'UNAUTHORIZED'
    default_message = 'Not authorized to access this route'


class Forbidden(ApiError):
    status_code = 403
    code = 'FORBIDDEN'
    default_message = 'Access denied'


class NotFound(ApiError):
    status_code = 404
    code = 'NOT_FOUND'
    default_message = 'Resource not found'


class PreconditionFailed(ApiError):
    """A status transition was attempted from a state that does not permit it"""
    status_code = 400
    code = 'PRECONDITION_FAILED'
    default_message = 'Operation not permitted in the current state'


class Conflict(ApiError):
    status_code = 409
    code = 'DUPLICATE_ENTRY'
    default_message = 'Resource already exists'


class Unavailable(ApiError):
    """Referenced item is inactive, unavailable or out of stock"""
    status_code = 400
    code = 'UNAVAILABLE'
    default_message = 'Resource is currently unavailable'
