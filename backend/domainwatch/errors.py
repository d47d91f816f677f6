"""Error taxonomy shared by the services and the HTTP layer.

Every error carries the HTTP status it maps to, so routers can simply raise
and the application exception handler renders ``{"success": false, "error": ...}``.
"""
from typing import Optional


class AppError(Exception):
    """Base application error."""
    
    status_code = 500
    code = "INTERNAL_ERROR"
    
    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class AlertStateError(ValidationError):
    """Requested alert transition is not allowed from the alert's current state."""
    code = "INVALID_ALERT_STATE"


class UnauthorizedError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"
    
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class RateLimitExceeded(AppError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"
    
    def __init__(self, message: str = "Rate limit exceeded. Please try again later.", retry_after: int = 60):
        super().__init__(message)
        self.retry_after = retry_after


class ProbeError(AppError):
    """A probe could not produce a measurement for the target."""
    status_code = 502
    code = "PROBE_ERROR"
    
    def __init__(self, domain: str, message: str):
        super().__init__(message)
        self.domain = domain


class ProbeConnectionError(ProbeError):
    code = "CONNECTION_FAILED"


class ProbeTimeoutError(ProbeError):
    status_code = 504
    code = "TIMEOUT"


class ProbeNoCertificateError(ProbeError):
    code = "NO_CERTIFICATE"
