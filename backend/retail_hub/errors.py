"""
Service error taxonomy. Raised by services and routers, rendered as
{"error": message} with the matching HTTP status by the handler in main.
"""


class ServiceError(Exception):
    """Base error carrying an HTTP status."""
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.message}


class InputError(ServiceError):
    """Missing or invalid client input."""
    status_code = 400


class AuthError(ServiceError):
    """No or invalid credentials."""
    status_code = 401


class ForbiddenError(ServiceError):
    """Authenticated but the role is not allowed."""
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class UpstreamError(ServiceError):
    """SpySystem, LLM or datastore failure; carries the underlying message."""
    status_code = 500
