"""Application exceptions.

Every failure a handler reports maps onto one of these classes. The
handlers registered in ``designhub.main`` turn them into the response
envelope, so routers raise and never build error responses themselves.
"""

from typing import Any


class DesignHubError(Exception):
    """Base exception carrying an HTTP status and a caller-safe message."""

    status_code: int = 500
    code: str = "ERROR"

    def __init__(self, message: str, details: list[dict[str, Any]] | None = None):
        self.message = message
        self.details = details
        super().__init__(message)


class AuthenticationMissing(DesignHubError):
    """No valid session: missing, malformed or expired token, or unknown user."""

    status_code = 401
    code = "AUTHENTICATION_MISSING"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class AuthorizationDenied(DesignHubError):
    """Valid session but the caller's role or ownership does not allow the operation."""

    status_code = 403
    code = "AUTHORIZATION_DENIED"

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(message)


class ValidationFailed(DesignHubError):
    """Malformed or out-of-range input.

    ``details`` holds one ``{"field": ..., "message": ...}`` entry per
    offending field.
    """

    status_code = 400
    code = "VALIDATION_FAILED"

    def __init__(
        self,
        message: str = "Validation failed",
        details: list[dict[str, Any]] | None = None,
        field: str | None = None,
    ):
        if field is not None and details is None:
            details = [{"field": field, "message": message}]
        super().__init__(message, details)


class NotFound(DesignHubError):
    """Entity absent or outside the caller's visible set.

    The two cases are deliberately indistinguishable.
    """

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, entity: str = "Resource"):
        self.entity = entity
        super().__init__(f"{entity} not found")


class Conflict(DesignHubError):
    """Write would violate a uniqueness rule or orphan existing assignments."""

    status_code = 409
    code = "CONFLICT"


class UpstreamFailure(DesignHubError):
    """Database or external service failure. Never detailed to the caller."""

    status_code = 500
    code = "UPSTREAM_FAILURE"

    def __init__(self, message: str = "An unexpected error occurred"):
        super().__init__(message)
