class GatewayError(Exception):
    """Base class for every error the gateway maps to an HTTP response."""

    status_code = 500
    error_code = "internal_error"


class InputError(GatewayError):
    """Raised when a request parameter is missing or malformed."""

    status_code = 400
    error_code = "invalid_input"


class AuthError(GatewayError):
    """Raised when the caller's credential is missing or not accepted."""

    status_code = 403
    error_code = "auth_error"


class MissingCredentialError(AuthError):
    status_code = 401
    error_code = "credential_required"


class InvalidCredentialError(AuthError):
    status_code = 403
    error_code = "invalid_credential"


class DeadlineExceeded(GatewayError):
    """Raised when an operation does not finish before its deadline."""

    status_code = 504
    error_code = "timeout"


class UpstreamError(GatewayError):
    """Raised when the storage provider call fails."""

    status_code = 502
    error_code = "upstream_error"

    def __init__(self, message: str, mode: str | None = None, resource_id: str | None = None):
        super().__init__(message)
        self.mode = mode
        self.resource_id = resource_id


class UpstreamTimeout(UpstreamError, DeadlineExceeded):
    status_code = 504
    error_code = "upstream_timeout"


class UpstreamDenied(UpstreamError):
    status_code = 403
    error_code = "upstream_denied"


class UpstreamNotFound(UpstreamError):
    status_code = 404
    error_code = "not_found"


class UpstreamUnavailable(UpstreamError):
    status_code = 502
    error_code = "upstream_unavailable"


class InternalError(GatewayError):
    """Raised for unexpected failures, including missing server configuration."""

    status_code = 500
    error_code = "internal_error"
