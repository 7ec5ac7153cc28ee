"""Error taxonomy shared by the gateway, diagnostics and pipeline layers."""

from __future__ import annotations

from typing import Literal

ErrorType = Literal["connectivity", "timeout", "invalid_response", "api_error", "unknown"]


class GatewayError(Exception):
    """Base class for failures raised below the gateway boundary."""

    retryable = False

    def __init__(self, message: str, *, backend: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.backend = backend


class ConnectivityError(GatewayError):
    """Backend refused the connection or could not be reached."""

    retryable = True


class GatewayTimeoutError(GatewayError, TimeoutError):
    """Backend did not answer within the call timeout."""

    retryable = True


class InvalidResponseError(GatewayError):
    """Backend answered with a payload that does not match its response shape."""


class ProviderAPIError(GatewayError):
    """Backend answered with a non-2xx status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        body: str = "",
        backend: str | None = None,
    ) -> None:
        super().__init__(message, backend=backend)
        self.status_code = status_code
        self.body = body

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status_code >= 500 or self.status_code == 429


class ConfigurationError(Exception):
    """Unknown task profile or malformed profile configuration."""


class ConflictError(Exception):
    """Operation collides with one already in flight."""


class InvalidTransitionError(Exception):
    """Pipeline operation is not allowed in the current workflow step."""


def classify_error(exc: BaseException) -> ErrorType:
    if isinstance(exc, ConnectivityError):
        return "connectivity"
    if isinstance(exc, TimeoutError):
        return "timeout"
    if isinstance(exc, InvalidResponseError):
        return "invalid_response"
    if isinstance(exc, ProviderAPIError):
        return "api_error"
    return "unknown"


def is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, GatewayError) and bool(exc.retryable)
