"""Error taxonomy for outlook-mcp.

Every failure that can reach a tool caller is an ``OutlookMCPError``
subclass. The registry turns these into structured failure payloads
with ``to_payload()``, so handlers raise them freely and never build
error dictionaries by hand.

Hierarchy:
    OutlookMCPError
    ├── CacheUnavailable        (absorbed by the token manager)
    ├── InteractionRequired     (user must sign in)
    ├── AuthenticationFailed    (no usable credential)
    ├── RemoteRequestFailed     (Graph returned a non-auth error)
    └── ValidationFailed        (tool input did not match its schema)
"""

from typing import Any


class OutlookMCPError(Exception):
    """Base class for all outlook-mcp errors.

    Attributes:
        message: Human-readable description, safe to show to a user.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def details(self) -> dict[str, Any]:
        """Extra fields included in the failure payload."""
        return {}

    def to_payload(self) -> dict[str, Any]:
        """Build the structured failure payload for this error."""
        payload: dict[str, Any] = {
            "error": self.message,
            "error_type": type(self).__name__,
        }
        payload.update({k: v for k, v in self.details().items() if v is not None})
        return payload


class ConfigurationError(ValueError):
    """Raised at startup when required configuration is missing or invalid."""


class CacheUnavailable(OutlookMCPError):
    """The local token cache could not be read or written."""


class InteractionRequired(OutlookMCPError):
    """Silent acquisition cannot proceed without the user signing in."""

    def __init__(self, message: str, error_code: str | None = None) -> None:
        super().__init__(message)
        self.error_code = error_code

    def details(self) -> dict[str, Any]:
        return {
            "error_code": self.error_code,
            "hint": "Run 'outlook-mcp setup' to sign in again.",
        }


class AuthenticationFailed(OutlookMCPError):
    """Token acquisition ended without a usable credential."""

    def __init__(self, message: str, error_code: str | None = None) -> None:
        super().__init__(message)
        self.error_code = error_code

    def details(self) -> dict[str, Any]:
        return {"error_code": self.error_code}


class RemoteRequestFailed(OutlookMCPError):
    """Microsoft Graph returned an error that is not an auth rejection.

    Attributes:
        status_code: HTTP status, or None for transport failures.
        code: Graph error code (e.g. ``ErrorItemNotFound``).
        request_id: Graph ``request-id`` header for support diagnosis.
        retry_after: Seconds suggested by a throttling response.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        request_id: str | None = None,
        retry_after: int | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.request_id = request_id
        self.retry_after = retry_after

    def details(self) -> dict[str, Any]:
        return {
            "status_code": self.status_code,
            "code": self.code,
            "request_id": self.request_id,
            "retry_after": self.retry_after,
        }


class ValidationFailed(OutlookMCPError):
    """Tool input did not satisfy the declared schema."""

    def __init__(self, message: str, errors: list[dict[str, str]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []

    def details(self) -> dict[str, Any]:
        return {"validation_errors": self.errors or None}
