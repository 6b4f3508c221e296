"""Pydantic models for credentials and token persistence."""

from datetime import datetime, timedelta, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class TokenStatus(str, Enum):
    """Status of the token stored for an account."""

    VALID = "valid"
    EXPIRED = "expired"
    MISSING = "missing"
    INVALID = "invalid"


class AcquisitionState(str, Enum):
    """Authentication state owned by the TokenManager."""

    UNAUTHENTICATED = "unauthenticated"
    ACQUIRING = "acquiring"
    AUTHENTICATED = "authenticated"
    INTERACTION_REQUIRED = "interaction_required"


def _mask(secret: str | None) -> str:
    if not secret:
        return "None"
    return f"'{secret[:4]}...'" if len(secret) > 8 else "'***'"


class CredentialRecord(BaseModel):
    """A delegated access token and the material needed to renew it.

    Attributes:
        access_token: Bearer token sent to Microsoft Graph.
        expires_at: Absolute expiry time (UTC).
        refresh_token: Longer-lived token used for silent refresh.
        account_id: Cache key of the account this record belongs to.
        username: Signed-in user principal name, for display only.
        scopes: Scopes the access token was granted for.
        token_type: OAuth token type.
    """

    access_token: str
    expires_at: datetime
    refresh_token: str | None = None
    account_id: str = ""
    username: str | None = None
    scopes: list[str] = Field(default_factory=list)
    token_type: str = "Bearer"

    @field_validator("expires_at")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def is_expired(self, buffer_seconds: int = 60, now: datetime | None = None) -> bool:
        """Check whether the token is expired or about to expire.

        Args:
            buffer_seconds: Seconds before ``expires_at`` at which the token
                already counts as expired.
            now: Current time; defaults to the system clock.

        Returns:
            True if ``now >= expires_at - buffer_seconds``.
        """
        current = now or datetime.now(timezone.utc)
        return current >= self.expires_at - timedelta(seconds=buffer_seconds)

    def is_usable(self, skew_seconds: int, now: datetime | None = None) -> bool:
        """Check whether the token may be attached to a request right now."""
        return not self.is_expired(buffer_seconds=skew_seconds, now=now)

    def __repr__(self) -> str:
        return (
            f"CredentialRecord(account_id={self.account_id!r}, username={self.username!r}, "
            f"expires_at={self.expires_at.isoformat()}, "
            f"access_token={_mask(self.access_token)}, "
            f"refresh_token={_mask(self.refresh_token)})"
        )

    __str__ = __repr__


class TokenMetadata(BaseModel):
    """Bookkeeping stored alongside a credential."""

    service_name: str
    provider: str = "microsoft"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_refreshed: datetime | None = None


class StoredToken(BaseModel):
    """Versioned envelope persisted for each account."""

    version: int = 1
    metadata: TokenMetadata
    token: CredentialRecord
