"""Unit tests for credential and storage models."""

from datetime import datetime, timedelta, timezone

import pytest

from outlook_mcp.auth.models import (
    AcquisitionState,
    CredentialRecord,
    StoredToken,
    TokenMetadata,
    TokenStatus,
)

NOW = datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


def _record(expires_at: datetime) -> CredentialRecord:
    return CredentialRecord(access_token="secret_access_token", expires_at=expires_at)


@pytest.mark.unit
class TestCredentialRecordExpiry:
    """Tests for CredentialRecord.is_expired() and is_usable()."""

    def test_should_be_usable_well_before_expiry(self) -> None:
        """Verify a token expiring in an hour is usable."""
        record = _record(NOW + timedelta(hours=1))

        assert record.is_usable(60, now=NOW) is True
        assert record.is_expired(60, now=NOW) is False

    def test_should_expire_inside_skew_margin(self) -> None:
        """Verify a token expiring in 30s is unusable under a 60s margin."""
        record = _record(NOW + timedelta(seconds=30))

        assert record.is_usable(60, now=NOW) is False

    def test_should_be_usable_with_zero_margin_until_expiry(self) -> None:
        """Verify the margin is applied exactly, with no hidden buffer."""
        record = _record(NOW + timedelta(seconds=30))

        assert record.is_usable(0, now=NOW) is True

    def test_should_treat_boundary_as_expired(self) -> None:
        """Verify now == expires_at - margin counts as expired."""
        record = _record(NOW + timedelta(seconds=60))

        assert record.is_expired(60, now=NOW) is True

    def test_should_be_expired_after_expiry(self) -> None:
        """Verify a token past its expiry is expired."""
        record = _record(NOW - timedelta(minutes=1))

        assert record.is_expired(0, now=NOW) is True


@pytest.mark.unit
class TestCredentialRecordFields:
    """Tests for CredentialRecord field handling."""

    def test_should_assume_utc_for_naive_expiry(self) -> None:
        """Verify a naive expires_at is interpreted as UTC."""
        record = _record(datetime(2025, 1, 15, 10, 0, 0))

        assert record.expires_at.tzinfo is not None
        assert record.expires_at == NOW

    def test_should_convert_offset_expiry_to_utc(self) -> None:
        """Verify an offset-aware expires_at is normalized to UTC."""
        plus_two = timezone(timedelta(hours=2))
        record = _record(datetime(2025, 1, 15, 12, 0, 0, tzinfo=plus_two))

        assert record.expires_at == NOW
        assert record.expires_at.utcoffset() == timedelta(0)

    def test_should_default_optional_fields(self) -> None:
        """Verify defaults for refresh token, scopes and token type."""
        record = _record(NOW)

        assert record.refresh_token is None
        assert record.scopes == []
        assert record.token_type == "Bearer"
        assert record.account_id == ""

    def test_should_not_expose_tokens_in_repr(self) -> None:
        """Verify repr masks the access and refresh tokens."""
        record = CredentialRecord(
            access_token="secret_access_token",
            refresh_token="secret_refresh_token",
            expires_at=NOW,
        )

        text = repr(record)

        assert "secret_access_token" not in text
        assert "secret_refresh_token" not in text
        assert "'secr...'" in text
        assert str(record) == text


@pytest.mark.unit
class TestStoredToken:
    """Tests for the persisted envelope."""

    def test_should_round_trip_through_json(self) -> None:
        """Verify an envelope survives JSON serialization."""
        stored = StoredToken(
            metadata=TokenMetadata(service_name="client@common"),
            token=CredentialRecord(
                access_token="abc",
                refresh_token="def",
                expires_at=NOW,
                scopes=["Mail.Read"],
            ),
        )

        loaded = StoredToken.model_validate_json(stored.model_dump_json())

        assert loaded.version == 1
        assert loaded.metadata.provider == "microsoft"
        assert loaded.token.access_token == "abc"
        assert loaded.token.expires_at == NOW
        assert loaded.token.scopes == ["Mail.Read"]


@pytest.mark.unit
class TestEnums:
    """Tests for status enums."""

    def test_should_use_string_values(self) -> None:
        """Verify enum values are the lower-case strings reported to callers."""
        assert TokenStatus.VALID.value == "valid"
        assert TokenStatus.MISSING == "missing"
        assert AcquisitionState.INTERACTION_REQUIRED.value == "interaction_required"
