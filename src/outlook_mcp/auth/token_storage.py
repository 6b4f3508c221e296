"""JSON token storage for outlook-mcp.

Storage Location: ~/.outlook-mcp/tokens.json (per user)

The file maps an account key to a StoredToken envelope. The directory
is created with mode 700 and the file is written with mode 600; every
write goes through a temp file and ``os.replace`` so readers never see
a partially written file.

I/O failures raise CacheUnavailable. A corrupt file or entry reads as
absent so that a bad cache never blocks a fresh sign-in.
"""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from outlook_mcp.auth.models import (
    CredentialRecord,
    StoredToken,
    TokenMetadata,
    TokenStatus,
)
from outlook_mcp.config import default_token_path
from outlook_mcp.errors import CacheUnavailable

logger = logging.getLogger(__name__)


class TokenStorage:
    """JSON-file storage holding at most one credential per account.

    Attributes:
        token_path: Path to the tokens.json file.

    Example:
        ```python
        storage = TokenStorage()

        record = CredentialRecord(
            access_token="abc123",
            expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
            account_id="client@tenant",
        )
        storage.store("client@tenant", record)

        loaded = storage.load("client@tenant")
        ```
    """

    def __init__(self, token_path: Path | None = None) -> None:
        """Initialize token storage.

        Args:
            token_path: Custom path for tokens.json.
                Defaults to ~/.outlook-mcp/tokens.json.
        """
        self.token_path = token_path or default_token_path()
        self.credentials_dir = self.token_path.parent

    def _ensure_credentials_dir(self) -> None:
        """Create credentials directory with secure permissions if needed."""
        if not self.credentials_dir.exists():
            self.credentials_dir.mkdir(parents=True, mode=0o700)
        else:
            self.credentials_dir.chmod(0o700)

    def _load_tokens(self) -> dict[str, dict]:
        """Load all entries from the JSON file.

        Returns:
            Dictionary mapping account keys to envelope data.

        Raises:
            CacheUnavailable: If the file exists but cannot be read.
        """
        try:
            content = self.token_path.read_text()
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise CacheUnavailable(f"Cannot read token cache {self.token_path}: {e}") from e

        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            logger.warning(f"Token cache {self.token_path} is corrupted, ignoring it")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Token cache {self.token_path} has unexpected layout, ignoring it")
            return {}
        return data

    def _save_tokens(self, tokens: dict[str, dict]) -> None:
        """Atomically replace the JSON file.

        Args:
            tokens: Dictionary mapping account keys to envelope data.

        Raises:
            CacheUnavailable: If the file cannot be written.
        """
        tmp_name: str | None = None
        try:
            self._ensure_credentials_dir()
            with tempfile.NamedTemporaryFile(
                "w",
                dir=self.credentials_dir,
                prefix=".tokens-",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_name = f.name
                os.chmod(tmp_name, 0o600)
                json.dump(tokens, f, indent=2, default=str)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.token_path)
            tmp_name = None
        except OSError as e:
            raise CacheUnavailable(f"Cannot write token cache {self.token_path}: {e}") from e
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)

    def retrieve(self, account_id: str) -> StoredToken | None:
        """Retrieve the stored envelope for an account.

        Args:
            account_id: Account cache key.

        Returns:
            StoredToken if found and valid, None otherwise.
        """
        tokens = self._load_tokens()

        if account_id not in tokens:
            return None

        try:
            return StoredToken.model_validate(tokens[account_id])
        except ValidationError:
            logger.warning(f"Stored token for {account_id} is corrupted, ignoring it")
            return None

    def load(self, account_id: str) -> CredentialRecord | None:
        """Load the credential record for an account.

        Args:
            account_id: Account cache key.

        Returns:
            The CredentialRecord, or None if absent or unreadable.

        Raises:
            CacheUnavailable: If the cache file cannot be read.
        """
        stored = self.retrieve(account_id)
        return stored.token if stored else None

    def store(
        self,
        account_id: str,
        record: CredentialRecord,
        metadata: TokenMetadata | None = None,
    ) -> None:
        """Store a credential, replacing any previous one for the account.

        Args:
            account_id: Account cache key.
            record: Credential to persist.
            metadata: Bookkeeping; the previous entry's metadata is carried
                over (with ``last_refreshed`` updated) when omitted.

        Raises:
            CacheUnavailable: If the cache file cannot be read or written.
        """
        tokens = self._load_tokens()

        if metadata is None:
            previous = tokens.get(account_id)
            try:
                metadata = (
                    StoredToken.model_validate(previous).metadata if previous else None
                )
            except ValidationError:
                metadata = None
            if metadata is None:
                metadata = TokenMetadata(service_name=account_id)
            else:
                metadata.last_refreshed = datetime.now(timezone.utc)

        stored_token = StoredToken(version=1, metadata=metadata, token=record)
        tokens[account_id] = json.loads(stored_token.model_dump_json())

        self._save_tokens(tokens)

    def clear(self, account_id: str) -> bool:
        """Delete the stored credential for an account.

        Args:
            account_id: Account cache key.

        Returns:
            True if a credential was deleted, False if none existed.

        Raises:
            CacheUnavailable: If the cache file cannot be read or written.
        """
        tokens = self._load_tokens()

        if account_id not in tokens:
            return False

        del tokens[account_id]
        self._save_tokens(tokens)
        return True

    def list_accounts(self) -> list[str]:
        """List all account keys with stored credentials."""
        return sorted(self._load_tokens().keys())

    def get_status(self, account_id: str, buffer_seconds: int = 60) -> TokenStatus:
        """Get the status of the stored credential.

        Args:
            account_id: Account cache key.
            buffer_seconds: Skew margin used for the expiry check.

        Returns:
            TokenStatus indicating the credential's current state.
        """
        tokens = self._load_tokens()
        if account_id not in tokens:
            return TokenStatus.MISSING

        stored = self.retrieve(account_id)
        if stored is None:
            return TokenStatus.INVALID

        if stored.token.is_expired(buffer_seconds=buffer_seconds):
            return TokenStatus.EXPIRED

        return TokenStatus.VALID

    def clear_all(self) -> None:
        """Delete all stored credentials by removing tokens.json."""
        try:
            self.token_path.unlink(missing_ok=True)
        except OSError as e:
            raise CacheUnavailable(f"Cannot remove token cache {self.token_path}: {e}") from e
