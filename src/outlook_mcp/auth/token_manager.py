"""Token lifecycle manager for Microsoft Graph access.

The TokenManager is the only component that owns credentials. Other
components ask it for a bearer token with ``get_valid_token()`` and
report server-side rejections with ``invalidate()``.

Acquisition order (cheapest first):
    1. in-memory credential, if still usable under the skew margin
    2. token cache on disk
    3. silent refresh with the cached refresh token
    4. interactive browser sign-in (when allowed)

Concurrent callers share a single acquisition: the first caller starts
an asyncio task, later callers await the same task, and all of them
receive the same token or the same exception. Callers await the task
through ``asyncio.shield`` so a cancelled caller does not abort a
sign-in that other callers (and the cache) still benefit from.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from outlook_mcp.auth.identity import IdentityClient
from outlook_mcp.auth.models import AcquisitionState, CredentialRecord, TokenStatus
from outlook_mcp.auth.token_storage import TokenStorage
from outlook_mcp.config import DEFAULT_SKEW_SECONDS, OUTLOOK_SCOPES
from outlook_mcp.errors import AuthenticationFailed, CacheUnavailable, InteractionRequired

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenManager:
    """Single-account delegated token manager.

    Attributes:
        account_id: Token cache key for the account.
        scopes: Scopes requested on refresh and sign-in.
        skew_seconds: Early-refresh margin applied to every validity check.
        allow_interactive: Whether ``get_valid_token`` may open a browser
            sign-in. When False it raises InteractionRequired instead.

    Example:
        ```python
        manager = TokenManager(
            storage=TokenStorage(),
            identity=IdentityClient(client_id, authority),
            account_id=settings.account_key,
        )
        token = await manager.get_valid_token()
        ```
    """

    def __init__(
        self,
        storage: TokenStorage,
        identity: IdentityClient,
        account_id: str,
        scopes: list[str] | None = None,
        skew_seconds: int = DEFAULT_SKEW_SECONDS,
        allow_interactive: bool = True,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.storage = storage
        self.identity = identity
        self.account_id = account_id
        self.scopes = list(scopes) if scopes is not None else list(OUTLOOK_SCOPES)
        self.skew_seconds = skew_seconds
        self.allow_interactive = allow_interactive
        self._clock = clock or _utcnow

        self._state = AcquisitionState.UNAUTHENTICATED
        self._credential: CredentialRecord | None = None
        self._inflight: asyncio.Task[CredentialRecord] | None = None
        self._lock = asyncio.Lock()
        # Bumped by sign_out so stale acquisitions don't install their result
        self._generation = 0
        self._rejected_token: str | None = None

    @property
    def state(self) -> AcquisitionState:
        """Current acquisition state."""
        return self._state

    def _usable_token(self) -> str | None:
        credential = self._credential
        if (
            self._state is AcquisitionState.AUTHENTICATED
            and credential is not None
            and credential.is_usable(self.skew_seconds, now=self._clock())
        ):
            return credential.access_token
        return None

    async def get_valid_token(self) -> str:
        """Return an access token that is valid under the skew margin.

        Returns:
            Bearer access token.

        Raises:
            InteractionRequired: If sign-in is needed and interactive
                sign-in is disabled.
            AuthenticationFailed: If no credential could be obtained.
        """
        token = self._usable_token()
        if token is not None:
            return token

        async with self._lock:
            token = self._usable_token()
            if token is not None:
                return token
            task = self._inflight
            if task is None:
                task = self._start_acquisition(force_interactive=False)
            else:
                logger.debug("Joining in-flight token acquisition")

        credential = await asyncio.shield(task)
        return credential.access_token

    async def sign_in(self) -> CredentialRecord:
        """Run an interactive sign-in regardless of cached state.

        Joins an acquisition that is already running instead of starting
        a second one.

        Returns:
            The newly acquired credential.
        """
        async with self._lock:
            task = self._inflight
            if task is None:
                task = self._start_acquisition(force_interactive=True)

        return await asyncio.shield(task)

    async def invalidate(self, rejected_token: str) -> None:
        """Discard a token that Microsoft Graph rejected.

        Only the current credential is discarded. If the rejected token has
        already been replaced (another caller saw the same 401 first) this
        is a no-op, so concurrent rejections trigger a single refresh.

        Args:
            rejected_token: The access token the remote side refused.
        """
        async with self._lock:
            credential = self._credential
            if credential is None or credential.access_token != rejected_token:
                return

            logger.warning("Access token rejected by Microsoft Graph, discarding it")
            self._credential = None
            self._state = AcquisitionState.UNAUTHENTICATED
            self._rejected_token = rejected_token

    async def sign_out(self) -> bool:
        """Forget the current credential and clear it from the cache.

        An acquisition already in flight completes for its own waiters but
        its result is neither installed nor persisted.

        Returns:
            True if a cached credential was removed.
        """
        async with self._lock:
            self._generation += 1
            self._inflight = None
            self._credential = None
            self._rejected_token = None
            self._state = AcquisitionState.UNAUTHENTICATED

        logger.info("Signed out")
        return self._clear_cache()

    def status(self) -> dict[str, Any]:
        """Describe the authentication state without exposing tokens."""
        try:
            cache_status = self.storage.get_status(self.account_id, self.skew_seconds).value
        except CacheUnavailable:
            cache_status = "unavailable"

        result: dict[str, Any] = {
            "state": self._state.value,
            "account": self.account_id,
            "cache": cache_status,
            "interactive_sign_in": self.allow_interactive,
        }

        credential = self._credential
        if credential is not None:
            result.update(
                {
                    "username": credential.username,
                    "expires_at": credential.expires_at.isoformat(),
                    "scopes": credential.scopes,
                    "has_refresh_token": credential.refresh_token is not None,
                }
            )
        return result

    # =========================================================================
    # Acquisition
    # =========================================================================

    def _start_acquisition(self, force_interactive: bool) -> "asyncio.Task[CredentialRecord]":
        """Start the single acquisition task. Caller must hold ``_lock``."""
        self._state = AcquisitionState.ACQUIRING
        task = asyncio.create_task(
            self._acquire(self._generation, force_interactive),
            name="outlook-mcp-token-acquisition",
        )
        task.add_done_callback(self._on_acquisition_done)
        self._inflight = task
        return task

    @staticmethod
    def _on_acquisition_done(task: "asyncio.Task[CredentialRecord]") -> None:
        # Retrieve the exception so it is not reported as unhandled when
        # every waiter was cancelled
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Token acquisition failed: {task.exception()}")

    async def _acquire(self, generation: int, force_interactive: bool) -> CredentialRecord:
        try:
            credential, fresh = await self._run_acquisition(generation, force_interactive)
        except InteractionRequired:
            if generation == self._generation:
                self._credential = None
                self._state = AcquisitionState.INTERACTION_REQUIRED
            raise
        except AuthenticationFailed:
            self._reset(generation)
            raise
        except asyncio.CancelledError:
            self._reset(generation)
            raise
        except Exception as e:
            self._reset(generation)
            logger.exception("Unexpected error during token acquisition")
            raise AuthenticationFailed(f"Unexpected error during sign-in: {e}") from e
        else:
            if generation != self._generation:
                logger.info("Discarding credential acquired before sign-out")
                return credential
            if fresh:
                self._persist(credential)
            self._credential = credential
            self._rejected_token = None
            self._state = AcquisitionState.AUTHENTICATED
            logger.info(f"Authenticated, token valid until {credential.expires_at.isoformat()}")
            return credential
        finally:
            if self._inflight is asyncio.current_task():
                self._inflight = None

    async def _run_acquisition(
        self, generation: int, force_interactive: bool
    ) -> tuple[CredentialRecord, bool]:
        """Obtain a credential by the cheapest available route.

        Returns:
            Tuple of (credential, fresh) where fresh means it must be persisted.
        """
        if not force_interactive:
            cached = self._load_cached()

            if cached is not None:
                rejected = cached.access_token == self._rejected_token
                if not rejected and cached.is_usable(self.skew_seconds, now=self._clock()):
                    logger.debug("Using cached credential")
                    return cached, False

                if cached.refresh_token:
                    logger.info("Cached token expired or rejected, refreshing silently")
                    try:
                        refreshed = await self.identity.refresh(cached.refresh_token, self.scopes)
                        return self._own(refreshed), True
                    except InteractionRequired as e:
                        logger.info(f"Silent refresh rejected ({e.error_code}), sign-in required")
                        if generation == self._generation:
                            self._clear_cache()
                else:
                    logger.info("Cached token expired and has no refresh token")
            else:
                logger.info("No cached credential")

            if generation == self._generation:
                self._state = AcquisitionState.INTERACTION_REQUIRED

            if not self.allow_interactive:
                raise InteractionRequired(
                    "Microsoft sign-in required. Run 'outlook-mcp setup' to sign in.",
                    error_code="interaction_required",
                )

        logger.info("Starting interactive sign-in")
        credential = await self.identity.acquire_interactive(self.scopes)
        return self._own(credential), True

    def _own(self, credential: CredentialRecord) -> CredentialRecord:
        if credential.account_id == self.account_id:
            return credential
        return credential.model_copy(update={"account_id": self.account_id})

    def _reset(self, generation: int) -> None:
        if generation == self._generation:
            self._credential = None
            self._state = AcquisitionState.UNAUTHENTICATED

    # =========================================================================
    # Cache access (CacheUnavailable never escapes)
    # =========================================================================

    def _load_cached(self) -> CredentialRecord | None:
        try:
            return self.storage.load(self.account_id)
        except CacheUnavailable as e:
            logger.warning(f"Token cache unavailable, treating as empty: {e.message}")
            return None

    def _persist(self, credential: CredentialRecord) -> None:
        try:
            self.storage.store(self.account_id, credential)
        except CacheUnavailable as e:
            logger.warning(f"Could not persist token, continuing in memory: {e.message}")

    def _clear_cache(self) -> bool:
        try:
            return self.storage.clear(self.account_id)
        except CacheUnavailable as e:
            logger.warning(f"Could not clear token cache: {e.message}")
            return False

    def cached_status(self) -> TokenStatus | None:
        """Status of the on-disk credential, or None if the cache is unreadable."""
        try:
            return self.storage.get_status(self.account_id, self.skew_seconds)
        except CacheUnavailable:
            return None
