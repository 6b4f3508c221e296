"""Microsoft identity platform client.

Wraps ``msal.PublicClientApplication`` for the two delegated flows the
TokenManager needs:

- silent refresh with a cached refresh token
- interactive authorization code flow (PKCE) with a loopback redirect

MSAL calls are blocking and run in the default executor. Results are
converted to CredentialRecord; MSAL error responses are mapped to
InteractionRequired or AuthenticationFailed.
"""

import asyncio
import logging
import time
import webbrowser
from datetime import datetime, timedelta, timezone
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any
from urllib.parse import parse_qs, urlparse

import msal

from outlook_mcp.auth.models import CredentialRecord
from outlook_mcp.config import DEFAULT_REDIRECT_URI
from outlook_mcp.errors import AuthenticationFailed, InteractionRequired

logger = logging.getLogger(__name__)

DEFAULT_OAUTH_HOST = "localhost"
DEFAULT_OAUTH_PORT = 8789
INTERACTIVE_TIMEOUT_SECONDS = 300

# MSAL adds these itself and rejects them as user-provided scopes
RESERVED_SCOPES = frozenset({"openid", "profile", "offline_access"})

INTERACTION_REQUIRED_ERRORS = frozenset(
    {"invalid_grant", "interaction_required", "consent_required", "login_required"}
)
USER_CANCELLED_ERRORS = frozenset({"access_denied"})


def _request_scopes(scopes: list[str]) -> list[str]:
    return [scope for scope in scopes if scope.lower() not in RESERVED_SCOPES]


class IdentityClient:
    """Delegated-auth client for the Microsoft identity platform.

    Attributes:
        client_id: Entra ID application (client) ID.
        authority: Authority URL including the tenant.
        redirect_uri: Loopback redirect URI for interactive sign-in.
        account_id: Cache key stamped on produced credentials.
        interactive_timeout: Overall seconds to wait for the browser redirect.
    """

    def __init__(
        self,
        client_id: str,
        authority: str,
        redirect_uri: str = DEFAULT_REDIRECT_URI,
        account_id: str = "",
        open_browser: bool = True,
        interactive_timeout: float = INTERACTIVE_TIMEOUT_SECONDS,
    ) -> None:
        self.client_id = client_id
        self.authority = authority
        self.redirect_uri = redirect_uri
        self.account_id = account_id
        self._open_browser = open_browser
        self.interactive_timeout = interactive_timeout
        self._app: msal.PublicClientApplication | None = None

    @property
    def app(self) -> msal.PublicClientApplication:
        """Lazily created MSAL application."""
        if self._app is None:
            self._app = msal.PublicClientApplication(
                client_id=self.client_id,
                authority=self.authority,
            )
        return self._app

    async def refresh(self, refresh_token: str, scopes: list[str]) -> CredentialRecord:
        """Redeem a refresh token for a new access token.

        Args:
            refresh_token: Cached refresh token.
            scopes: Scopes to request.

        Returns:
            Fresh CredentialRecord.

        Raises:
            InteractionRequired: If the refresh token is no longer accepted.
            AuthenticationFailed: For any other identity failure.
        """
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(
                None,
                lambda: self.app.acquire_token_by_refresh_token(
                    refresh_token, scopes=_request_scopes(scopes)
                ),
            )
        except (InteractionRequired, AuthenticationFailed):
            raise
        except Exception as e:
            raise AuthenticationFailed(f"Token refresh failed: {e}") from e

        return self._result_to_record(result, scopes, previous_refresh_token=refresh_token)

    async def acquire_interactive(self, scopes: list[str]) -> CredentialRecord:
        """Run the browser sign-in flow.

        Args:
            scopes: Scopes to request.

        Returns:
            Fresh CredentialRecord.

        Raises:
            AuthenticationFailed: If the user cancels, the flow times out,
                or the identity endpoint rejects the code.
        """
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(None, self._run_auth_code_flow, scopes)
        except (InteractionRequired, AuthenticationFailed):
            raise
        except Exception as e:
            raise AuthenticationFailed(f"Interactive sign-in failed: {e}") from e

        try:
            return self._result_to_record(result, scopes)
        except InteractionRequired as e:
            # Interaction was just performed, so this is terminal
            raise AuthenticationFailed(e.message, error_code=e.error_code) from e

    def _result_to_record(
        self,
        result: dict[str, Any] | None,
        scopes: list[str],
        previous_refresh_token: str | None = None,
    ) -> CredentialRecord:
        """Convert an MSAL token response to a CredentialRecord.

        Args:
            result: MSAL result dictionary.
            scopes: Requested scopes, used when the response omits ``scope``.
            previous_refresh_token: Kept when the response does not rotate it.

        Returns:
            CredentialRecord built from the response.

        Raises:
            InteractionRequired: For errors that need the user to sign in.
            AuthenticationFailed: For any other error response.
        """
        if not result:
            raise AuthenticationFailed("Identity endpoint returned no result")

        if "access_token" not in result:
            error = result.get("error", "unknown_error")
            description = result.get("error_description") or error
            summary = description.splitlines()[0]
            if error in INTERACTION_REQUIRED_ERRORS:
                raise InteractionRequired(f"Sign-in required: {summary}", error_code=error)
            if error in USER_CANCELLED_ERRORS:
                raise AuthenticationFailed(f"Sign-in cancelled: {summary}", error_code=error)
            raise AuthenticationFailed(f"Authentication failed: {summary}", error_code=error)

        expires_in = result.get("expires_in")
        try:
            lifetime = timedelta(seconds=int(expires_in)) if expires_in else timedelta(hours=1)
        except (TypeError, ValueError):
            lifetime = timedelta(hours=1)

        granted = result.get("scope")
        granted_scopes = granted.split() if isinstance(granted, str) else list(scopes)

        claims = result.get("id_token_claims") or {}

        return CredentialRecord(  # nosec B106 - "Bearer" is OAuth token type, not a password
            access_token=result["access_token"],
            refresh_token=result.get("refresh_token") or previous_refresh_token,
            expires_at=datetime.now(timezone.utc) + lifetime,
            account_id=self.account_id,
            username=claims.get("preferred_username"),
            scopes=granted_scopes,
            token_type=result.get("token_type", "Bearer"),
        )

    def _run_auth_code_flow(self, scopes: list[str]) -> dict[str, Any]:
        """Run the authorization code flow (blocking operation).

        Opens the browser at the authorization URL and starts a local
        server to receive the single redirect.

        Args:
            scopes: Scopes to request.

        Returns:
            MSAL result dictionary.
        """
        flow = self.app.initiate_auth_code_flow(
            scopes=_request_scopes(scopes),
            redirect_uri=self.redirect_uri,
        )
        if "auth_uri" not in flow:
            return flow

        parsed = urlparse(self.redirect_uri)
        host = parsed.hostname or DEFAULT_OAUTH_HOST
        port = parsed.port or DEFAULT_OAUTH_PORT
        callback_path = parsed.path or "/"

        auth_response: dict[str, str] = {}

        class OAuthCallbackHandler(BaseHTTPRequestHandler):
            """HTTP handler for the OAuth redirect."""

            def log_message(self, format: str, *args: Any) -> None:
                """Suppress HTTP server logs."""

            def do_GET(self) -> None:
                """Handle GET request from the OAuth redirect."""
                request_parsed = urlparse(self.path)

                if request_parsed.path != callback_path:
                    self.send_response(404)
                    self.end_headers()
                    self.wfile.write(b"Not Found")
                    return

                query_params = parse_qs(request_parsed.query)
                auth_response.update({key: values[0] for key, values in query_params.items()})

                if "error" in auth_response or "code" not in auth_response:
                    self.send_response(400)
                    self.send_header("Content-type", "text/html")
                    self.end_headers()
                    self.wfile.write(
                        b"<html><body><h1>Authentication Failed</h1>"
                        b"<p>Please close this window and try again.</p></body></html>"
                    )
                    return

                self.send_response(200)
                self.send_header("Content-type", "text/html")
                self.end_headers()
                self.wfile.write(
                    b"<html><body><h1>Authentication Successful!</h1>"
                    b"<p>You can close this window and return to your assistant.</p>"
                    b"</body></html>"
                )

        server = HTTPServer((host, port), OAuthCallbackHandler)

        auth_url = flow["auth_uri"]
        logger.info("Waiting for Microsoft sign-in in the browser")
        logger.info(f"If the browser doesn't open, visit: {auth_url}")
        if self._open_browser:
            webbrowser.open(auth_url)

        # Stray requests (favicon, reloads) must not extend the wait
        deadline = time.monotonic() + self.interactive_timeout
        try:
            while not auth_response:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                server.timeout = remaining
                server.handle_request()
        finally:
            server.server_close()

        if not auth_response:
            raise AuthenticationFailed(
                "Sign-in cancelled: no response received from the browser",
                error_code="timeout",
            )

        if "error" in auth_response:
            return {
                "error": auth_response["error"],
                "error_description": auth_response.get("error_description"),
            }

        try:
            return self.app.acquire_token_by_auth_code_flow(flow, auth_response)
        except ValueError as e:
            # MSAL raises ValueError on state mismatch
            raise AuthenticationFailed(f"Sign-in response rejected: {e}") from e
