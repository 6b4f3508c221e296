"""Authenticated HTTP gateway to Microsoft Graph.

Every Graph call goes through ``GraphGateway.call``. The gateway asks
the TokenManager for a token, attaches it, and maps failures onto the
outlook-mcp error taxonomy.

A 401 gets exactly one retry: the rejected token is invalidated, a new
one is acquired, and the request is re-issued. A second 401 surfaces as
AuthenticationFailed. No other status is retried here.
"""

import logging
from typing import Any

import httpx

from outlook_mcp.auth.token_manager import TokenManager
from outlook_mcp.config import DEFAULT_GRAPH_BASE_URL
from outlook_mcp.errors import AuthenticationFailed, RemoteRequestFailed

logger = logging.getLogger(__name__)


def _parse_retry_after(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def remote_error_from_response(response: httpx.Response) -> RemoteRequestFailed:
    """Build a RemoteRequestFailed from a Graph error response.

    Graph errors look like ``{"error": {"code": "...", "message": "..."}}``;
    anything else falls back to the HTTP reason phrase.
    """
    code: str | None = None
    message: str | None = None
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        code = body["error"].get("code")
        message = body["error"].get("message")

    status = response.status_code
    summary = message or response.reason_phrase or "Request failed"
    return RemoteRequestFailed(
        f"Microsoft Graph request failed ({status}): {summary}",
        status_code=status,
        code=code,
        request_id=response.headers.get("request-id"),
        retry_after=_parse_retry_after(response.headers.get("Retry-After")),
    )


class GraphGateway:
    """Call wrapper that authenticates every Microsoft Graph request.

    Attributes:
        token_manager: Source of bearer tokens.
        base_url: Graph base URL that relative paths are joined to.
    """

    def __init__(
        self,
        token_manager: TokenManager,
        base_url: str = DEFAULT_GRAPH_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.token_manager = token_manager
        self.base_url = base_url.rstrip("/")
        self._http_client = http_client

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create shared HTTP client with connection pooling.

        Returns:
            Shared httpx.AsyncClient instance.
        """
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                http2=True,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
                timeout=httpx.Timeout(30.0, connect=10.0),
            )
        return self._http_client

    async def close(self) -> None:
        """Close the shared HTTP client and release resources."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    def _url(self, path: str) -> str:
        if path.startswith(("https://", "http://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _send(
        self,
        method: str,
        url: str,
        token: str,
        params: dict[str, Any] | None,
        json_data: Any,
    ) -> httpx.Response:
        client = await self._get_http_client()
        try:
            return await client.request(
                method=method,
                url=url,
                params=params,
                json=json_data,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Accept": "application/json",
                },
            )
        except httpx.RequestError as e:
            raise RemoteRequestFailed(
                f"Could not reach Microsoft Graph: {e}",
                code="network_error",
            ) from e

    async def call(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_data: Any = None,
    ) -> Any:
        """Make an authenticated request to Microsoft Graph.

        Args:
            method: HTTP method (GET, POST, PATCH, DELETE).
            path: Path relative to the Graph base URL, or a full URL.
            params: Optional query parameters (``$filter``, ``$top``, ...).
            json_data: Optional JSON body.

        Returns:
            Decoded JSON response, or None for empty responses.

        Raises:
            InteractionRequired: If a token cannot be acquired silently.
            AuthenticationFailed: If no token is available or Graph rejects
                a freshly acquired one.
            RemoteRequestFailed: For any other Graph or transport error.
        """
        url = self._url(path)

        token = await self.token_manager.get_valid_token()
        response = await self._send(method, url, token, params, json_data)

        if response.status_code == 401:
            logger.warning(f"{method} {path} returned 401, retrying once with a new token")
            await self.token_manager.invalidate(token)
            token = await self.token_manager.get_valid_token()
            response = await self._send(method, url, token, params, json_data)

            if response.status_code == 401:
                error = remote_error_from_response(response)
                raise AuthenticationFailed(
                    "Microsoft Graph rejected the access token after re-authentication",
                    error_code=error.code or "unauthorized",
                )

        if response.is_error:
            error = remote_error_from_response(response)
            logger.info(f"{method} {path} failed: {error.status_code} {error.code}")
            raise error

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise RemoteRequestFailed(
                "Microsoft Graph returned a response that is not JSON",
                status_code=response.status_code,
            ) from e
