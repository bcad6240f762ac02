"""Directory service client: resolves the gateway endpoint over REST."""

import json
from typing import Any, Protocol, runtime_checkable

import aiohttp

from ..mechanism import AuthError, ProtocolError, TransportError
from ..utils import get_short_error_info, redact
from .connection import Endpoint

GATEWAY_PATH = "/v3/gateway/index"


@runtime_checkable
class EndpointResolver(Protocol):
    """Anything that can hand the session a connection endpoint."""

    async def resolve_endpoint(self, compress: bool) -> Endpoint: ...


def _is_auth_code(code: int) -> bool:
    return 40100 <= code <= 40199


class DirectoryClient:
    """REST client for the gateway directory service.

    The response envelope is ``{"code": int, "message": str, "data": ...}``
    with ``code == 0`` on success.

    Errors are mapped for the session's reconnect policy:
        - HTTP 401/403 or envelope code 401xx: :class:`AuthError` (terminal)
        - network failure or other HTTP error: :class:`TransportError`
        - other envelope code, bad JSON, missing url: :class:`ProtocolError`

    Usable as an async context manager; the HTTP session is created lazily.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 30.0,
        user_agent: str = "rxgateway/0.1",
    ):
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._user_agent = user_agent
        self._session: aiohttp.ClientSession | None = None

    @property
    def token(self) -> str:
        return self._token

    def __repr__(self) -> str:
        return f"DirectoryClient(base_url={self.base_url!r}, token={redact(self._token)!r})"

    async def __aenter__(self) -> "DirectoryClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers={
                    "Authorization": f"Bot {self._token}",
                    "User-Agent": self._user_agent,
                },
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def request(
        self, method: str, path: str, params: dict[str, str] | None = None
    ) -> Any:
        """Issue an API request and return the envelope's ``data`` field."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            async with self._get_session().request(method, url, params=params) as resp:
                status = resp.status
                body = await resp.read()
        except aiohttp.ClientError as e:
            raise TransportError(f"{method} {url} failed: {get_short_error_info(e)}") from e
        except TimeoutError as e:
            raise TransportError(f"{method} {url} timed out") from e

        text = body.decode("utf-8", errors="replace")
        if status in (401, 403):
            raise AuthError(f"HTTP {status} from {url}: {text}")
        if not 200 <= status < 300:
            raise TransportError(f"HTTP {status} from {url}: {text}")

        try:
            envelope = json.loads(body.decode("utf-8"))
        except ValueError as e:
            raise ProtocolError(f"Unparseable response from {url}: {body[:200]!r}") from e
        if not isinstance(envelope, dict):
            raise ProtocolError(f"Unexpected response from {url}: {text!r}")

        code = envelope.get("code")
        if code != 0:
            message = envelope.get("message", "")
            if isinstance(code, int) and _is_auth_code(code):
                raise AuthError(f"Authentication failed ({code}): {message}")
            raise ProtocolError(f"API error {code}: {message}")

        data = envelope.get("data")
        if data is None:
            raise ProtocolError(f"Response data is null: {text!r}")
        return data

    async def resolve_endpoint(self, compress: bool) -> Endpoint:
        """Fetch the gateway URL for a new connection."""
        data = await self.request(
            "GET", GATEWAY_PATH, params={"compress": "1" if compress else "0"}
        )
        url = data.get("url") if isinstance(data, dict) else None
        if not isinstance(url, str) or not url:
            raise ProtocolError(f"Gateway response has no url: {data!r}")
        return Endpoint(url=url, token=self._token)
