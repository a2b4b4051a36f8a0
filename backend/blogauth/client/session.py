"""
Session-aware HTTP client.

Wraps :class:`httpx.AsyncClient` so that every request carries the stored
access token, and a ``401`` from a protected endpoint is answered by one
shared refresh followed by a single retry. When the session cannot be
recovered the stored tokens are cleared, the user is told once, and the
``on_session_expired`` hook (typically "go to the login screen") runs.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol, Union

import httpx

from blogauth.config import settings
from blogauth.client.storage import MemoryTokenStorage, TokenStorage

logger = logging.getLogger(__name__)

SESSION_EXPIRED_MESSAGE = "Session expired, please log in again"
NETWORK_ERROR_MESSAGE = "Network connection failed, please check your connection"

# Endpoints whose 401s mean "bad credentials", not "stale session"
AUTH_ENDPOINTS = ("/auth/login", "/auth/register", "/auth/refresh", "/auth/captcha")


class SessionExpiredError(Exception):
    """The session is gone and the user has to log in again."""


class Notifier(Protocol):
    def error(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...


class LoggingNotifier:
    """Default notifier: user-facing messages go to the log."""

    def error(self, message: str) -> None:
        logger.error(message)

    def warning(self, message: str) -> None:
        logger.warning(message)


def error_code(response: httpx.Response) -> Optional[str]:
    """Machine-readable ``code`` from an error envelope, if there is one."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("code")
    return None


class SessionHttpClient:
    """
    HTTP client with transparent access token refresh.

    Args:
        base_url: Server root, e.g. ``http://localhost:8000``
        storage: Token storage; in-memory by default
        notifier: Sink for user-facing messages
        on_session_expired: Called (or awaited) after a forced logout
        refresh_path: Path of the refresh endpoint
        logout_cooldown: Seconds during which further failures stay silent
        transport: Optional httpx transport, mainly for tests
    """

    def __init__(
        self,
        base_url: str,
        storage: Optional[TokenStorage] = None,
        notifier: Optional[Notifier] = None,
        on_session_expired: Optional[Callable[[], Union[None, Awaitable[None]]]] = None,
        *,
        refresh_path: str = "/api/v1/auth/refresh",
        logout_cooldown: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.storage: TokenStorage = storage if storage is not None else MemoryTokenStorage()
        self.notifier: Notifier = notifier if notifier is not None else LoggingNotifier()
        self.on_session_expired = on_session_expired
        self.refresh_path = refresh_path
        self.logout_cooldown = (
            settings.CLIENT_LOGOUT_COOLDOWN_SECONDS if logout_cooldown is None else logout_cooldown
        )
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)
        self._refresh_task: Optional[asyncio.Task] = None
        self._cooldown_until = 0.0
        self.refresh_count = 0

    async def __aenter__(self) -> "SessionHttpClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_task.cancel()
        await self._http.aclose()

    @staticmethod
    def _is_auth_endpoint(url: Union[str, httpx.URL]) -> bool:
        path = httpx.URL(str(url)).path.rstrip("/")
        return path.endswith(AUTH_ENDPOINTS)

    def _now(self) -> float:
        return asyncio.get_running_loop().time()

    async def _send(
        self, method: str, url: Union[str, httpx.URL], token: Optional[str], **kwargs: Any
    ) -> httpx.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            return await self._http.request(method, url, headers=headers, **kwargs)
        except httpx.TransportError:
            self.notifier.error(NETWORK_ERROR_MESSAGE)
            raise

    async def request(self, method: str, url: Union[str, httpx.URL], **kwargs: Any) -> httpx.Response:
        """
        Send a request with the stored access token.

        Raises:
            SessionExpiredError: The token was rejected and could not be refreshed
            httpx.TransportError: Network failure
        """
        sent_token = self.storage.get_access_token()
        response = await self._send(method, url, sent_token, **kwargs)
        if response.status_code != 401 or self._is_auth_endpoint(url):
            return response

        code = error_code(response)
        if code == "invalid_signature":
            logger.warning(f"Access token rejected as invalid for {method} {url}")
            await self.expire_session()
            raise SessionExpiredError(SESSION_EXPIRED_MESSAGE)

        current_token = self.storage.get_access_token()
        if current_token and current_token != sent_token:
            # Someone else refreshed while this request was in flight
            return await self._send(method, url, current_token, **kwargs)

        if await self.refresh():
            return await self._send(method, url, self.storage.get_access_token(), **kwargs)

        await self.expire_session()
        raise SessionExpiredError(SESSION_EXPIRED_MESSAGE)

    async def get(self, url: Union[str, httpx.URL], **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: Union[str, httpx.URL], **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: Union[str, httpx.URL], **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: Union[str, httpx.URL], **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: Union[str, httpx.URL], **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    async def refresh(self) -> bool:
        """
        Refresh the token pair, sharing one in-flight refresh among all callers.

        Returns:
            bool: True when new tokens were stored
        """
        if self._refresh_task is None:
            if self._now() < self._cooldown_until:
                return False
            self._refresh_task = asyncio.ensure_future(self._refresh_tokens())
        task = self._refresh_task
        try:
            ok = await asyncio.shield(task)
        finally:
            if task.done() and self._refresh_task is task:
                self._release(task)
        return ok

    def _release(self, task: asyncio.Task) -> None:
        self._refresh_task = None
        if task.cancelled() or task.exception() is not None or not task.result():
            self._cooldown_until = self._now() + self.logout_cooldown

    async def _refresh_tokens(self) -> bool:
        refresh_token = self.storage.get_refresh_token()
        if not refresh_token:
            logger.info("No refresh token stored; cannot refresh")
            return False

        self.refresh_count += 1
        try:
            response = await self._http.post(self.refresh_path, json={"refreshToken": refresh_token})
        except httpx.HTTPError as exc:
            logger.warning(f"Token refresh failed: {exc}")
            return False

        if response.status_code != 200:
            logger.info(f"Token refresh rejected: {response.status_code} {error_code(response)}")
            return False

        body = response.json()
        self.storage.set_tokens(body["accessToken"], body.get("refreshToken"))
        logger.info("Access token refreshed")
        return True

    async def expire_session(self) -> None:
        """Clear tokens, tell the user and run the expiry hook; silent during cooldown."""
        now = self._now()
        if now < self._cooldown_until and self.storage.get_access_token() is None:
            return
        self._cooldown_until = now + self.logout_cooldown
        self.storage.clear()
        self.notifier.error(SESSION_EXPIRED_MESSAGE)
        if self.on_session_expired is not None:
            result = self.on_session_expired()
            if inspect.isawaitable(result):
                await result
