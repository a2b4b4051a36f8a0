"""Typed helpers for the authentication endpoints"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from blogauth.client.session import SessionExpiredError, SessionHttpClient, error_code

logger = logging.getLogger(__name__)

CAPTCHA_HEADER = "X-Captcha-Id"


class AuthApiError(Exception):
    """Non-success response from an auth endpoint."""

    def __init__(self, status_code: int, code: Optional[str], message: str):
        self.status_code = status_code
        self.code = code
        self.message = message
        super().__init__(f"{status_code} {code}: {message}")


@dataclass(frozen=True)
class CaptchaImage:
    challenge_id: str
    image: bytes
    media_type: str


def _raise_for_error(response: httpx.Response) -> None:
    if response.is_success:
        return
    try:
        message = response.json().get("error") or response.reason_phrase
    except (ValueError, AttributeError):
        message = response.reason_phrase
    raise AuthApiError(response.status_code, error_code(response), message)


class AuthApi:
    """Login, registration and profile calls over a :class:`SessionHttpClient`."""

    def __init__(self, client: SessionHttpClient, prefix: str = "/api/v1/auth"):
        self.client = client
        self.prefix = prefix.rstrip("/")
        self._challenge_id: Optional[str] = None

    def _captcha_headers(self) -> Dict[str, str]:
        return {CAPTCHA_HEADER: self._challenge_id} if self._challenge_id else {}

    async def fetch_captcha(self) -> CaptchaImage:
        """Fetch a fresh challenge; it is used by the next register/login call."""
        response = await self.client.get(f"{self.prefix}/captcha")
        _raise_for_error(response)
        self._challenge_id = response.headers.get(CAPTCHA_HEADER)
        return CaptchaImage(
            challenge_id=self._challenge_id or "",
            image=response.content,
            media_type=response.headers.get("content-type", "image/png"),
        )

    async def _submit_credentials(self, path: str, username: str, password: str, captcha: str) -> Dict[str, Any]:
        headers = self._captcha_headers()
        # The challenge is spent server-side whatever the outcome
        self._challenge_id = None
        response = await self.client.post(
            f"{self.prefix}/{path}",
            json={"username": username, "password": password, "captcha": captcha},
            headers=headers,
        )
        _raise_for_error(response)
        return response.json()

    async def register(self, username: str, password: str, captcha: str) -> Dict[str, Any]:
        return await self._submit_credentials("register", username, password, captcha)

    async def login(self, username: str, password: str, captcha: str) -> Dict[str, Any]:
        """Log in and store both tokens."""
        body = await self._submit_credentials("login", username, password, captcha)
        self.client.storage.set_tokens(body["token"], body.get("refreshToken"))
        logger.info(f"Logged in as {username}")
        return body

    async def me(self) -> Dict[str, Any]:
        response = await self.client.get(f"{self.prefix}/me")
        _raise_for_error(response)
        return response.json()

    async def logout(self) -> bool:
        """
        End the server-side session and forget the local tokens.

        Returns:
            bool: True if the server acknowledged the logout
        """
        try:
            response = await self.client.post(f"{self.prefix}/logout")
            return response.is_success
        except (httpx.HTTPError, SessionExpiredError) as exc:
            logger.info(f"Server logout skipped: {exc}")
            return False
        finally:
            self.client.storage.clear()
