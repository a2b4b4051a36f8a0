"""
Session-bound captcha challenges.

A challenge is a short random string rendered as a distorted PNG. The plain
text is kept server-side under an opaque challenge id, which the client holds
in a cookie. The first verification attempt consumes the challenge whether it
passes or fails, so every retry needs a freshly fetched image.
"""

from __future__ import annotations

import io
import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from captcha.image import ImageCaptcha

from blogauth.config import settings

logger = logging.getLogger(__name__)

PNG_MEDIA_TYPE = "image/png"


@dataclass
class _Challenge:
    text: str
    created_at: float


@dataclass(frozen=True)
class IssuedChallenge:
    """What the caller hands to the client."""

    challenge_id: str
    image: bytes
    media_type: str = PNG_MEDIA_TYPE


class CaptchaStore:
    """Thread-safe in-memory challenge store with lazy expiry."""

    def __init__(self, ttl_seconds: int) -> None:
        self.ttl_seconds = ttl_seconds
        self._lock = threading.Lock()
        self._challenges: Dict[str, _Challenge] = {}

    def _purge_expired(self, now: float) -> None:
        cutoff = now - self.ttl_seconds
        stale = [cid for cid, ch in self._challenges.items() if ch.created_at <= cutoff]
        for cid in stale:
            del self._challenges[cid]

    def put(self, challenge_id: str, text: str) -> None:
        now = time.time()
        with self._lock:
            self._purge_expired(now)
            self._challenges[challenge_id] = _Challenge(text=text, created_at=now)

    def pop(self, challenge_id: str) -> Optional[str]:
        """Remove and return the challenge text; None if missing or expired."""
        now = time.time()
        with self._lock:
            challenge = self._challenges.pop(challenge_id, None)
            self._purge_expired(now)
        if challenge is None or challenge.created_at <= now - self.ttl_seconds:
            return None
        return challenge.text

    def __len__(self) -> int:
        with self._lock:
            return len(self._challenges)

    def clear(self) -> None:
        with self._lock:
            self._challenges.clear()


def random_text(length: int, charset: str) -> str:
    return "".join(secrets.choice(charset) for _ in range(length))


def render_png(text: str) -> bytes:
    """Render challenge text as a distorted PNG."""
    data: io.BytesIO = ImageCaptcha(width=160, height=60).generate(text)
    return data.getvalue()


class CaptchaService:
    """Issue and verify captcha challenges."""

    def __init__(
        self,
        store: CaptchaStore,
        text_factory: Optional[Callable[[], str]] = None,
        renderer: Callable[[str], bytes] = render_png,
    ) -> None:
        self.store = store
        self._text_factory = text_factory or (
            lambda: random_text(settings.CAPTCHA_LENGTH, settings.CAPTCHA_CHARSET)
        )
        self._renderer = renderer

    def issue(self) -> IssuedChallenge:
        text = self._text_factory()
        challenge_id = secrets.token_urlsafe(24)
        self.store.put(challenge_id, text)
        return IssuedChallenge(challenge_id=challenge_id, image=self._renderer(text))

    def verify(self, challenge_id: Optional[str], response: Optional[str]) -> bool:
        """
        Check a response against the challenge issued for ``challenge_id``.

        Case-insensitive. The challenge is consumed either way.
        """
        if not challenge_id:
            return False
        expected = self.store.pop(challenge_id)
        if expected is None:
            logger.info("Captcha verification without a live challenge")
            return False
        if not response:
            return False
        return secrets.compare_digest(
            expected.casefold().encode("utf-8"),
            response.strip().casefold().encode("utf-8"),
        )


captcha_store = CaptchaStore(ttl_seconds=settings.CAPTCHA_TTL_SECONDS)
captcha_service = CaptchaService(captcha_store)
