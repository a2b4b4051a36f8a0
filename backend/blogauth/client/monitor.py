"""Proactive access token refresh"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from blogauth.config import settings
from blogauth.core.security import peek_expiry
from blogauth.client.session import SessionHttpClient

logger = logging.getLogger(__name__)

EXPIRY_WARNING_MESSAGE = "Your session is about to expire, save your work"


class TokenExpiryMonitor:
    """
    Periodically refresh the access token shortly before it expires.

    A failed refresh only warns the user; the forced logout is left to the
    request path, which sees the 401 when the token actually runs out.
    """

    def __init__(
        self,
        client: SessionHttpClient,
        interval: Optional[float] = None,
        lead: Optional[timedelta] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.client = client
        self.interval = settings.CLIENT_EXPIRY_CHECK_INTERVAL_SECONDS if interval is None else interval
        self.lead = timedelta(minutes=settings.CLIENT_REFRESH_LEAD_MINUTES) if lead is None else lead
        self._clock = clock
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def check_once(self) -> bool:
        """
        Refresh if the stored access token expires within the lead window.

        Returns:
            bool: True if a refresh was attempted
        """
        token = self.client.storage.get_access_token()
        if not token:
            return False

        expires_at = peek_expiry(token)
        if expires_at is None:
            logger.warning("Could not read access token expiry")
            return False
        if expires_at - self._clock() > self.lead:
            return False

        logger.info(f"Access token expires at {expires_at.isoformat()}; refreshing")
        if not await self.client.refresh():
            self.client.notifier.warning(EXPIRY_WARNING_MESSAGE)
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.check_once()
            except Exception:
                logger.exception("Token expiry check failed")

    def start(self) -> None:
        """Start the background loop on the running event loop."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
