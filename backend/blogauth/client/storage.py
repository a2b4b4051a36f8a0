"""Client-side token storage"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional, Protocol, Union

logger = logging.getLogger(__name__)


class TokenStorage(Protocol):
    """Where a client keeps its access and refresh tokens."""

    def get_access_token(self) -> Optional[str]: ...

    def get_refresh_token(self) -> Optional[str]: ...

    def set_tokens(self, access_token: str, refresh_token: Optional[str] = None) -> None: ...

    def clear(self) -> None: ...


class MemoryTokenStorage:
    """Tokens held for the lifetime of the process."""

    def __init__(self, access_token: Optional[str] = None, refresh_token: Optional[str] = None):
        self._access_token = access_token
        self._refresh_token = refresh_token

    def get_access_token(self) -> Optional[str]:
        return self._access_token

    def get_refresh_token(self) -> Optional[str]:
        return self._refresh_token

    def set_tokens(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        self._access_token = access_token
        if refresh_token is not None:
            self._refresh_token = refresh_token

    def clear(self) -> None:
        self._access_token = None
        self._refresh_token = None


class FileTokenStorage:
    """
    Tokens persisted as a small JSON file so a session survives restarts.

    The file is written with owner-only permissions and replaced atomically.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _load(self) -> dict:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            logger.warning(f"Ignoring unreadable token file {self.path}: {exc}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh)
        os.replace(tmp, self.path)

    def get_access_token(self) -> Optional[str]:
        return self._load().get("token")

    def get_refresh_token(self) -> Optional[str]:
        return self._load().get("refreshToken")

    def set_tokens(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        data = self._load()
        data["token"] = access_token
        if refresh_token is not None:
            data["refreshToken"] = refresh_token
        self._save(data)

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
