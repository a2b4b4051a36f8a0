"""Seam to the article/comment store that owns authored content."""

from __future__ import annotations

from typing import Protocol


class AuthoredContentStore(Protocol):
    """What the auth core needs from the content side.

    Implementations must be safe to call inside the caller's database
    transaction; account deletion invokes ``delete_by_author`` before the
    identity row is removed.
    """

    def count_by_author(self, identity_id: str) -> int: ...

    def delete_by_author(self, identity_id: str) -> int: ...


class NullContentStore:
    """Used when no content service is wired in."""

    def count_by_author(self, identity_id: str) -> int:
        return 0

    def delete_by_author(self, identity_id: str) -> int:
        return 0


content_store: AuthoredContentStore = NullContentStore()


def get_content_store() -> AuthoredContentStore:
    """FastAPI dependency; override to plug in the real article store."""
    return content_store
