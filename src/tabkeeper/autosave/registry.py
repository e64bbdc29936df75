"""
Registry of pending save intents, one per tab.

Also tracks tabs whose id was replaced while they held an entry. A redirect
only ever spans one hop (original id -> current id) and exists only while
the entry it moved is still registered.
"""

import time
from dataclasses import dataclass
from typing import Optional, Union

from tabkeeper.autosave.errors import InvalidSessionError
from tabkeeper.autosave.models import ClosedMarker, PendingEntry, SessionId
from tabkeeper.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Direct:
    """The entry is registered under the id it was created for."""

    session_id: SessionId


@dataclass(frozen=True)
class Redirected:
    """The entry created for ``origin_id`` now lives under ``session_id``."""

    origin_id: SessionId
    session_id: SessionId


Ref = Union[Direct, Redirected]


def _check_id(session_id) -> None:
    if session_id is None or isinstance(session_id, bool):
        raise InvalidSessionError(f"Invalid session id: {session_id!r}")


class PendingRegistry:
    """In-memory keyed store of pending entries. Owned by a single coordinator."""

    def __init__(self):
        self._entries: dict[SessionId, PendingEntry] = {}
        self._redirects: dict[SessionId, Redirected] = {}

    def set(self, session_id: SessionId, entry: PendingEntry) -> None:
        """Register ``entry``, replacing whatever ``session_id`` held."""
        _check_id(session_id)
        self._drop_redirect_to(session_id)
        self._entries[session_id] = entry
        logger.debug(f"Registered {type(entry).__name__} for session {session_id}")

    def get(self, session_id: SessionId) -> Optional[PendingEntry]:
        _check_id(session_id)
        return self._entries.get(session_id)

    def clear(self, session_id: SessionId) -> Optional[PendingEntry]:
        """Remove the entry for ``session_id``. Clearing an absent entry is a no-op."""
        _check_id(session_id)
        self._drop_redirect_to(session_id)
        entry = self._entries.pop(session_id, None)
        if entry is not None:
            logger.debug(f"Cleared {type(entry).__name__} for session {session_id}")
        return entry

    def take(self, session_id: SessionId) -> tuple[Optional[PendingEntry], Ref]:
        """
        Remove the entry for a flush and consume its redirect.

        Returns:
            (entry, ref) where ``ref`` names the current id and, if the entry
            was moved, the id it was created for.
        """
        _check_id(session_id)
        entry = self._entries.pop(session_id, None)
        origin_id = self._origin_of(session_id)
        if origin_id is None:
            return entry, Direct(session_id)
        return entry, self._redirects.pop(origin_id)

    def redirect(self, old_id: SessionId, new_id: SessionId) -> bool:
        """
        Move the entry of a tab whose id changed.

        Only moves when ``old_id`` holds an entry and ``new_id`` does not.

        Returns:
            True if the entry was moved.
        """
        _check_id(old_id)
        _check_id(new_id)
        if old_id not in self._entries or new_id in self._entries:
            return False

        self._entries[new_id] = self._entries.pop(old_id)
        # Re-point an existing redirect instead of chaining a second hop
        origin_id = self._origin_of(old_id)
        if origin_id is None:
            origin_id = old_id
        self._redirects[origin_id] = Redirected(origin_id, new_id)
        logger.debug(f"Redirected pending entry {old_id} -> {new_id} (origin {origin_id})")
        return True

    def resolve(self, session_id: SessionId) -> Ref:
        """Look up where ``session_id``'s entry lives without consuming anything."""
        _check_id(session_id)
        origin_id = self._origin_of(session_id)
        if origin_id is not None:
            return self._redirects[origin_id]
        if session_id in self._redirects:
            return self._redirects[session_id]
        return Direct(session_id)

    def resolve_redirect(self, session_id: SessionId) -> Ref:
        """
        Like ``resolve`` but removes the redirect it finds.

        ``session_id`` may be either side of the redirect.
        """
        ref = self.resolve(session_id)
        if isinstance(ref, Redirected):
            del self._redirects[ref.origin_id]
        return ref

    def snapshot(self) -> dict:
        """Serializable view of the registry for inspection."""
        return {
            "entries": {
                str(session_id): type(entry).__name__
                for session_id, entry in self._entries.items()
            },
            "redirects": {
                str(origin): ref.session_id for origin, ref in self._redirects.items()
            },
        }

    def prune_closed_markers(self, max_age: float, now: Optional[float] = None) -> int:
        """
        Forget closed markers older than ``max_age`` seconds.

        Returns:
            Number of markers removed.
        """
        now = time.monotonic() if now is None else now
        expired = [
            session_id
            for session_id, entry in self._entries.items()
            if isinstance(entry, ClosedMarker) and now - entry.closed_at > max_age
        ]
        for session_id in expired:
            self._drop_redirect_to(session_id)
            del self._entries[session_id]
        if expired:
            logger.debug(f"Pruned {len(expired)} closed marker(s)")
        return len(expired)

    def reset(self) -> None:
        self._entries.clear()
        self._redirects.clear()

    def forget_redirect(self, session_id: SessionId) -> None:
        """Drop the redirect pointing at ``session_id``, if any."""
        _check_id(session_id)
        self._drop_redirect_to(session_id)

    def has_redirect(self, session_id: SessionId) -> bool:
        return isinstance(self.resolve(session_id), Redirected)

    def __contains__(self, session_id: SessionId) -> bool:
        return session_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    # -- Internal ------------------------------------------------------------

    def _origin_of(self, session_id: SessionId) -> Optional[SessionId]:
        return next(
            (
                origin
                for origin, ref in self._redirects.items()
                if ref.session_id == session_id
            ),
            None,
        )

    def _drop_redirect_to(self, session_id: SessionId) -> None:
        origin_id = self._origin_of(session_id)
        if origin_id is not None:
            del self._redirects[origin_id]
