"""
In-memory stores: options/rules, per-tab flags and the tab directory.
"""

import copy
from collections import deque
from typing import Any, Optional

from tabkeeper.autosave.collaborators import (
    OptionsProvider,
    SessionDirectory,
    SessionFlagsStore,
)
from tabkeeper.autosave.models import Rule, Session, SessionId
from tabkeeper.config import DEFAULT_OPTIONS, DEFAULT_PROFILE_NAME, DISABLED_PROFILE_NAME
from tabkeeper.logger import get_logger

logger = get_logger(__name__)

MAX_OUTBOX = 1000
MAX_CLOSED_HISTORY = 100


class MemoryOptionsProvider(OptionsProvider):
    """
    Options are the defaults overlaid with a named profile. A rule picks the
    profile for URLs starting with its ``url``; the longest matching prefix wins.
    """

    def __init__(
        self,
        defaults: Optional[dict[str, Any]] = None,
        profiles: Optional[dict[str, dict[str, Any]]] = None,
        rules: Optional[list[Rule]] = None,
    ):
        self.defaults = dict(DEFAULT_OPTIONS if defaults is None else defaults)
        self.profiles: dict[str, dict[str, Any]] = dict(profiles or {})
        self.rules: list[Rule] = list(rules or [])

    def add_rule(self, rule: Rule) -> None:
        self.rules = [r for r in self.rules if r.url != rule.url] + [rule]

    def set_profile(self, name: str, options: dict[str, Any]) -> None:
        self.profiles[name] = dict(options)

    async def get_rule(self, url: str) -> Optional[Rule]:
        matches = [rule for rule in self.rules if url and url.startswith(rule.url)]
        return max(matches, key=lambda rule: len(rule.url), default=None)

    async def get_options(
        self, url: str, force_consider: bool = False
    ) -> Optional[dict[str, Any]]:
        rule = await self.get_rule(url)
        profile_name = DEFAULT_PROFILE_NAME
        if rule is not None:
            profile_name = (
                rule.auto_save_profile if force_consider else rule.profile
            ) or DEFAULT_PROFILE_NAME
        if profile_name == DISABLED_PROFILE_NAME:
            return None
        return {**copy.deepcopy(self.defaults), **copy.deepcopy(self.profiles.get(profile_name, {}))}


class MemorySessionFlags(SessionFlagsStore):
    def __init__(self, data: Optional[dict[Any, Any]] = None):
        self._data: dict[Any, Any] = copy.deepcopy(data or {})

    async def get(self, session_id: Optional[SessionId] = None) -> dict[Any, Any]:
        data = copy.deepcopy(self._data)
        if session_id is not None:
            data.setdefault(session_id, {})
        return data

    async def set(self, data: dict[Any, Any]) -> None:
        self._data = copy.deepcopy(data)


class MemorySessionDirectory(SessionDirectory):
    """
    Tabs known from incoming messages and events. Messages sent to a tab are
    queued in ``outbox`` for the host to pick up; once it holds ``MAX_OUTBOX``
    messages the oldest are dropped.
    """

    def __init__(self, sessions: Optional[list[Session]] = None):
        self.sessions: dict[SessionId, Session] = {s.id: s for s in sessions or []}
        self.outbox: deque = deque(maxlen=MAX_OUTBOX)
        self.closed: deque = deque(maxlen=MAX_CLOSED_HISTORY)

    def remember(self, session: Session) -> None:
        self.sessions[session.id] = session

    def forget(self, session_id: SessionId) -> None:
        self.sessions.pop(session_id, None)

    async def list_sessions(self, filter: Optional[dict] = None) -> list[Session]:
        filter = filter or {}
        return [
            session
            for session in self.sessions.values()
            if all(getattr(session, key, None) == value for key, value in filter.items())
        ]

    async def get_session(self, session_id: SessionId) -> Optional[Session]:
        return self.sessions.get(session_id)

    async def send_message(self, session_id: SessionId, message: dict) -> Any:
        if session_id not in self.sessions:
            raise LookupError(f"Session {session_id} is not connected")
        self.outbox.append((session_id, message))
        return {}

    async def close_session(self, session_id: SessionId) -> None:
        self.forget(session_id)
        self.closed.append(session_id)
        logger.debug(f"Closed session {session_id}")

    def drain_outbox(self, session_id: Optional[SessionId] = None) -> list[dict]:
        """Pop queued messages, optionally only those for one tab."""
        taken = [m for sid, m in self.outbox if session_id is None or sid == session_id]
        self.outbox = deque(
            ((sid, m) for sid, m in self.outbox if not (session_id is None or sid == session_id)),
            maxlen=MAX_OUTBOX,
        )
        return taken
