"""
Notification, overlay and save-request adapters.

``LoggingNotifier`` keeps per-tab save progress in memory and logs it;
the HTTP layer exposes that state to the host.
"""

import html
from collections import deque
from datetime import datetime, timezone
from typing import Any

from tabkeeper.autosave.collaborators import (
    Notifier,
    OverlayInjector,
    SaveRequester,
    SessionDirectory,
)
from tabkeeper.autosave.models import PageData, Session, SessionId
from tabkeeper.logger import get_logger

logger = get_logger(__name__)

# Recent refreshes and finished tasks kept for inspection
MAX_HISTORY = 100


class LoggingNotifier(Notifier):
    def __init__(self):
        self.active: dict[SessionId, int] = {}
        self.refreshed: deque = deque(maxlen=MAX_HISTORY)

    def on_start(self, session_id: SessionId, count: int, auto_save: bool) -> None:
        self.active[session_id] = self.active.get(session_id, 0) + count
        logger.info(f"Save started for session {session_id} (auto: {auto_save})")

    def on_end(self, session_id: SessionId, auto_save: bool) -> None:
        remaining = self.active.get(session_id, 0) - 1
        if remaining > 0:
            self.active[session_id] = remaining
        else:
            self.active.pop(session_id, None)
        logger.info(f"Save ended for session {session_id} (auto: {auto_save})")

    def refresh_session(self, session: Session) -> None:
        self.refreshed.append(session.id)
        logger.debug(f"Refresh requested for session {session.id}")


class InfobarInjector(OverlayInjector):
    """Adds a banner naming the page's origin and save time."""

    async def include(self, page_data: PageData) -> None:
        saved_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
        title = html.escape(page_data.title or page_data.filename)
        banner = (
            f"<!-- Page saved with tabkeeper on {saved_at} -->\n"
            f'<div id="tabkeeper-infobar" style="font:12px sans-serif;padding:4px;'
            f'background:#ffd;border-bottom:1px solid #cc9">Saved copy of '
            f"<strong>{title}</strong> ({saved_at})</div>\n"
        )
        page_data.content = banner + page_data.content


class BackgroundSaveRequester(SaveRequester):
    """Asks tabs to send their content for saving; records finished tasks."""

    def __init__(self, sessions: SessionDirectory):
        self.sessions = sessions
        self.completed: deque = deque(maxlen=MAX_HISTORY)

    async def save_sessions(
        self, sessions: list[Session], options: dict[str, Any]
    ) -> None:
        for session in sessions:
            try:
                await self.sessions.send_message(
                    session.id, {"method": "content.save", **options}
                )
            except Exception as e:
                logger.warning(f"Could not request save from session {session.id}: {e}")

    def on_save_end(self, task_id: str) -> None:
        self.completed.append(task_id)
        logger.info(f"Task {task_id} finished")
