"""
Message handling for tabs and external callers.

Internal messages (from tabs):
    <ns>.init  -> options and auto-save state for the sender tab
    <ns>.save  -> register or flush a save

External messages:
    enableAutoSave     -> switch auto-save on/off for one tab
    isAutoSaveEnabled  -> eligibility of one tab
"""

import asyncio
from typing import Any, Callable, Optional

from tabkeeper.autosave.collaborators import Collaborators
from tabkeeper.autosave.errors import InvalidSessionError, UnknownMethodError
from tabkeeper.autosave.models import (
    ClosedMarker,
    ExternalMessage,
    InitResponse,
    SaveIntent,
    SaveMessage,
    Sender,
    Session,
)
from tabkeeper.autosave.policy import EligibilityPolicy
from tabkeeper.autosave.registry import Direct, PendingRegistry, Ref
from tabkeeper.logger import get_logger

logger = get_logger(__name__)


class RequestDispatcher:
    def __init__(
        self,
        registry: PendingRegistry,
        policy: EligibilityPolicy,
        collaborators: Collaborators,
        flush: Callable[[SaveIntent, Ref], None],
    ):
        self.registry = registry
        self.policy = policy
        self.collaborators = collaborators
        self._flush = flush

    async def handle_message(self, message: dict, sender: Sender) -> Optional[dict]:
        """Route an internal message by its method suffix. Unknown methods return None."""
        method = message.get("method", "")
        if method.endswith(".init"):
            if sender.tab is None:
                raise InvalidSessionError("init requires a sender tab")
            response = await self.handle_init(sender.tab)
            return response.model_dump(by_alias=True)
        if method.endswith(".save"):
            await self.handle_save_request(SaveMessage.model_validate(message), sender)
            return {}
        logger.debug(f"Ignoring message with method {method!r}")
        return None

    async def handle_external_message(
        self, message: ExternalMessage, session: Session
    ) -> Optional[bool]:
        if message.method == "enableAutoSave":
            await self.handle_external_enable(session, bool(message.enabled))
            return None
        if message.method == "isAutoSaveEnabled":
            return await self.handle_external_query(session)
        raise UnknownMethodError(f"Unknown external method: {message.method!r}")

    async def handle_init(self, session: Session) -> InitResponse:
        options, enabled = await asyncio.gather(
            self.collaborators.options.get_options(session.url, True),
            self.policy.is_eligible(session),
        )
        return InitResponse(
            options=options,
            auto_save_enabled=enabled,
            tab_id=session.id,
            tab_index=session.index,
        )

    async def handle_save_request(self, message: SaveMessage, sender: Sender) -> None:
        """
        Register or flush a save request. Flushed saves run in the background;
        this returns as soon as the registry reflects the request.
        """
        session = sender.tab or self._detached_session(message, sender)

        if not (message.auto_save_discard or message.auto_save_remove):
            self.registry.clear(message.tab_id if message.tab_id is not None else session.id)
            self._flush(SaveIntent(message, session), Direct(session.id))
            return

        if sender.tab is not None:
            # Deferred: a later lifecycle event decides whether it flushes
            self.registry.set(session.id, SaveIntent(message, session))
        elif isinstance(self.registry.get(session.id), ClosedMarker):
            if message.auto_save_remove:
                self.registry.clear(session.id)
                logger.info(f"Session {session.id} already closed, saving now")
                self._flush(SaveIntent(message, session), Direct(session.id))
        else:
            self.registry.set(session.id, SaveIntent(message, session))

        if message.auto_save_unload:
            self.registry.clear(session.id)
            self._flush(SaveIntent(message, session), Direct(session.id))

    async def handle_external_enable(self, session: Session, enabled: bool) -> None:
        flags_store = self.collaborators.flags
        flags = await flags_store.get(session.id)
        flags[session.id]["autoSave"] = enabled
        await flags_store.set(flags)
        logger.info(f"Auto-save {'enabled' if enabled else 'disabled'} for session {session.id}")
        self.collaborators.notifier.refresh_session(session)

    async def handle_external_query(self, session: Session) -> bool:
        return await self.policy.is_eligible(session)

    async def handle_broadcast_refresh(self) -> None:
        """Push current options and auto-save state to every known tab."""
        sessions = await self.collaborators.sessions.list_sessions({})
        await asyncio.gather(*(self._refresh_session(session) for session in sessions))

    async def handle_session_loaded(self, session: Session) -> bool:
        """
        Start a save for a freshly loaded tab when its options ask for
        auto-save on load.

        Returns:
            True if a save was requested.
        """
        options, enabled = await asyncio.gather(
            self.collaborators.options.get_options(session.url, True),
            self.policy.is_eligible(session),
        )
        if not options or not enabled:
            return False
        if not (options.get("autoSaveLoad") or options.get("autoSaveLoadOrUnload")):
            return False
        await self.collaborators.requester.save_sessions([session], {"autoSave": True})
        return True

    # -- Internal ------------------------------------------------------------

    async def _refresh_session(self, session: Session) -> None:
        options, enabled = await asyncio.gather(
            self.collaborators.options.get_options(session.url, True),
            self.policy.is_eligible(session),
        )
        message: dict[str, Any] = {
            "method": "content.init",
            "autoSaveEnabled": enabled,
            "options": options,
        }
        try:
            await self.collaborators.sessions.send_message(session.id, message)
        except Exception as e:
            logger.debug(f"Session {session.id} did not take refresh: {e}")

    @staticmethod
    def _detached_session(message: SaveMessage, sender: Sender) -> Session:
        if message.tab_id is None:
            raise InvalidSessionError("Save request carries neither a sender tab nor a tabId")
        return Session(
            id=message.tab_id,
            index=message.tab_index or 0,
            url=sender.url or message.url or "",
        )
