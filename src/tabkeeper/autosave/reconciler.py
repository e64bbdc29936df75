"""
Tab lifecycle reconciliation.

Each tab's pending entry is in one of three states:

    ABSENT        nothing registered
    CLOSED_MARKER the tab closed before its save request arrived
    PENDING_SAVE  a save request waits for a lifecycle event

``transition`` is a pure function over that state machine; it returns the
next entry and, when the event must run the save, the intent to flush.
``LifecycleReconciler`` applies transitions to a registry.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from tabkeeper.autosave.models import (
    ClosedMarker,
    PendingEntry,
    SaveIntent,
    SessionId,
)
from tabkeeper.autosave.registry import PendingRegistry, Ref
from tabkeeper.logger import get_logger

logger = get_logger(__name__)


class IntentState(str, Enum):
    ABSENT = "absent"
    CLOSED_MARKER = "closed_marker"
    PENDING_SAVE = "pending_save"


class LifecycleEvent(str, Enum):
    CONTENT_UPDATED = "updated"
    SESSION_CLOSED = "removed"
    SESSION_SUSPENDED = "discarded"


@dataclass(frozen=True)
class Transition:
    entry: Optional[PendingEntry]
    flush: Optional[SaveIntent] = None


def state_of(entry: Optional[PendingEntry]) -> IntentState:
    if entry is None:
        return IntentState.ABSENT
    if isinstance(entry, ClosedMarker):
        return IntentState.CLOSED_MARKER
    return IntentState.PENDING_SAVE


def _discard(entry):
    return Transition(None)


def _keep(entry):
    return Transition(entry)


def _mark_closed(entry):
    return Transition(ClosedMarker())


def _flush(entry):
    return Transition(None, flush=entry)


def _flush_if_remove_on_save(entry):
    return _flush(entry) if entry.remove_on_save else _keep(entry)


_TRANSITIONS = {
    # A newer document state supersedes whatever was pending
    (IntentState.ABSENT, LifecycleEvent.CONTENT_UPDATED): _discard,
    (IntentState.CLOSED_MARKER, LifecycleEvent.CONTENT_UPDATED): _discard,
    (IntentState.PENDING_SAVE, LifecycleEvent.CONTENT_UPDATED): _discard,
    (IntentState.ABSENT, LifecycleEvent.SESSION_CLOSED): _mark_closed,
    (IntentState.CLOSED_MARKER, LifecycleEvent.SESSION_CLOSED): _keep,
    (IntentState.PENDING_SAVE, LifecycleEvent.SESSION_CLOSED): _flush_if_remove_on_save,
    (IntentState.ABSENT, LifecycleEvent.SESSION_SUSPENDED): _keep,
    (IntentState.CLOSED_MARKER, LifecycleEvent.SESSION_SUSPENDED): _keep,
    (IntentState.PENDING_SAVE, LifecycleEvent.SESSION_SUSPENDED): _flush,
}


def transition(entry: Optional[PendingEntry], event: LifecycleEvent) -> Transition:
    """Compute the next entry for a tab receiving ``event``."""
    return _TRANSITIONS[(state_of(entry), event)](entry)


class LifecycleReconciler:
    """
    Applies lifecycle events to the registry.

    Registry mutation happens synchronously inside each handler; the save
    itself is handed to ``flush``, which must not block.
    """

    def __init__(
        self,
        registry: PendingRegistry,
        flush: Callable[[SaveIntent, Ref], None],
    ):
        self.registry = registry
        self._flush = flush

    def on_content_updated(self, session_id: SessionId) -> Transition:
        return self._apply(session_id, LifecycleEvent.CONTENT_UPDATED)

    def on_session_closed(self, session_id: SessionId) -> Transition:
        result = self._apply(session_id, LifecycleEvent.SESSION_CLOSED)
        # The replacement tab ended: nothing can be closed through the redirect anymore
        self.registry.forget_redirect(session_id)
        return result

    def on_session_suspended(self, session_id: SessionId) -> Transition:
        return self._apply(session_id, LifecycleEvent.SESSION_SUSPENDED)

    def on_identity_replaced(self, old_id: SessionId, new_id: SessionId) -> bool:
        moved = self.registry.redirect(old_id, new_id)
        if moved:
            logger.info(f"Session {old_id} replaced by {new_id}, pending save moved")
        return moved

    def _apply(self, session_id: SessionId, event: LifecycleEvent) -> Transition:
        entry = self.registry.get(session_id)
        result = transition(entry, event)
        logger.debug(
            f"Session {session_id} {event.value}: "
            f"{state_of(entry).value} -> {state_of(result.entry).value}"
        )

        if result.flush is not None:
            _, ref = self.registry.take(session_id)
            logger.info(f"Flushing pending save for session {session_id} on {event.value}")
            self._flush(result.flush, ref)
        elif result.entry is None:
            self.registry.clear(session_id)
        elif result.entry is not entry:
            self.registry.set(session_id, result.entry)
        return result
