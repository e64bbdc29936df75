"""
The auto-save coordinator: owns the registry and wires the policy,
reconciler, orchestrator and dispatcher around it.

One coordinator is created at startup and stopped at shutdown. Flushed
saves run as background tasks tracked by the coordinator. Closed markers
that no save request claims are forgotten after ``closed_marker_ttl`` seconds.
"""

import asyncio
from pathlib import Path
from typing import Callable, Optional

from tabkeeper.autosave.collaborators import Collaborators
from tabkeeper.autosave.dispatcher import RequestDispatcher
from tabkeeper.autosave.fetch import HttpFetcher
from tabkeeper.autosave.models import SaveIntent, Session, SessionId
from tabkeeper.autosave.orchestrator import SaveOrchestrator
from tabkeeper.autosave.policy import EligibilityPolicy
from tabkeeper.autosave.reconciler import LifecycleReconciler
from tabkeeper.autosave.registry import PendingRegistry, Ref
from tabkeeper.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CLOSED_MARKER_TTL = 300.0


class AutoSaveCoordinator:
    def __init__(
        self,
        collaborators: Collaborators,
        fetcher_factory: Optional[Callable[[], HttpFetcher]] = None,
        artifact_dir: Optional[Path] = None,
        closed_marker_ttl: float = DEFAULT_CLOSED_MARKER_TTL,
    ):
        self.collaborators = collaborators
        self.closed_marker_ttl = closed_marker_ttl
        self.registry = PendingRegistry()
        self.policy = EligibilityPolicy(collaborators.flags, collaborators.options)
        self.orchestrator = SaveOrchestrator(
            collaborators, fetcher_factory=fetcher_factory, artifact_dir=artifact_dir
        )
        self.reconciler = LifecycleReconciler(self.registry, self.flush)
        self.dispatcher = RequestDispatcher(
            self.registry, self.policy, collaborators, self.flush
        )
        self._tasks: set[asyncio.Task] = set()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def in_flight(self) -> int:
        """Number of saves currently running."""
        return len(self._tasks)

    async def start(self) -> None:
        self._running = True
        logger.info("AutoSaveCoordinator started.")

    async def stop(self) -> None:
        """Wait for running saves, then drop all pending state."""
        self._running = False
        await self.drain()
        self.registry.reset()
        logger.info("AutoSaveCoordinator stopped.")

    async def drain(self) -> None:
        """Wait until no save is running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def flush(self, intent: SaveIntent, ref: Ref) -> asyncio.Task:
        """Run the save for ``intent`` in the background."""
        task = asyncio.create_task(
            self.orchestrator.execute_save(
                intent, intent.session, close_target=ref.session_id
            ),
            name=f"autosave-{intent.session.id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_flush_done)
        return task

    def _on_flush_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Save task {task.get_name()} was cancelled")
            return
        if exc := task.exception():
            logger.error(f"Save task {task.get_name()} failed: {exc}")

    # -- Lifecycle events ----------------------------------------------------

    def on_content_updated(self, session_id: SessionId) -> None:
        self.reconciler.on_content_updated(session_id)

    def on_session_closed(self, session_id: SessionId) -> None:
        self.registry.prune_closed_markers(self.closed_marker_ttl)
        self.reconciler.on_session_closed(session_id)
        self.collaborators.sessions.forget(session_id)

    def on_session_suspended(self, session_id: SessionId) -> None:
        self.reconciler.on_session_suspended(session_id)

    def on_identity_replaced(self, old_id: SessionId, new_id: SessionId) -> None:
        self.reconciler.on_identity_replaced(old_id, new_id)
        self.collaborators.sessions.forget(old_id)

    async def on_session_loaded(self, session: Session) -> bool:
        self.collaborators.sessions.remember(session)
        return await self.dispatcher.handle_session_loaded(session)
