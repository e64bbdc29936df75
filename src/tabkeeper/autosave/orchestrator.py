"""
Save pipeline for one flushed intent.

Stages: resolve options -> capture -> skip-check -> overlay -> archive ->
upload or deliver. Once the save has started, cleanup runs exactly once on
every exit path (completion, skip, or failure).
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

from tabkeeper.autosave.artifacts import TransientArtifact
from tabkeeper.autosave.collaborators import Collaborators
from tabkeeper.autosave.fetch import HttpFetcher
from tabkeeper.autosave.models import SaveIntent, Session, SessionId
from tabkeeper.logger import get_logger

logger = get_logger(__name__)

# Captured payload fields copied into the options, as (message attribute, option key)
PAYLOAD_FIELDS = (
    ("content", "content"),
    ("url", "url"),
    ("title", "title"),
    ("frames", "frames"),
    ("canvases", "canvases"),
    ("fonts", "fonts"),
    ("stylesheets", "stylesheets"),
    ("images", "images"),
    ("posters", "posters"),
    ("used_fonts", "usedFonts"),
    ("shadow_roots", "shadowRoots"),
    ("imports", "imports"),
    ("referrer", "referrer"),
    ("updated_resources", "updatedResources"),
)

ARCHIVE_OPTION_KEYS = (
    "insertTextBody",
    "createRootDirectory",
    "selfExtractingArchive",
    "insertCanonicalLink",
    "insertMetaNoIndex",
    "password",
)


def merge_payload(
    options: dict[str, Any], intent: SaveIntent, session: Session
) -> dict[str, Any]:
    """Copy the captured payload and tab attributes into ``options`` in place."""
    message = intent.message
    for attribute, key in PAYLOAD_FIELDS:
        options[key] = getattr(message, attribute)
    options["visitDate"] = (
        datetime.fromtimestamp(message.visit_date / 1000, tz=timezone.utc)
        if message.visit_date is not None
        else None
    )
    options["backgroundTab"] = True
    options["autoSave"] = True
    options["incognito"] = session.incognito
    options["tabId"] = session.id
    options["tabIndex"] = session.index
    options["taskId"] = intent.task_id
    return options


class SaveOrchestrator:
    """Runs the save pipeline against the collaborators."""

    def __init__(
        self,
        collaborators: Collaborators,
        fetcher_factory: Optional[Callable[[], HttpFetcher]] = None,
        artifact_dir: Optional[Path] = None,
    ):
        self.collaborators = collaborators
        self.fetcher_factory = fetcher_factory or HttpFetcher
        self.artifact_dir = artifact_dir

    async def execute_save(
        self,
        intent: SaveIntent,
        session: Session,
        close_target: Optional[SessionId] = None,
    ) -> None:
        """
        Save the page captured in ``intent``.

        Args:
            intent: The flushed save intent.
            session: The tab the page was captured from.
            close_target: The tab's current id when it differs from ``session.id``
                (after an id replacement). Used when auto-close applies.

        Raises:
            Whatever a pipeline stage raises, after cleanup has run.
        """
        c = self.collaborators
        options = await c.options.get_options(session.url, True)
        if not options:
            logger.debug(f"Auto-save inactive for session {session.id}, not saving")
            return
        options = dict(options)

        async with self._save_in_progress(
            intent, session, options, close_target
        ) as artifact:
            merge_payload(options, intent, session)

            async with self.fetcher_factory() as fetch:
                page_data = await c.capture.capture_page_data(options, fetch)

            skipped = False
            if not options.get("saveToRemote"):
                result = await c.downloads.check_skip(page_data.filename, options)
                skipped = result.skipped
                options["filenameConflictAction"] = result.filename_conflict_action
            if skipped:
                logger.info(
                    f"Skipped saving {page_data.filename} for session {session.id}"
                )
                return

            if options.get("includeInfobar"):
                await c.overlay.include(page_data)

            archive_options = {key: options.get(key) for key in ARCHIVE_OPTION_KEYS}
            archive_options["url"] = session.url
            archive_options["tabId"] = session.id
            blob = await c.archiver.process(page_data, archive_options)

            if options.get("saveToRemote"):
                await c.downloads.upload(
                    intent.task_id, page_data.filename, blob, options
                )
            else:
                page_data.url = artifact.hold(blob, Path(page_data.filename).suffix)
                await c.downloads.deliver(page_data, options)
            logger.info(f"Saved {page_data.filename} for session {session.id}")

    @asynccontextmanager
    async def _save_in_progress(
        self,
        intent: SaveIntent,
        session: Session,
        options: dict[str, Any],
        close_target: Optional[SessionId],
    ):
        c = self.collaborators
        c.notifier.on_start(session.id, 1, True)
        artifact = TransientArtifact(self.artifact_dir)
        try:
            yield artifact
        finally:
            try:
                await self._complete(intent, session, options, close_target)
            finally:
                try:
                    artifact.release()
                finally:
                    c.notifier.on_end(session.id, True)

    async def _complete(
        self,
        intent: SaveIntent,
        session: Session,
        options: dict[str, Any],
        close_target: Optional[SessionId],
    ) -> None:
        c = self.collaborators
        if intent.task_id:
            c.requester.on_save_end(intent.task_id)
        elif intent.discard_on_save and options.get("autoClose"):
            target = session.id if close_target is None else close_target
            logger.info(f"Closing session {target} after auto-save")
            await c.sessions.close_session(target)
