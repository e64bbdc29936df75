"""
Contracts for the collaborators the auto-save core calls out to.

The core never touches storage, the network or the archive format directly;
it goes through these interfaces. ``tabkeeper.adapters`` provides default
implementations, tests provide mocks.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from tabkeeper.autosave.models import (
    PageData,
    Rule,
    Session,
    SessionId,
    SkipResult,
)

# Fetch capability handed to the capture stage: url -> FetchResponse
Fetch = Callable[[str], Awaitable[Any]]


class OptionsProvider(ABC):
    """Resolves per-URL save options and rules."""

    @abstractmethod
    async def get_options(
        self, url: str, force_consider: bool = False
    ) -> Optional[dict[str, Any]]:
        """
        Resolve the options that apply to ``url``.

        Returns:
            A fresh options dict, or None when auto-save is disabled for the URL.
        """

    @abstractmethod
    async def get_rule(self, url: str) -> Optional[Rule]:
        """Return the rule matching ``url``, or None."""


class SessionFlagsStore(ABC):
    """Session-keyed flags plus the global ``autoSaveAll``/``autoSaveUnpinned`` flags."""

    @abstractmethod
    async def get(self, session_id: Optional[SessionId] = None) -> dict[Any, Any]:
        """
        Return a copy of all flags. When ``session_id`` is given the copy is
        guaranteed to hold a (possibly empty) entry for it.
        """

    @abstractmethod
    async def set(self, data: dict[Any, Any]) -> None:
        """Replace all flags."""


class SessionDirectory(ABC):
    """The host's view of open tabs."""

    @abstractmethod
    async def list_sessions(self, filter: Optional[dict] = None) -> list[Session]:
        pass

    @abstractmethod
    async def get_session(self, session_id: SessionId) -> Optional[Session]:
        pass

    @abstractmethod
    async def send_message(self, session_id: SessionId, message: dict) -> Any:
        """Deliver a message to a tab. Raises if the tab cannot receive it."""

    @abstractmethod
    async def close_session(self, session_id: SessionId) -> None:
        pass

    @abstractmethod
    def remember(self, session: Session) -> None:
        """Record the latest known attributes of a tab."""

    @abstractmethod
    def forget(self, session_id: SessionId) -> None:
        pass


class PageCapture(ABC):
    @abstractmethod
    async def capture_page_data(self, options: dict[str, Any], fetch: Fetch) -> PageData:
        """Build page data from merged options, fetching resources through ``fetch``."""


class Archiver(ABC):
    @abstractmethod
    async def process(self, page_data: PageData, options: dict[str, Any]) -> bytes:
        """Serialize and compress page data into a transportable artifact."""


class Downloads(ABC):
    """Local delivery and remote upload of finished artifacts."""

    @abstractmethod
    async def check_skip(self, filename: str, options: dict[str, Any]) -> SkipResult:
        pass

    @abstractmethod
    async def upload(
        self,
        task_id: Optional[str],
        filename: str,
        artifact: bytes,
        options: dict[str, Any],
    ) -> None:
        pass

    @abstractmethod
    async def deliver(self, page_data: PageData, options: dict[str, Any]) -> None:
        """Deliver the artifact referenced by ``page_data.url``."""


class Notifier(ABC):
    """Save progress and refresh notifications for the UI."""

    @abstractmethod
    def on_start(self, session_id: SessionId, count: int, auto_save: bool) -> None:
        pass

    @abstractmethod
    def on_end(self, session_id: SessionId, auto_save: bool) -> None:
        pass

    @abstractmethod
    def refresh_session(self, session: Session) -> None:
        pass


class OverlayInjector(ABC):
    @abstractmethod
    async def include(self, page_data: PageData) -> None:
        """Add an informational overlay to the captured page in place."""


class SaveRequester(ABC):
    """Starts saves on behalf of the core and tracks externally correlated tasks."""

    @abstractmethod
    async def save_sessions(
        self, sessions: list[Session], options: dict[str, Any]
    ) -> None:
        pass

    @abstractmethod
    def on_save_end(self, task_id: str) -> None:
        pass


@dataclass
class Collaborators:
    """Everything the coordinator needs from the outside world."""

    options: OptionsProvider
    flags: SessionFlagsStore
    sessions: SessionDirectory
    capture: PageCapture
    archiver: Archiver
    downloads: Downloads
    notifier: Notifier
    overlay: OverlayInjector
    requester: SaveRequester
