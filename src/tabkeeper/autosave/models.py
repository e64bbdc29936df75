"""
Data models for the auto-save core.

Covers:
- Wire messages exchanged with tabs and external callers (pydantic)
- Registry entries and pipeline values (dataclasses)
"""

import time
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

SessionId = int


# ─── Wire Models ─────────────────────────────────────────────────────


class Session(BaseModel):
    """A tab as last reported by the host environment."""

    model_config = ConfigDict(extra="ignore")

    id: SessionId
    url: str = ""
    pinned: bool = False
    incognito: bool = False
    index: int = 0


class Sender(BaseModel):
    """Where an internal message came from. ``tab`` is absent for detached senders."""

    tab: Optional[Session] = None
    url: Optional[str] = None


class SaveMessage(BaseModel):
    """Tab → coordinator: captured page data plus the auto-save flags."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    method: str
    tab_id: Optional[SessionId] = Field(None, alias="tabId")
    tab_index: Optional[int] = Field(None, alias="tabIndex")
    task_id: Optional[str] = Field(None, alias="taskId")

    auto_save_discard: bool = Field(False, alias="autoSaveDiscard")
    auto_save_remove: bool = Field(False, alias="autoSaveRemove")
    auto_save_unload: bool = Field(False, alias="autoSaveUnload")

    content: Optional[str] = None
    url: Optional[str] = None
    title: Optional[str] = None
    frames: list[Any] = Field(default_factory=list)
    canvases: list[Any] = Field(default_factory=list)
    fonts: list[Any] = Field(default_factory=list)
    stylesheets: list[Any] = Field(default_factory=list)
    images: list[Any] = Field(default_factory=list)
    posters: list[Any] = Field(default_factory=list)
    used_fonts: list[Any] = Field(default_factory=list, alias="usedFonts")
    shadow_roots: list[Any] = Field(default_factory=list, alias="shadowRoots")
    imports: list[Any] = Field(default_factory=list)
    referrer: Optional[str] = None
    updated_resources: dict[str, Any] = Field(
        default_factory=dict, alias="updatedResources"
    )
    visit_date: Optional[float] = Field(None, alias="visitDate")


class ExternalMessage(BaseModel):
    """External caller → coordinator control message."""

    method: str
    enabled: Optional[bool] = None


class InitResponse(BaseModel):
    """Coordinator → tab: reply to ``<ns>.init``."""

    model_config = ConfigDict(populate_by_name=True)

    options: Optional[dict[str, Any]] = None
    auto_save_enabled: bool = Field(False, alias="autoSaveEnabled")
    tab_id: SessionId = Field(alias="tabId")
    tab_index: int = Field(0, alias="tabIndex")


# ─── Registry Entries ────────────────────────────────────────────────


@dataclass(frozen=True)
class ClosedMarker:
    """The tab closed before any save request for it arrived."""

    closed_at: float = field(default_factory=time.monotonic, compare=False)


@dataclass
class SaveIntent:
    """A save request waiting for the lifecycle event that should flush it."""

    message: SaveMessage
    session: Session

    @property
    def discard_on_save(self) -> bool:
        return self.message.auto_save_discard

    @property
    def remove_on_save(self) -> bool:
        return self.message.auto_save_remove

    @property
    def unload_on_save(self) -> bool:
        return self.message.auto_save_unload

    @property
    def task_id(self) -> Optional[str]:
        return self.message.task_id


PendingEntry = Union[ClosedMarker, SaveIntent]


# ─── Pipeline Values ─────────────────────────────────────────────────


@dataclass
class Rule:
    """
    Per-URL rule. ``profile`` applies to manual saves, ``auto_save_profile``
    to auto-saves; either may be the disabled-profile sentinel.
    """

    url: str
    profile: Optional[str] = None
    auto_save_profile: Optional[str] = None


@dataclass
class Resource:
    """A resource fetched while capturing a page."""

    name: str
    content: bytes
    content_type: Optional[str] = None


@dataclass
class PageData:
    """Captured page ready for archiving. ``url`` is set once an artifact handle exists."""

    filename: str
    content: str
    title: str = ""
    resources: list[Resource] = field(default_factory=list)
    url: Optional[str] = None


@dataclass
class SkipResult:
    skipped: bool
    filename_conflict_action: Optional[str] = None
