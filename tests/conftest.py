"""Shared pytest fixtures and configuration."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from tabkeeper.adapters.stores import (
    MemoryOptionsProvider,
    MemorySessionDirectory,
    MemorySessionFlags,
)
from tabkeeper.autosave import AutoSaveCoordinator
from tabkeeper.autosave.collaborators import (
    Archiver,
    Collaborators,
    Downloads,
    Notifier,
    OverlayInjector,
    PageCapture,
    SaveRequester,
)
from tabkeeper.autosave.fetch import HttpFetcher
from tabkeeper.autosave.models import PageData, SaveMessage, Session, SkipResult


def _offline_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, content=b"resource", headers={"content-type": "image/png"})


@pytest.fixture
def offline_fetcher():
    """Fetcher factory that never touches the network."""
    return lambda: HttpFetcher(transport=httpx.MockTransport(_offline_handler))


@pytest.fixture
def collaborators():
    """In-memory stores plus mocked pipeline collaborators."""
    capture = MagicMock(spec=PageCapture)
    capture.capture_page_data = AsyncMock(
        return_value=PageData(filename="Example.zip", content="<html></html>", title="Example")
    )
    archiver = MagicMock(spec=Archiver)
    archiver.process = AsyncMock(return_value=b"PK-archive")
    downloads = MagicMock(spec=Downloads)
    downloads.check_skip = AsyncMock(
        return_value=SkipResult(skipped=False, filename_conflict_action="uniquify")
    )
    downloads.upload = AsyncMock()
    downloads.deliver = AsyncMock()
    overlay = MagicMock(spec=OverlayInjector)
    overlay.include = AsyncMock()
    requester = MagicMock(spec=SaveRequester)
    requester.save_sessions = AsyncMock()

    return Collaborators(
        options=MemoryOptionsProvider(),
        flags=MemorySessionFlags(),
        sessions=MemorySessionDirectory(),
        capture=capture,
        archiver=archiver,
        downloads=downloads,
        notifier=MagicMock(spec=Notifier),
        overlay=overlay,
        requester=requester,
    )


@pytest.fixture
def coordinator(collaborators, offline_fetcher, tmp_path):
    return AutoSaveCoordinator(
        collaborators, fetcher_factory=offline_fetcher, artifact_dir=tmp_path / "artifacts"
    )


@pytest.fixture
def tab():
    return Session(id=7, url="https://example.com/article", index=2)


@pytest.fixture
def make_save_message():
    """Build a ``<ns>.save`` message with the given flags."""

    def _make(**fields) -> SaveMessage:
        data = {
            "method": "content.save",
            "content": "<html><head><title>Example</title></head><body>hi</body></html>",
            "url": "https://example.com/article",
            "visitDate": 1_700_000_000_000,
        }
        data.update(fields)
        return SaveMessage.model_validate(data)

    return _make
