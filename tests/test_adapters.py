"""
Tests for the default collaborator implementations.
"""

import io
import zipfile
from unittest.mock import AsyncMock

import httpx
import pytest

from tabkeeper.adapters import build_default_collaborators
from tabkeeper.adapters.archive import ZipArchiver, text_body
from tabkeeper.adapters.capture import SnapshotCapture, extract_title, safe_filename
from tabkeeper.adapters.downloads import LocalDownloads, conflict_action, uniquify
from tabkeeper.adapters.stores import (
    MAX_OUTBOX,
    MemoryOptionsProvider,
    MemorySessionDirectory,
    MemorySessionFlags,
)
from tabkeeper.adapters.ui import (
    MAX_HISTORY,
    BackgroundSaveRequester,
    InfobarInjector,
    LoggingNotifier,
)
from tabkeeper.autosave.errors import AutoSaveError
from tabkeeper.autosave.fetch import HttpFetcher
from tabkeeper.autosave.models import PageData, Resource, Rule, Session
from tabkeeper.config import DISABLED_PROFILE_NAME, Config


def unzip(blob: bytes) -> dict[str, bytes]:
    with zipfile.ZipFile(io.BytesIO(blob)) as archive:
        return {name: archive.read(name) for name in archive.namelist()}


# ─── Stores ──────────────────────────────────────────────────────────


class TestMemoryOptionsProvider:
    @pytest.mark.asyncio
    async def test_defaults_without_rule(self):
        options = await MemoryOptionsProvider().get_options("https://example.com/")
        assert options["filenameConflictAction"] == "uniquify"

    @pytest.mark.asyncio
    async def test_longest_prefix_rule_wins(self):
        provider = MemoryOptionsProvider(
            rules=[
                Rule(url="https://example.com/", profile="short"),
                Rule(url="https://example.com/docs/", profile="long"),
            ]
        )
        rule = await provider.get_rule("https://example.com/docs/page")
        assert rule.profile == "long"

    @pytest.mark.asyncio
    async def test_auto_save_profile_used_when_forced(self):
        provider = MemoryOptionsProvider(
            profiles={"manual": {"includeInfobar": True}, "auto": {"insertTextBody": True}},
            rules=[Rule(url="https://example.com/", profile="manual", auto_save_profile="auto")],
        )
        manual = await provider.get_options("https://example.com/a")
        auto = await provider.get_options("https://example.com/a", True)
        assert manual["includeInfobar"] is True and manual["insertTextBody"] is False
        assert auto["insertTextBody"] is True and auto["includeInfobar"] is False

    @pytest.mark.asyncio
    async def test_disabled_profile_yields_none(self):
        provider = MemoryOptionsProvider(
            rules=[Rule(url="https://example.com/", auto_save_profile=DISABLED_PROFILE_NAME)]
        )
        assert await provider.get_options("https://example.com/", True) is None
        assert await provider.get_options("https://example.com/") is not None

    @pytest.mark.asyncio
    async def test_returned_options_are_copies(self):
        provider = MemoryOptionsProvider()
        options = await provider.get_options("https://example.com/")
        options["autoClose"] = True
        assert (await provider.get_options("https://example.com/"))["autoClose"] is False


class TestMemorySessionFlags:
    @pytest.mark.asyncio
    async def test_get_creates_entry_for_session(self):
        flags = MemorySessionFlags({"autoSaveAll": False})
        data = await flags.get(3)
        assert data[3] == {}
        assert 3 not in await flags.get()

    @pytest.mark.asyncio
    async def test_set_persists(self):
        flags = MemorySessionFlags()
        data = await flags.get(3)
        data[3]["autoSave"] = True
        await flags.set(data)
        assert (await flags.get())[3] == {"autoSave": True}


class TestMemorySessionDirectory:
    @pytest.mark.asyncio
    async def test_list_with_filter(self):
        directory = MemorySessionDirectory(
            [Session(id=1, pinned=True), Session(id=2, pinned=False)]
        )
        assert [s.id for s in await directory.list_sessions({"pinned": True})] == [1]
        assert len(await directory.list_sessions()) == 2

    @pytest.mark.asyncio
    async def test_send_to_unknown_session(self):
        with pytest.raises(LookupError):
            await MemorySessionDirectory().send_message(9, {"method": "x"})

    @pytest.mark.asyncio
    async def test_outbox_drain_per_session(self):
        directory = MemorySessionDirectory([Session(id=1), Session(id=2)])
        await directory.send_message(1, {"n": 1})
        await directory.send_message(2, {"n": 2})

        assert directory.drain_outbox(2) == [{"n": 2}]
        assert directory.drain_outbox() == [{"n": 1}]
        assert directory.drain_outbox() == []

    @pytest.mark.asyncio
    async def test_close_forgets(self):
        directory = MemorySessionDirectory([Session(id=1)])
        await directory.close_session(1)
        assert await directory.get_session(1) is None
        assert list(directory.closed) == [1]

    @pytest.mark.asyncio
    async def test_outbox_keeps_newest_messages(self):
        directory = MemorySessionDirectory([Session(id=1)])
        for n in range(MAX_OUTBOX + 5):
            await directory.send_message(1, {"n": n})

        messages = directory.drain_outbox()
        assert len(messages) == MAX_OUTBOX
        assert messages[0] == {"n": 5}


# ─── Capture ─────────────────────────────────────────────────────────


class TestCapture:
    def test_extract_title(self):
        assert extract_title("<html><title>\n  My  Page </title></html>") == "My Page"
        assert extract_title("<p>no title</p>") == ""

    def test_safe_filename(self):
        assert safe_filename('a/b:c?"d') == "a_b_c_d.zip"
        assert safe_filename("...") == "page.zip"
        assert len(safe_filename("x" * 500)) == 124

    @pytest.mark.asyncio
    async def test_fetches_images(self):
        def handler(request):
            if request.url.path == "/gone.png":
                return httpx.Response(404)
            return httpx.Response(200, content=b"img", headers={"content-type": "image/png"})

        options = {
            "content": "<html><head><title>Cats</title></head></html>",
            "url": "https://example.com/cats",
            "images": [
                {"url": "https://example.com/a.png"},
                {"url": "https://example.com/gone.png"},
                "not-a-dict",
            ],
        }
        async with HttpFetcher(transport=httpx.MockTransport(handler)) as fetch:
            page = await SnapshotCapture().capture_page_data(options, fetch)

        assert page.filename == "Cats.zip"
        assert page.title == "Cats"
        assert [(r.name, r.content, r.content_type) for r in page.resources] == [
            ("images/0-a.png", b"img", "image/png")
        ]

    @pytest.mark.asyncio
    async def test_title_falls_back_to_host(self, offline_fetcher):
        async with offline_fetcher() as fetch:
            page = await SnapshotCapture().capture_page_data(
                {"content": "<p>x</p>", "url": "https://example.com/x"}, fetch
            )
        assert page.filename == "example.com.zip"


# ─── Archive ─────────────────────────────────────────────────────────


class TestZipArchiver:
    @pytest.mark.asyncio
    async def test_archive_layout(self):
        page = PageData(
            filename="Cats.zip",
            content="<html><head></head><body><p>Hello &amp; bye</p></body></html>",
            resources=[Resource(name="images/0-a.png", content=b"img")],
        )
        blob = await ZipArchiver().process(
            page,
            {
                "url": "https://example.com/cats",
                "insertCanonicalLink": True,
                "insertMetaNoIndex": True,
                "insertTextBody": True,
                "createRootDirectory": True,
            },
        )

        files = unzip(blob)
        assert set(files) == {"Cats/index.html", "Cats/index.txt", "Cats/images/0-a.png"}
        index = files["Cats/index.html"].decode()
        assert '<link rel="canonical" href="https://example.com/cats">' in index
        assert '<meta name="robots" content="noindex">' in index
        assert files["Cats/index.txt"].decode() == "Hello & bye"

    @pytest.mark.asyncio
    async def test_plain_archive(self):
        blob = await ZipArchiver().process(PageData(filename="p.zip", content="<p>x</p>"), {})
        assert unzip(blob) == {"index.html": b"<p>x</p>"}

    def test_text_body_drops_scripts(self):
        assert text_body("<script>var a;</script><b>bold</b> text") == "bold text"


# ─── Downloads ───────────────────────────────────────────────────────


class TestLocalDownloads:
    def test_conflict_action(self):
        assert conflict_action({}) == "uniquify"
        assert conflict_action({"filenameConflictAction": "prompt"}) == "uniquify"
        assert conflict_action({"filenameConflictAction": "bogus"}) == "uniquify"
        assert conflict_action({"filenameConflictAction": "skip"}) == "skip"

    def test_uniquify(self, tmp_path):
        (tmp_path / "a.zip").write_bytes(b"")
        (tmp_path / "a (1).zip").write_bytes(b"")
        assert uniquify(tmp_path / "a.zip").name == "a (2).zip"
        assert uniquify(tmp_path / "b.zip").name == "b.zip"

    @pytest.mark.asyncio
    async def test_check_skip(self, tmp_path):
        downloads = LocalDownloads(tmp_path)
        (tmp_path / "a.zip").write_bytes(b"")

        skip = await downloads.check_skip("a.zip", {"filenameConflictAction": "skip"})
        fresh = await downloads.check_skip("b.zip", {"filenameConflictAction": "skip"})
        keep = await downloads.check_skip("a.zip", {})

        assert skip.skipped is True
        assert fresh.skipped is False
        assert keep.skipped is False and keep.filename_conflict_action == "uniquify"

    @pytest.mark.asyncio
    async def test_deliver_uniquifies(self, tmp_path):
        target_dir = tmp_path / "downloads"
        target_dir.mkdir()
        (target_dir / "a.zip").write_bytes(b"old")
        source = tmp_path / "artifact.zip"
        source.write_bytes(b"new")

        await LocalDownloads(target_dir).deliver(
            PageData(filename="a.zip", content="", url=source.as_uri()), {}
        )

        assert (target_dir / "a.zip").read_bytes() == b"old"
        assert (target_dir / "a (1).zip").read_bytes() == b"new"

    @pytest.mark.asyncio
    async def test_deliver_overwrite(self, tmp_path):
        (tmp_path / "a.zip").write_bytes(b"old")
        source = tmp_path / "artifact.bin"
        source.write_bytes(b"new")

        await LocalDownloads(tmp_path).deliver(
            PageData(filename="a.zip", content="", url=source.as_uri()),
            {"filenameConflictAction": "overwrite"},
        )
        assert (tmp_path / "a.zip").read_bytes() == b"new"

    @pytest.mark.asyncio
    async def test_deliver_requires_artifact(self, tmp_path):
        with pytest.raises(AutoSaveError):
            await LocalDownloads(tmp_path).deliver(PageData(filename="a.zip", content=""), {})

    @pytest.mark.asyncio
    async def test_upload(self, tmp_path):
        received = []

        def handler(request):
            received.append(request)
            return httpx.Response(201)

        downloads = LocalDownloads(
            tmp_path, upload_url="https://drop.example/up", transport=httpx.MockTransport(handler)
        )
        await downloads.upload("task-1", "a.zip", b"PK", {})

        assert len(received) == 1
        body = received[0].content
        assert received[0].url == "https://drop.example/up"
        assert b'name="taskId"' in body and b"task-1" in body
        assert b'filename="a.zip"' in body

    @pytest.mark.asyncio
    async def test_upload_error_status_raises(self, tmp_path):
        downloads = LocalDownloads(
            tmp_path,
            upload_url="https://drop.example/up",
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )
        with pytest.raises(httpx.HTTPStatusError):
            await downloads.upload(None, "a.zip", b"PK", {})

    @pytest.mark.asyncio
    async def test_upload_without_url(self, tmp_path):
        with pytest.raises(AutoSaveError):
            await LocalDownloads(tmp_path).upload(None, "a.zip", b"PK", {})


# ─── UI ──────────────────────────────────────────────────────────────


class TestUiAdapters:
    def test_notifier_tracks_active_saves(self):
        notifier = LoggingNotifier()
        notifier.on_start(1, 1, True)
        notifier.on_start(1, 1, True)
        notifier.on_end(1, True)
        assert notifier.active == {1: 1}
        notifier.on_end(1, True)
        assert notifier.active == {}

    def test_notifier_records_refresh(self):
        notifier = LoggingNotifier()
        notifier.refresh_session(Session(id=4))
        assert list(notifier.refreshed) == [4]

    def test_histories_are_bounded(self):
        notifier = LoggingNotifier()
        requester = BackgroundSaveRequester(MemorySessionDirectory())
        for n in range(MAX_HISTORY + 10):
            notifier.refresh_session(Session(id=n))
            requester.on_save_end(f"task-{n}")

        assert len(notifier.refreshed) == MAX_HISTORY
        assert notifier.refreshed[0] == 10
        assert len(requester.completed) == MAX_HISTORY

    @pytest.mark.asyncio
    async def test_infobar_prepends_banner(self):
        page = PageData(filename="a.zip", content="<html></html>", title="<A>")
        await InfobarInjector().include(page)
        assert page.content.startswith("<!-- Page saved with tabkeeper")
        assert "&lt;A&gt;" in page.content
        assert page.content.endswith("<html></html>")

    @pytest.mark.asyncio
    async def test_requester_messages_tabs(self):
        directory = MemorySessionDirectory([Session(id=1)])
        requester = BackgroundSaveRequester(directory)

        await requester.save_sessions([Session(id=1), Session(id=2)], {"autoSave": True})

        assert directory.drain_outbox() == [{"method": "content.save", "autoSave": True}]

    @pytest.mark.asyncio
    async def test_requester_records_completion(self):
        requester = BackgroundSaveRequester(AsyncMock())
        requester.on_save_end("task-1")
        assert list(requester.completed) == ["task-1"]


def test_build_default_collaborators(tmp_path, monkeypatch):
    monkeypatch.setenv("TABKEEPER_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("TABKEEPER_UPLOAD_URL", "https://drop.example/up")
    collaborators = build_default_collaborators(Config())

    assert collaborators.downloads.directory == tmp_path / "downloads"
    assert collaborators.downloads.upload_url == "https://drop.example/up"
    assert collaborators.requester.sessions is collaborators.sessions
