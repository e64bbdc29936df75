"""
Local delivery into a downloads folder, and upload to a remote drop URL.
"""

import asyncio
import shutil
from pathlib import Path
from typing import Any, Optional
from urllib.parse import unquote, urlparse

import httpx

from tabkeeper.autosave.collaborators import Downloads
from tabkeeper.autosave.errors import AutoSaveError
from tabkeeper.autosave.models import PageData, SkipResult
from tabkeeper.logger import get_logger

logger = get_logger(__name__)

CONFLICT_ACTIONS = ("uniquify", "overwrite", "skip")
DEFAULT_UPLOAD_TIMEOUT = 60.0


def conflict_action(options: dict[str, Any]) -> str:
    action = options.get("filenameConflictAction") or "uniquify"
    # There is nobody to prompt during an auto-save
    if action == "prompt":
        return "uniquify"
    return action if action in CONFLICT_ACTIONS else "uniquify"


def uniquify(path: Path) -> Path:
    """Return ``path`` or the first free ``name (n).ext`` next to it."""
    candidate = path
    counter = 1
    while candidate.exists():
        candidate = path.with_name(f"{path.stem} ({counter}){path.suffix}")
        counter += 1
    return candidate


def _path_from_file_url(url: str) -> Path:
    parsed = urlparse(url)
    if parsed.scheme != "file":
        raise AutoSaveError(f"Cannot deliver artifact from {url}")
    return Path(unquote(parsed.path))


class LocalDownloads(Downloads):
    def __init__(
        self,
        directory: Path,
        upload_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = DEFAULT_UPLOAD_TIMEOUT,
    ):
        self.directory = Path(directory)
        self.upload_url = upload_url
        self.transport = transport
        self.timeout = timeout

    async def check_skip(self, filename: str, options: dict[str, Any]) -> SkipResult:
        action = conflict_action(options)
        exists = (self.directory / filename).exists()
        return SkipResult(skipped=exists and action == "skip", filename_conflict_action=action)

    async def deliver(self, page_data: PageData, options: dict[str, Any]) -> None:
        if not page_data.url:
            raise AutoSaveError(f"No artifact to deliver for {page_data.filename}")
        source = _path_from_file_url(page_data.url)
        target = self.directory / page_data.filename
        if conflict_action(options) == "uniquify":
            target = uniquify(target)

        self.directory.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(shutil.copyfile, source, target)
        logger.info(f"Downloaded {target}")

    async def upload(
        self,
        task_id: Optional[str],
        filename: str,
        artifact: bytes,
        options: dict[str, Any],
    ) -> None:
        url = options.get("uploadUrl") or self.upload_url
        if not url:
            raise AutoSaveError("No upload URL configured for remote saves")

        data = {"taskId": task_id} if task_id else None
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(
                url,
                files={"file": (filename, artifact, "application/zip")},
                data=data,
            )
            response.raise_for_status()
        logger.info(f"Uploaded {filename} to {url}")
