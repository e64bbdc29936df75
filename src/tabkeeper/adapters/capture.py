"""
Builds page data from the content a tab sent with its save request.
"""

import re
from pathlib import PurePosixPath
from typing import Any
from urllib.parse import urlparse

from tabkeeper.autosave.collaborators import Fetch, PageCapture
from tabkeeper.autosave.models import PageData, Resource
from tabkeeper.logger import get_logger

logger = get_logger(__name__)

_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)
_UNSAFE_CHARS_RE = re.compile(r'[\\/:*?"<>|\x00-\x1f]+')
MAX_FILENAME_LENGTH = 120


def extract_title(content: str) -> str:
    match = _TITLE_RE.search(content or "")
    return " ".join(match.group(1).split()) if match else ""


def safe_filename(name: str, extension: str = ".zip") -> str:
    """Turn a page title into a filename that is valid on common filesystems."""
    cleaned = _UNSAFE_CHARS_RE.sub("_", name).strip(" .") or "page"
    return cleaned[:MAX_FILENAME_LENGTH] + extension


class SnapshotCapture(PageCapture):
    """
    Uses the serialized document from the save request as page content and
    fetches the images it references by URL.
    """

    async def capture_page_data(self, options: dict[str, Any], fetch: Fetch) -> PageData:
        content = options.get("content") or ""
        url = options.get("url") or ""
        title = options.get("title") or extract_title(content) or urlparse(url).netloc

        resources = []
        for index, image in enumerate(options.get("images") or []):
            image_url = image.get("url") if isinstance(image, dict) else None
            if not image_url:
                continue
            response = await fetch(image_url)
            if response.status >= 400:
                logger.warning(f"Skipping image {image_url}: HTTP {response.status}")
                continue
            name = PurePosixPath(urlparse(image_url).path).name or f"image-{index}"
            resources.append(
                Resource(
                    name=f"images/{index}-{name}",
                    content=await response.array_buffer(),
                    content_type=response.headers.get("content-type"),
                )
            )

        return PageData(
            filename=safe_filename(title),
            content=content,
            title=title,
            resources=resources,
        )
