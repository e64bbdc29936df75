"""
Zip archiving of captured pages.
"""

import html
import io
import re
import zipfile
from pathlib import PurePosixPath
from typing import Any

from tabkeeper.autosave.collaborators import Archiver
from tabkeeper.autosave.models import PageData
from tabkeeper.logger import get_logger

logger = get_logger(__name__)

_HEAD_RE = re.compile(r"<head[^>]*>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_SCRIPT_STYLE_RE = re.compile(r"<(script|style)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)


def _insert_in_head(content: str, markup: str) -> str:
    match = _HEAD_RE.search(content)
    if not match:
        return markup + content
    return content[: match.end()] + markup + content[match.end():]


def text_body(content: str) -> str:
    """Plain-text rendition of an HTML document."""
    text = _TAG_RE.sub(" ", _SCRIPT_STYLE_RE.sub(" ", content))
    return " ".join(html.unescape(text).split())


class ZipArchiver(Archiver):
    async def process(self, page_data: PageData, options: dict[str, Any]) -> bytes:
        content = page_data.content
        if options.get("insertMetaNoIndex"):
            content = _insert_in_head(content, '<meta name="robots" content="noindex">')
        if options.get("insertCanonicalLink") and options.get("url"):
            href = html.escape(options["url"], quote=True)
            content = _insert_in_head(content, f'<link rel="canonical" href="{href}">')
        if options.get("password") or options.get("selfExtractingArchive"):
            logger.warning(
                "Encrypted and self-extracting archives are not supported, "
                "writing a plain zip"
            )

        root = ""
        if options.get("createRootDirectory"):
            root = f"{PurePosixPath(page_data.filename).stem}/"

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            archive.writestr(f"{root}index.html", content)
            if options.get("insertTextBody"):
                archive.writestr(f"{root}index.txt", text_body(content))
            for resource in page_data.resources:
                archive.writestr(f"{root}{resource.name}", resource.content)
        return buffer.getvalue()
