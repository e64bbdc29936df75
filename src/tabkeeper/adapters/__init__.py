"""
Default collaborator implementations for running tabkeeper standalone.
"""

from typing import Optional

from tabkeeper.adapters.archive import ZipArchiver
from tabkeeper.adapters.capture import SnapshotCapture
from tabkeeper.adapters.downloads import LocalDownloads
from tabkeeper.adapters.stores import (
    MemoryOptionsProvider,
    MemorySessionDirectory,
    MemorySessionFlags,
)
from tabkeeper.adapters.ui import BackgroundSaveRequester, InfobarInjector, LoggingNotifier
from tabkeeper.autosave.collaborators import Collaborators
from tabkeeper.config import CONFIG, Config


def build_default_collaborators(config: Optional[Config] = None) -> Collaborators:
    config = config or CONFIG
    sessions = MemorySessionDirectory()
    return Collaborators(
        options=MemoryOptionsProvider(),
        flags=MemorySessionFlags(),
        sessions=sessions,
        capture=SnapshotCapture(),
        archiver=ZipArchiver(),
        downloads=LocalDownloads(config.downloads_dir, upload_url=config.upload_url),
        notifier=LoggingNotifier(),
        overlay=InfobarInjector(),
        requester=BackgroundSaveRequester(sessions),
    )


__all__ = [
    "BackgroundSaveRequester",
    "InfobarInjector",
    "LocalDownloads",
    "LoggingNotifier",
    "MemoryOptionsProvider",
    "MemorySessionDirectory",
    "MemorySessionFlags",
    "SnapshotCapture",
    "ZipArchiver",
    "build_default_collaborators",
]
