"""
Configuration for the tabkeeper server and CLI.

Values are read from the environment; a local .env file is honoured.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Profile name a rule uses to switch auto-save off for matching URLs
DISABLED_PROFILE_NAME = "__Disabled_Settings__"
DEFAULT_PROFILE_NAME = "__Default_Settings__"

DEFAULT_OPTIONS = {
    # When auto-save fires
    "autoSaveLoad": False,
    "autoSaveUnload": False,
    "autoSaveLoadOrUnload": True,
    "autoSaveDiscard": False,
    "autoSaveRemove": False,
    "autoClose": False,
    # Destination
    "saveToRemote": False,
    "uploadUrl": None,
    "filenameConflictAction": "uniquify",
    # Archive content
    "includeInfobar": False,
    "insertTextBody": False,
    "createRootDirectory": False,
    "selfExtractingArchive": False,
    "insertCanonicalLink": True,
    "insertMetaNoIndex": False,
    "password": "",
}


class Config:
    """Environment-backed settings. Call ``reload()`` to re-read the environment."""

    def __init__(self):
        self.reload()

    def reload(self) -> None:
        load_dotenv()
        self.host = os.getenv("TABKEEPER_HOST", "0.0.0.0")
        self.port = int(os.getenv("TABKEEPER_PORT", "8000"))
        self.server_url = os.getenv(
            "TABKEEPER_SERVER_URL", f"http://localhost:{self.port}"
        )
        self.fetch_timeout = float(os.getenv("TABKEEPER_FETCH_TIMEOUT", "30"))
        self.closed_marker_ttl = float(os.getenv("TABKEEPER_CLOSED_MARKER_TTL", "300"))
        self.upload_url = os.getenv("TABKEEPER_UPLOAD_URL") or None
        self.data_dir = Path(
            os.getenv("TABKEEPER_DATA_DIR", str(Path.home() / ".tabkeeper"))
        ).expanduser()
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.log_file = os.getenv("LOG_FILE") or None

    @property
    def downloads_dir(self) -> Path:
        return self.data_dir / "downloads"

    @property
    def artifacts_dir(self) -> Path:
        return self.data_dir / "artifacts"


CONFIG = Config()
