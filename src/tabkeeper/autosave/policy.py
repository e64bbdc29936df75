"""
Auto-save eligibility for a tab.
"""

import asyncio
from typing import Optional

from tabkeeper.autosave.collaborators import OptionsProvider, SessionFlagsStore
from tabkeeper.autosave.models import Session
from tabkeeper.config import DISABLED_PROFILE_NAME


class EligibilityPolicy:
    """
    A tab is eligible when auto-save is on globally, on for unpinned tabs and
    the tab is unpinned, or switched on for that tab, and no rule for its URL
    names the disabled profile.
    """

    def __init__(self, flags: SessionFlagsStore, options: OptionsProvider):
        self.flags = flags
        self.options = options

    async def is_eligible(self, session: Optional[Session]) -> bool:
        if session is None:
            return False

        flags, rule = await asyncio.gather(
            self.flags.get(), self.options.get_rule(session.url)
        )
        session_flags = flags.get(session.id) or {}
        enabled = bool(
            flags.get("autoSaveAll")
            or (flags.get("autoSaveUnpinned") and not session.pinned)
            or session_flags.get("autoSave")
        )
        disabled_by_rule = rule is not None and (
            rule.auto_save_profile == DISABLED_PROFILE_NAME
        )
        return enabled and not disabled_by_rule
