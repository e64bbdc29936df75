"""
Unit tests for auto-save eligibility.
"""

import pytest

from tabkeeper.adapters.stores import MemoryOptionsProvider, MemorySessionFlags
from tabkeeper.autosave.models import Rule, Session
from tabkeeper.autosave.policy import EligibilityPolicy
from tabkeeper.config import DISABLED_PROFILE_NAME

PINNED = Session(id=1, url="https://example.com/", pinned=True)
UNPINNED = Session(id=2, url="https://example.com/", pinned=False)


def make_policy(flags=None, rules=None) -> EligibilityPolicy:
    return EligibilityPolicy(MemorySessionFlags(flags), MemoryOptionsProvider(rules=rules))


class TestEligibilityPolicy:
    @pytest.mark.asyncio
    async def test_no_session_is_ineligible(self):
        assert await make_policy({"autoSaveAll": True}).is_eligible(None) is False

    @pytest.mark.asyncio
    async def test_nothing_enabled(self):
        assert await make_policy().is_eligible(UNPINNED) is False

    @pytest.mark.asyncio
    async def test_global_all(self):
        policy = make_policy({"autoSaveAll": True})
        assert await policy.is_eligible(PINNED) is True
        assert await policy.is_eligible(UNPINNED) is True

    @pytest.mark.asyncio
    async def test_unpinned_only(self):
        policy = make_policy({"autoSaveAll": False, "autoSaveUnpinned": True})
        assert await policy.is_eligible(PINNED) is False
        assert await policy.is_eligible(UNPINNED) is True

    @pytest.mark.asyncio
    async def test_per_session_opt_in(self):
        policy = make_policy({1: {"autoSave": True}})
        assert await policy.is_eligible(PINNED) is True
        assert await policy.is_eligible(UNPINNED) is False

    @pytest.mark.asyncio
    async def test_disabled_rule_overrides_global_all(self):
        rules = [Rule(url="https://example.com/", auto_save_profile=DISABLED_PROFILE_NAME)]
        policy = make_policy({"autoSaveAll": True}, rules)
        assert await policy.is_eligible(UNPINNED) is False

    @pytest.mark.asyncio
    async def test_rule_for_other_url_has_no_effect(self):
        rules = [Rule(url="https://other.org/", auto_save_profile=DISABLED_PROFILE_NAME)]
        policy = make_policy({"autoSaveAll": True}, rules)
        assert await policy.is_eligible(UNPINNED) is True

    @pytest.mark.asyncio
    async def test_rule_with_regular_profile(self):
        rules = [Rule(url="https://example.com/", auto_save_profile="archive")]
        policy = make_policy({"autoSaveUnpinned": True}, rules)
        assert await policy.is_eligible(UNPINNED) is True
