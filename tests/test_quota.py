"""
Tests for daily session quota enforcement.
"""

import pytest

from research_chat import quota
from research_chat.config import QuotaConfig
from research_chat.exceptions import QuotaExceeded
from research_chat.models import UserProfile

LIMITS = QuotaConfig(premium_daily_limit=3, standard_daily_limit=2)


def test_daily_limit():
    assert quota.daily_limit(True, LIMITS) == 3
    assert quota.daily_limit(False, LIMITS) == 2


@pytest.mark.asyncio
async def test_standard_user_blocked_at_limit(store):
    await quota.open_session(store, "user-1", None, LIMITS)
    await quota.open_session(store, "user-1", "Second", LIMITS)

    with pytest.raises(QuotaExceeded) as exc_info:
        await quota.open_session(store, "user-1", "Third", LIMITS)

    assert exc_info.value.limit == 2
    assert str(exc_info.value) == "Daily session limit reached. You can create 2 sessions per day."
    assert len(await store.list_sessions("user-1")) == 2
    assert await store.get_today_count("user-1") == 2


@pytest.mark.asyncio
async def test_premium_user_gets_higher_limit(store):
    await store.upsert_user(UserProfile(id="vip", is_premium=True))

    for _ in range(3):
        await quota.open_session(store, "vip", None, LIMITS)

    with pytest.raises(QuotaExceeded):
        await quota.open_session(store, "vip", None, LIMITS)


@pytest.mark.asyncio
async def test_users_counted_separately(store):
    await quota.open_session(store, "user-1", None, LIMITS)
    await quota.open_session(store, "user-1", None, LIMITS)

    session = await quota.open_session(store, "user-2", None, LIMITS)

    assert session.owner_id == "user-2"


@pytest.mark.asyncio
async def test_usage_report(store):
    await quota.open_session(store, "user-1", None, LIMITS)

    report = await quota.usage(store, "user-1", LIMITS)

    assert report.today_count == 1
    assert report.max_sessions == 2
    assert report.is_premium is False
