"""
Daily session quota enforcement.
"""

import logging
from typing import Optional

from research_chat.config import QuotaConfig, config
from research_chat.database import DatabaseManager
from research_chat.exceptions import QuotaExceeded
from research_chat.models import ResearchSession, UsageReport

logger = logging.getLogger(__name__)


def daily_limit(is_premium: bool, quota_config: Optional[QuotaConfig] = None) -> int:
    quota_config = quota_config or config.quota
    return quota_config.premium_daily_limit if is_premium else quota_config.standard_daily_limit


async def _is_premium(store: DatabaseManager, user_id: str) -> bool:
    user = await store.get_user(user_id)
    return bool(user and user.is_premium)


async def open_session(
    store: DatabaseManager,
    owner_id: str,
    title: Optional[str] = None,
    quota_config: Optional[QuotaConfig] = None,
) -> ResearchSession:
    """Create a session if the user still has capacity today, and count it."""
    limit = daily_limit(await _is_premium(store, owner_id), quota_config)
    used = await store.get_today_count(owner_id)
    if used >= limit:
        logger.info(f"User {owner_id} reached the daily session limit ({limit})")
        raise QuotaExceeded(limit)

    session = await store.create_session(owner_id, title)
    await store.increment_today_count(owner_id)
    return session


async def usage(store: DatabaseManager, user_id: str, quota_config: Optional[QuotaConfig] = None) -> UsageReport:
    premium = await _is_premium(store, user_id)
    return UsageReport(
        today_count=await store.get_today_count(user_id),
        max_sessions=daily_limit(premium, quota_config),
        is_premium=premium,
    )
