"""Monthly debate allowance: tier limits, month rollover, and the usage counter.

Profiles live in an external store; ``UsageStore`` is the seam. The counter
update is read-then-write (the increment is based on the value read when the
debate started), so two concurrent debates by one user can under-count by
one. That window is accepted; stores with an atomic increment may close it.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone

from config.config_loader import TierConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UsageProfile:
    user_id: str
    tier: str
    debates_this_month: int
    month_reset_date: datetime


class LimitReached(Exception):
    """The user's monthly allowance is used up. Maps to HTTP 429."""

    def __init__(self, used: int, limit: int) -> None:
        self.used = used
        self.limit = limit
        super().__init__(f"Monthly debate limit reached ({used}/{limit})")


def next_month_reset(now: datetime) -> datetime:
    """Midnight UTC on the first day of the month after ``now``."""
    if now.month == 12:
        return datetime(now.year + 1, 1, 1, tzinfo=timezone.utc)
    return datetime(now.year, now.month + 1, 1, tzinfo=timezone.utc)


def debate_limit(tier: str, tiers: TierConfig) -> int:
    """Limit for ``tier``; unknown tiers get the default tier's limit."""
    if tier in tiers.limits:
        return tiers.limits[tier]
    return tiers.limits.get(tiers.default_tier, 0)


def can_start_debate(debates_this_month: int, tier: str, tiers: TierConfig) -> bool:
    return debates_this_month < debate_limit(tier, tiers)


class UsageStore(ABC):
    """Persistence for usage profiles (a database table in production)."""

    @abstractmethod
    async def get_profile(self, user_id: str) -> UsageProfile | None:
        ...

    @abstractmethod
    async def create_profile(self, profile: UsageProfile) -> UsageProfile:
        ...

    @abstractmethod
    async def reset_month(self, user_id: str, reset_date: datetime) -> None:
        """Zero the counter and move the window boundary to ``reset_date``."""
        ...

    @abstractmethod
    async def set_debate_count(self, user_id: str, count: int) -> None:
        ...


class InMemoryUsageStore(UsageStore):
    """Process-local store. Used by default and in tests."""

    def __init__(self, profiles: list[UsageProfile] | None = None) -> None:
        self._profiles: dict[str, UsageProfile] = {p.user_id: p for p in profiles or []}
        self._lock = asyncio.Lock()

    async def get_profile(self, user_id: str) -> UsageProfile | None:
        return self._profiles.get(user_id)

    async def create_profile(self, profile: UsageProfile) -> UsageProfile:
        async with self._lock:
            self._profiles[profile.user_id] = profile
        return profile

    async def reset_month(self, user_id: str, reset_date: datetime) -> None:
        async with self._lock:
            profile = self._profiles[user_id]
            self._profiles[user_id] = replace(profile, debates_this_month=0, month_reset_date=reset_date)

    async def set_debate_count(self, user_id: str, count: int) -> None:
        async with self._lock:
            profile = self._profiles[user_id]
            self._profiles[user_id] = replace(profile, debates_this_month=count)


class UsageGate:
    """Decides whether a user may start a debate and records finished ones."""

    def __init__(
        self,
        store: UsageStore,
        tiers: TierConfig,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._tiers = tiers
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def check(self, user_id: str | None) -> UsageProfile | None:
        """Return the (possibly reset) profile to count against, or None for guests.

        Guests are not limited and not counted. A store failure while loading
        the profile is logged and the caller is treated as a guest.

        Raises:
            LimitReached: If the user has no debates left this month.
        """
        if user_id is None:
            return None
        try:
            profile = await self._load_profile(user_id)
        except Exception:
            logger.exception("Usage lookup failed for %s, continuing as guest", user_id)
            return None

        if not can_start_debate(profile.debates_this_month, profile.tier, self._tiers):
            limit = debate_limit(profile.tier, self._tiers)
            logger.info("User %s at limit (%d/%d)", user_id, profile.debates_this_month, limit)
            raise LimitReached(profile.debates_this_month, limit)
        return profile

    async def _load_profile(self, user_id: str) -> UsageProfile:
        now = self._clock()
        profile = await self._store.get_profile(user_id)
        if profile is None:
            logger.info("Creating usage profile for %s", user_id)
            return await self._store.create_profile(
                UsageProfile(
                    user_id=user_id,
                    tier=self._tiers.default_tier,
                    debates_this_month=0,
                    month_reset_date=next_month_reset(now),
                )
            )
        if now >= profile.month_reset_date:
            reset_date = next_month_reset(now)
            await self._store.reset_month(user_id, reset_date)
            profile = replace(profile, debates_this_month=0, month_reset_date=reset_date)
        return profile

    async def record_debate(self, profile: UsageProfile) -> None:
        """Count one finished debate against ``profile``."""
        await self._store.set_debate_count(profile.user_id, profile.debates_this_month + 1)
