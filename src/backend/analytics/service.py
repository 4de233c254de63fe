from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from .activities import Activity, assemble_recent
from .buckets import SERIES_WINDOWS, USAGE_WINDOWS, parse_limit, parse_period, window_for
from .configuration import AnalyticsConfig
from .metrics import compare, palette_colors, rank_top
from .models import CategoricalChart, DashboardStats, TimeSeriesChart
from .repository import AnalyticsRepository
from .series import align_many, align_series, build_dataset

logger = logging.getLogger(__name__)

DISTRIBUTION = (
    ("chats", "Chats"),
    ("diary_pages", "Diaries"),
    ("forums", "Forums"),
    ("asset_usage", "Asset Usage"),
    ("awards", "Awards"),
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class AnalyticsService:
    """
    Computes every analytics payload from scratch on each call.

    Storage access goes through ``AnalyticsRepository``; independent fetches of
    one payload run concurrently in worker threads and the first failure
    propagates to the caller. Raw ``period``/``limit`` query values are
    accepted and normalised here (unknown values fall back to defaults).
    """

    def __init__(
        self,
        repository: AnalyticsRepository,
        config: Optional[AnalyticsConfig] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.repository = repository
        self.config = config or AnalyticsConfig()
        self.clock = clock

    async def dashboard_stats(self) -> DashboardStats:
        now = self.clock()
        window = timedelta(days=self.config.comparison.window_days)
        boundary = now - window
        previous_start = boundary - window
        repo = self.repository

        (
            students,
            previous_students,
            tutors,
            previous_tutors,
            assets,
            previous_assets,
            revenue,
            previous_revenue,
        ) = await asyncio.gather(
            asyncio.to_thread(repo.count_users, "student"),
            asyncio.to_thread(repo.count_users, "student", boundary),
            asyncio.to_thread(repo.count_users, "tutor"),
            asyncio.to_thread(repo.count_users, "tutor", boundary),
            asyncio.to_thread(repo.count_assets),
            asyncio.to_thread(repo.count_assets, boundary),
            asyncio.to_thread(repo.sum_revenue, boundary),
            asyncio.to_thread(repo.sum_revenue, previous_start, boundary),
        )

        return DashboardStats(
            students=compare(students, previous_students),
            tutors=compare(tutors, previous_tutors),
            assets=compare(assets, previous_assets),
            revenue=compare(revenue, previous_revenue, unit="amount"),
        )

    async def user_growth(self, period: Optional[str] = None) -> TimeSeriesChart:
        period = parse_period(period)
        window = window_for(period, self.clock(), SERIES_WINDOWS)
        logger.debug("User growth for %s: %d %s buckets", period, len(window), window.granularity.value)

        students, tutors = await asyncio.gather(
            asyncio.to_thread(self.repository.user_registrations, "student", window.granularity, window.start),
            asyncio.to_thread(self.repository.user_registrations, "tutor", window.granularity, window.start),
        )
        student_data, tutor_data = align_many(window, students, tutors)

        return TimeSeriesChart(
            labels=list(window.labels),
            datasets=[
                build_dataset("Students", student_data, "#4F46E5", "rgba(79, 70, 229, 0.1)", True),
                build_dataset("Tutors", tutor_data, "#10B981", "rgba(16, 185, 129, 0.1)", True),
            ],
        )

    async def activity_distribution(self) -> CategoricalChart:
        totals = await asyncio.to_thread(self.repository.activity_totals)
        return CategoricalChart(
            labels=[label for _, label in DISTRIBUTION],
            values=[int(totals.get(key, 0) or 0) for key, _ in DISTRIBUTION],
            colors=palette_colors(len(DISTRIBUTION)),
        )

    async def asset_usage(self, period: Optional[str] = None) -> TimeSeriesChart:
        period = parse_period(period)
        window = window_for(period, self.clock(), USAGE_WINDOWS)
        logger.debug("Asset usage for %s: %d %s buckets", period, len(window), window.granularity.value)

        free, premium = await asyncio.gather(
            asyncio.to_thread(self.repository.asset_purchases, "free", window.granularity, window.start),
            asyncio.to_thread(self.repository.asset_purchases, "premium", window.granularity, window.start),
        )
        free_data, premium_data = align_many(window, free, premium)

        return TimeSeriesChart(
            labels=list(window.labels),
            datasets=[
                build_dataset("Free Assets", free_data, background_color="#4F46E5"),
                build_dataset("Premium Assets", premium_data, background_color="#F59E0B"),
            ],
        )

    async def top_assets(self, limit: Any = None) -> CategoricalChart:
        limit = parse_limit(limit, self.config.limits.top_default, self.config.limits.top_max)
        items = await asyncio.to_thread(self.repository.usage_by_asset)
        return rank_top(items, limit)

    async def top_categories(self, limit: Any = None) -> CategoricalChart:
        limit = parse_limit(limit, self.config.limits.top_default, self.config.limits.top_max)
        items = await asyncio.to_thread(self.repository.usage_by_category)
        return rank_top(items, limit)

    async def revenue(self, period: Optional[str] = None) -> TimeSeriesChart:
        period = parse_period(period)
        window = window_for(period, self.clock(), SERIES_WINDOWS)

        sparse = await asyncio.to_thread(self.repository.revenue_by_bucket, window.granularity, window.start)
        data = align_series(window, sparse)

        return TimeSeriesChart(
            labels=list(window.labels),
            datasets=[build_dataset("Revenue", data, "#10B981", "rgba(16, 185, 129, 0.1)", True)],
            total_revenue=sum(data),
        )

    async def recent_activities(self, limit: Any = None) -> List[Activity]:
        limit = parse_limit(limit, self.config.limits.recent_default, self.config.limits.recent_max)
        fetchers = self._activity_fetchers()
        kinds = [kind for kind in self.config.activity.enabled_kinds if kind in fetchers]
        batches: Sequence[Sequence[Activity]] = await asyncio.gather(
            *(asyncio.to_thread(fetchers[kind], limit) for kind in kinds)
        )
        return assemble_recent(limit, *batches)

    def _activity_fetchers(self) -> Dict[str, Callable[[int], Sequence[Activity]]]:
        repo = self.repository
        return {
            "asset_purchase": repo.recent_asset_purchases,
            "chat_message": repo.recent_chat_messages,
            "diary_entry": repo.recent_diary_entries,
            "forum_post": repo.recent_forum_posts,
            "award_earned": repo.recent_awards,
        }
