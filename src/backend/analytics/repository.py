from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from sqlalchemy import create_engine, func, literal, select
from sqlalchemy.engine import Engine, Row
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.elements import ColumnElement

from . import schema
from .activities import (
    Activity,
    ActivityUser,
    AssetPurchaseActivity,
    AwardEarnedActivity,
    ChatMessageActivity,
    DiaryEntryActivity,
    ForumPostActivity,
)
from .configuration import AnalyticsConfig, load_analytics_config
from .models import BucketValue, Granularity, RankedItem

ASSET_TIERS = ("free", "premium")


class AnalyticsError(Exception):
    """Base class for failures surfaced by the analytics API."""


class MetricFetchError(AnalyticsError):
    """The storage layer could not answer an aggregate query."""

    def __init__(self, operation: str, cause: Exception):
        super().__init__(f"{operation} failed: {cause}")
        self.operation = operation
        self.cause = cause


class RepositoryNotConfiguredError(AnalyticsError):
    """No storage backend is configured for the analytics API."""


class AnalyticsRepository:
    """
    Interface for the aggregate queries behind the analytics endpoints.

    Bucketed queries return sparse results: only buckets holding at least one
    event appear, in no guaranteed order. Implementations raise
    ``MetricFetchError`` when storage is unavailable; an empty result is never
    an error.
    """

    def count_users(self, role: str, created_before: Optional[datetime] = None) -> int:
        raise NotImplementedError

    def count_assets(self, created_before: Optional[datetime] = None) -> int:
        raise NotImplementedError

    def sum_revenue(self, start: datetime, end: Optional[datetime] = None) -> float:
        raise NotImplementedError

    def user_registrations(self, role: str, granularity: Granularity, since: datetime) -> Sequence[BucketValue]:
        raise NotImplementedError

    def asset_purchases(self, tier: str, granularity: Granularity, since: datetime) -> Sequence[BucketValue]:
        raise NotImplementedError

    def revenue_by_bucket(self, granularity: Granularity, since: datetime) -> Sequence[BucketValue]:
        raise NotImplementedError

    def activity_totals(self) -> Dict[str, int]:
        raise NotImplementedError

    def usage_by_asset(self) -> Sequence[RankedItem]:
        raise NotImplementedError

    def usage_by_category(self) -> Sequence[RankedItem]:
        raise NotImplementedError

    def recent_asset_purchases(self, limit: int) -> Sequence[Activity]:
        raise NotImplementedError

    def recent_chat_messages(self, limit: int) -> Sequence[Activity]:
        raise NotImplementedError

    def recent_diary_entries(self, limit: int) -> Sequence[Activity]:
        raise NotImplementedError

    def recent_forum_posts(self, limit: int) -> Sequence[Activity]:
        raise NotImplementedError

    def recent_awards(self, limit: int) -> Sequence[Activity]:
        raise NotImplementedError


_BUCKET_FORMATS = {
    "postgresql": {Granularity.DAY: "YYYY-MM-DD", Granularity.MONTH: "YYYY-MM"},
    "strftime": {Granularity.DAY: "%Y-%m-%d", Granularity.MONTH: "%Y-%m"},
}


def bucket_expression(column: ColumnElement, granularity: Granularity, dialect_name: str) -> ColumnElement:
    """
    SQL expression truncating ``column`` to a bucket key.

    The produced keys match ``buckets.bucket_key`` on every supported dialect.
    """

    if dialect_name == "postgresql":
        fmt = _BUCKET_FORMATS["postgresql"][granularity]
        return func.to_char(column, literal(fmt, literal_execute=True))
    fmt = _BUCKET_FORMATS["strftime"][granularity]
    if dialect_name in {"mysql", "mariadb"}:
        return func.date_format(column, literal(fmt, literal_execute=True))
    return func.strftime(literal(fmt, literal_execute=True), column)


class SQLAnalyticsRepository(AnalyticsRepository):
    """
    Run the analytics aggregates against the back office database.

    Every query is built with SQLAlchemy Core; nothing user supplied is
    interpolated into SQL text.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    # ------------------------------------------------------------------ counts

    def count_users(self, role: str, created_before: Optional[datetime] = None) -> int:
        users = schema.users
        query = select(func.count(users.c.id)).where(users.c.role == role)
        if created_before is not None:
            query = query.where(users.c.created_at < created_before)
        return int(self._scalar("count_users", query) or 0)

    def count_assets(self, created_before: Optional[datetime] = None) -> int:
        assets = schema.assets
        query = select(func.count(assets.c.id))
        if created_before is not None:
            query = query.where(assets.c.created_at < created_before)
        return int(self._scalar("count_assets", query) or 0)

    def sum_revenue(self, start: datetime, end: Optional[datetime] = None) -> float:
        purchases = schema.user_assets
        query = select(func.sum(purchases.c.purchase_price)).where(purchases.c.purchased_at >= start)
        if end is not None:
            query = query.where(purchases.c.purchased_at < end)
        return float(self._scalar("sum_revenue", query) or 0)

    def activity_totals(self) -> Dict[str, int]:
        tables = {
            "chats": schema.chats,
            "diary_pages": schema.diary_pages,
            "forums": schema.forums,
            "asset_usage": schema.user_assets,
            "awards": schema.awards,
        }
        return {
            key: int(self._scalar(f"count_{key}", select(func.count(table.c.id))) or 0)
            for key, table in tables.items()
        }

    # ------------------------------------------------------------- time series

    def user_registrations(self, role: str, granularity: Granularity, since: datetime) -> Sequence[BucketValue]:
        users = schema.users
        bucket = self._bucket(users.c.created_at, granularity)
        query = (
            select(bucket.label("bucket"), func.count(users.c.id).label("value"))
            .where(users.c.role == role, users.c.created_at >= since)
            .group_by(bucket)
            .order_by(bucket)
        )
        return self._bucket_rows("user_registrations", query)

    def asset_purchases(self, tier: str, granularity: Granularity, since: datetime) -> Sequence[BucketValue]:
        if tier not in ASSET_TIERS:
            raise ValueError(f"Unknown asset tier: {tier!r}")
        purchases = schema.user_assets
        assets = schema.assets
        tier_flag = assets.c.is_free if tier == "free" else assets.c.is_premium
        bucket = self._bucket(purchases.c.purchased_at, granularity)
        query = (
            select(bucket.label("bucket"), func.count(purchases.c.id).label("value"))
            .select_from(purchases.join(assets, purchases.c.asset_id == assets.c.id))
            .where(tier_flag.is_(True), purchases.c.purchased_at >= since)
            .group_by(bucket)
            .order_by(bucket)
        )
        return self._bucket_rows(f"asset_purchases[{tier}]", query)

    def revenue_by_bucket(self, granularity: Granularity, since: datetime) -> Sequence[BucketValue]:
        purchases = schema.user_assets
        bucket = self._bucket(purchases.c.purchased_at, granularity)
        query = (
            select(bucket.label("bucket"), func.sum(purchases.c.purchase_price).label("value"))
            .where(purchases.c.purchased_at >= since, purchases.c.purchase_price > 0)
            .group_by(bucket)
            .order_by(bucket)
        )
        return self._bucket_rows("revenue_by_bucket", query)

    # ---------------------------------------------------------------- rankings

    def usage_by_asset(self) -> Sequence[RankedItem]:
        purchases = schema.user_assets
        assets = schema.assets
        query = (
            select(assets.c.id, assets.c.name, func.count(purchases.c.id).label("usage_count"))
            .select_from(purchases.join(assets, purchases.c.asset_id == assets.c.id))
            .group_by(assets.c.id, assets.c.name)
            .order_by(assets.c.id)
        )
        rows = self._fetch("usage_by_asset", query)
        return tuple(RankedItem(entity_id=row.id, label=row.name, value=int(row.usage_count)) for row in rows)

    def usage_by_category(self) -> Sequence[RankedItem]:
        purchases = schema.user_assets
        assets = schema.assets
        categories = schema.asset_categories
        query = (
            select(categories.c.id, categories.c.name, func.count(purchases.c.id).label("usage_count"))
            .select_from(
                purchases.join(assets, purchases.c.asset_id == assets.c.id).join(
                    categories, assets.c.category_id == categories.c.id
                )
            )
            .group_by(categories.c.id, categories.c.name)
            .order_by(categories.c.id)
        )
        rows = self._fetch("usage_by_category", query)
        return tuple(RankedItem(entity_id=row.id, label=row.name, value=int(row.usage_count)) for row in rows)

    # --------------------------------------------------------- recent activity
    # Rows without an occurrence timestamp cannot be placed in the feed.

    def recent_asset_purchases(self, limit: int) -> Sequence[Activity]:
        purchases = schema.user_assets
        assets = schema.assets
        users = schema.users
        query = (
            select(
                purchases.c.id,
                purchases.c.purchased_at.label("timestamp"),
                assets.c.name.label("subject"),
                *self._user_columns(),
            )
            .select_from(
                purchases.join(assets, purchases.c.asset_id == assets.c.id).outerjoin(
                    users, purchases.c.user_id == users.c.id
                )
            )
            .where(purchases.c.purchased_at.is_not(None))
            .order_by(purchases.c.purchased_at.desc(), purchases.c.id.desc())
            .limit(limit)
        )
        rows = self._fetch("recent_asset_purchases", query)
        return tuple(
            AssetPurchaseActivity(id=row.id, user=self._row_to_user(row), timestamp=row.timestamp, asset_name=row.subject)
            for row in rows
        )

    def recent_chat_messages(self, limit: int) -> Sequence[Activity]:
        messages = schema.messages
        chats = schema.chats
        users = schema.users
        query = (
            select(messages.c.id, messages.c.created_at.label("timestamp"), chats.c.name.label("subject"), *self._user_columns())
            .select_from(
                messages.join(chats, messages.c.chat_id == chats.c.id).outerjoin(
                    users, messages.c.sender_id == users.c.id
                )
            )
            .where(messages.c.created_at.is_not(None))
            .order_by(messages.c.created_at.desc(), messages.c.id.desc())
            .limit(limit)
        )
        rows = self._fetch("recent_chat_messages", query)
        return tuple(
            ChatMessageActivity(id=row.id, user=self._row_to_user(row), timestamp=row.timestamp, chat_name=row.subject or "")
            for row in rows
        )

    def recent_diary_entries(self, limit: int) -> Sequence[Activity]:
        pages = schema.diary_pages
        diaries = schema.diaries
        users = schema.users
        query = (
            select(pages.c.id, pages.c.created_at.label("timestamp"), diaries.c.title.label("subject"), *self._user_columns())
            .select_from(
                pages.join(diaries, pages.c.diary_id == diaries.c.id).outerjoin(users, diaries.c.user_id == users.c.id)
            )
            .where(pages.c.created_at.is_not(None))
            .order_by(pages.c.created_at.desc(), pages.c.id.desc())
            .limit(limit)
        )
        rows = self._fetch("recent_diary_entries", query)
        return tuple(
            DiaryEntryActivity(id=row.id, user=self._row_to_user(row), timestamp=row.timestamp, diary_title=row.subject or "")
            for row in rows
        )

    def recent_forum_posts(self, limit: int) -> Sequence[Activity]:
        posts = schema.forum_posts
        topics = schema.forum_topics
        users = schema.users
        query = (
            select(posts.c.id, posts.c.created_at.label("timestamp"), topics.c.title.label("subject"), *self._user_columns())
            .select_from(
                posts.join(topics, posts.c.topic_id == topics.c.id).outerjoin(users, posts.c.created_by == users.c.id)
            )
            .where(posts.c.created_at.is_not(None))
            .order_by(posts.c.created_at.desc(), posts.c.id.desc())
            .limit(limit)
        )
        rows = self._fetch("recent_forum_posts", query)
        return tuple(
            ForumPostActivity(id=row.id, user=self._row_to_user(row), timestamp=row.timestamp, topic_title=row.subject or "")
            for row in rows
        )

    def recent_awards(self, limit: int) -> Sequence[Activity]:
        grants = schema.user_awards
        awards = schema.awards
        users = schema.users
        query = (
            select(grants.c.id, grants.c.awarded_at.label("timestamp"), awards.c.name.label("subject"), *self._user_columns())
            .select_from(
                grants.join(awards, grants.c.award_id == awards.c.id).outerjoin(users, grants.c.user_id == users.c.id)
            )
            .where(grants.c.awarded_at.is_not(None))
            .order_by(grants.c.awarded_at.desc(), grants.c.id.desc())
            .limit(limit)
        )
        rows = self._fetch("recent_awards", query)
        return tuple(
            AwardEarnedActivity(id=row.id, user=self._row_to_user(row), timestamp=row.timestamp, award_name=row.subject or "")
            for row in rows
        )

    # ----------------------------------------------------------------- helpers

    def _bucket(self, column: ColumnElement, granularity: Granularity) -> ColumnElement:
        return bucket_expression(column, granularity, self.engine.dialect.name)

    @staticmethod
    def _user_columns() -> Sequence[ColumnElement]:
        users = schema.users
        return (
            users.c.id.label("user_id"),
            users.c.email.label("user_email"),
            users.c.first_name.label("user_first_name"),
            users.c.last_name.label("user_last_name"),
        )

    @staticmethod
    def _row_to_user(row: Row) -> ActivityUser:
        return ActivityUser(
            id=row.user_id,
            email=row.user_email,
            first_name=row.user_first_name,
            last_name=row.user_last_name,
        )

    def _bucket_rows(self, operation: str, query: Any) -> Sequence[BucketValue]:
        rows = self._fetch(operation, query)
        return tuple(BucketValue(key=str(row.bucket), value=float(row.value or 0)) for row in rows if row.bucket)

    def _fetch(self, operation: str, query: Any) -> Sequence[Row]:
        try:
            with self.engine.connect() as connection:
                return connection.execute(query).fetchall()
        except SQLAlchemyError as exc:
            raise MetricFetchError(operation, exc) from exc

    def _scalar(self, operation: str, query: Any) -> Any:
        try:
            with self.engine.connect() as connection:
                return connection.execute(query).scalar()
        except SQLAlchemyError as exc:
            raise MetricFetchError(operation, exc) from exc


def build_repository_from_env(config: Optional[AnalyticsConfig] = None) -> Optional[AnalyticsRepository]:
    cfg = config or load_analytics_config()
    if cfg.database.url:
        engine = create_engine(cfg.database.url, echo=cfg.database.echo)
        return SQLAnalyticsRepository(engine)
    return None
