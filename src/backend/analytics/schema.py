"""
Read-only view of the back office tables the analytics queries touch.

The tables are owned and migrated by the CRUD services; only the columns used
here are declared.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, MetaData, Numeric, String, Table, Text

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("email", String(255)),
    Column("first_name", String(100)),
    Column("last_name", String(100)),
    Column("role", String(20), index=True),
    Column("created_at", DateTime, index=True),
)

asset_categories = Table(
    "asset_categories",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(255), nullable=False),
)

assets = Table(
    "assets",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(255), nullable=False),
    Column("category_id", Integer, ForeignKey("asset_categories.id")),
    Column("price", Numeric(10, 2), default=0),
    Column("is_free", Boolean, default=False),
    Column("is_premium", Boolean, default=False),
    Column("created_at", DateTime, index=True),
)

user_assets = Table(
    "user_assets",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id")),
    Column("asset_id", Integer, ForeignKey("assets.id")),
    Column("purchase_price", Numeric(10, 2), default=0),
    Column("purchased_at", DateTime, index=True),
)

chats = Table(
    "chats",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(255)),
    Column("created_by", Integer, ForeignKey("users.id")),
    Column("created_at", DateTime),
)

messages = Table(
    "messages",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("chat_id", Integer, ForeignKey("chats.id"), nullable=False),
    Column("sender_id", Integer, ForeignKey("users.id")),
    Column("content", Text),
    Column("created_at", DateTime, index=True),
)

diaries = Table(
    "diaries",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id")),
    Column("title", String(255)),
    Column("created_at", DateTime),
)

diary_pages = Table(
    "diary_pages",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("diary_id", Integer, ForeignKey("diaries.id")),
    Column("title", String(255)),
    Column("created_at", DateTime),
)

forums = Table(
    "forums",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(100)),
    Column("created_by", Integer, ForeignKey("users.id")),
    Column("created_at", DateTime),
)

forum_topics = Table(
    "forum_topics",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("forum_id", Integer, ForeignKey("forums.id"), nullable=False),
    Column("title", String(255), nullable=False),
    Column("created_by", Integer, ForeignKey("users.id")),
    Column("created_at", DateTime),
)

forum_posts = Table(
    "forum_posts",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("topic_id", Integer, ForeignKey("forum_topics.id"), nullable=False),
    Column("content", Text),
    Column("created_by", Integer, ForeignKey("users.id")),
    Column("created_at", DateTime, index=True),
)

# Award definitions; grants to users live in ``user_awards``.
awards = Table(
    "awards",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(100), nullable=False),
    Column("description", Text),
    Column("image_url", String(255)),
    Column("points", Integer, default=0),
    Column("created_at", DateTime),
)

user_awards = Table(
    "user_awards",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id"), nullable=False),
    Column("award_id", Integer, ForeignKey("awards.id"), nullable=False),
    Column("awarded_by", Integer, ForeignKey("users.id")),
    Column("awarded_at", DateTime, index=True),
)
