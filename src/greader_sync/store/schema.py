"""SQLAlchemy Core table definitions for the local cache."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    false,
)

metadata = MetaData()

articles = Table(
    "articles",
    metadata,
    Column("id", String, primary_key=True),
    # Not a foreign key: starred articles outlive the feed they came from.
    Column("feed_id", String, nullable=False, server_default=""),
    Column("title", Text, nullable=False, server_default=""),
    Column("content", Text, nullable=False, server_default=""),
    Column("author", String, nullable=False, server_default=""),
    Column("href", String, nullable=False, server_default=""),
    Column("published_at", Integer, nullable=False, server_default="0"),
)

article_statuses = Table(
    "article_statuses",
    metadata,
    Column(
        "article_id",
        String,
        ForeignKey("articles.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("is_read", Boolean, nullable=False, server_default=false()),
    Column("is_starred", Boolean, nullable=False, server_default=false()),
)

feeds = Table(
    "feeds",
    metadata,
    Column("id", String, primary_key=True),
    Column("title", String, nullable=False, server_default=""),
    Column("url", String, nullable=False, server_default=""),
    Column("html_url", String, nullable=False, server_default=""),
)

folders = Table(
    "folders",
    metadata,
    Column("id", String, primary_key=True),
)

feed_folders = Table(
    "feed_folders",
    metadata,
    Column(
        "feed_id",
        String,
        ForeignKey("feeds.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "folder_id",
        String,
        ForeignKey("folders.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)

pending_actions = Table(
    "pending_actions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "article_id",
        String,
        ForeignKey("article_statuses.article_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("action", String, nullable=False),
    Column("created_at", Float, nullable=False),
    CheckConstraint(
        "action IN ('read','unread','star','unstar')",
        name="chk_pending_actions_action",
    ),
)

Index(
    "idx_pending_actions_action_created",
    pending_actions.c.action,
    pending_actions.c.created_at,
    pending_actions.c.id,
)

reader = Table(
    "reader",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("last_sync", Integer),
    Column("token", String),
    Column("write_token", String),
    CheckConstraint("id = 1", name="chk_reader_singleton"),
)
