"""Action kinds and read-side models of the local store.

All models are frozen; the store is the only writer.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from ..core.models import STATE_KEPT_UNREAD, STATE_READ, STATE_STARRED


class ActionKind(str, Enum):
    """A locally-made status change waiting in the outbox."""

    READ = "read"
    UNREAD = "unread"
    STAR = "star"
    UNSTAR = "unstar"

    @property
    def labels(self) -> tuple[str | None, str | None]:
        """``(label_to_add, label_to_remove)`` sent to ``edit-tag``."""
        return _LABELS[self]


_LABELS: dict[ActionKind, tuple[str | None, str | None]] = {
    ActionKind.READ: (STATE_READ, None),
    ActionKind.UNREAD: (STATE_KEPT_UNREAD, None),
    ActionKind.STAR: (STATE_STARRED, None),
    ActionKind.UNSTAR: (None, STATE_STARRED),
}


class Article(BaseModel):
    id: str
    feed_id: str
    title: str
    content: str
    author: str
    href: str
    published_at: int
    is_read: bool = False
    is_starred: bool = False

    model_config = {"frozen": True}


class ArticleStatus(BaseModel):
    article_id: str
    is_read: bool
    is_starred: bool

    model_config = {"frozen": True}


class Feed(BaseModel):
    id: str
    title: str
    url: str
    html_url: str

    model_config = {"frozen": True}


class PendingAction(BaseModel):
    """One outbox entry; ``id`` identifies it independently of the article."""

    id: int
    article_id: str
    action: ActionKind
    created_at: float

    model_config = {"frozen": True}
