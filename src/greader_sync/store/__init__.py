"""Local state store: SQLite schema, read models and the ``LocalStore`` facade."""

from .models import ActionKind, Article, ArticleStatus, Feed, PendingAction
from .sqlite import LocalStore

__all__ = [
    "ActionKind",
    "Article",
    "ArticleStatus",
    "Feed",
    "LocalStore",
    "PendingAction",
]
