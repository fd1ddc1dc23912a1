"""SQLite-backed local state store.

Owns articles, statuses, feeds, folders, the pending-action outbox and the
singleton reader row. Other components only go through ``LocalStore``.

Key design choices:

* **One writer at a time** -- every mutation takes a process-wide lock and
  runs in its own ``engine.begin()`` transaction, so multi-statement
  changes (article + status, status + outbox entry) commit together or not
  at all.
* **Foreign keys on** -- ``PRAGMA foreign_keys = ON`` is issued for every
  new connection; link rows cascade when a feed or folder is deleted.
* **Full-state reconciliation** -- ``reconcile_read_status`` and
  ``reconcile_starred_status`` rewrite the whole status table in one
  ``UPDATE``. Ids missing from the snapshot become read/unstarred.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager, nullcontext
from pathlib import Path

from sqlalchemy import (
    Connection,
    case,
    create_engine,
    delete,
    event,
    false,
    func,
    select,
    true,
    update,
)
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from ..errors import NotFoundError, StorageError
from .models import ActionKind, Article, ArticleStatus, Feed, PendingAction
from .schema import (
    article_statuses,
    articles,
    feed_folders,
    feeds,
    folders,
    metadata,
    pending_actions,
    reader,
)

logger = logging.getLogger(__name__)

READER_ROW_ID = 1

_STATUS_CHANGES: dict[ActionKind, dict[str, bool]] = {
    ActionKind.READ: {"is_read": True},
    ActionKind.UNREAD: {"is_read": False},
    ActionKind.STAR: {"is_starred": True},
    ActionKind.UNSTAR: {"is_starred": False},
}


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


class LocalStore:
    """Durable local cache.

    Args:
        db_path: SQLite file path, or ``":memory:"`` for a private
            in-process database.
        clock: Source of ``created_at`` for outbox entries.
    """

    def __init__(
        self,
        db_path: Path | str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.db_path = str(db_path)
        self._clock = clock
        self._write_lock = threading.RLock()

        if self.db_path == ":memory:":
            # StaticPool shares one DBAPI connection between threads, so
            # reads must not interleave with an open write transaction.
            self.engine = create_engine(
                "sqlite://",
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
            self._read_guard = self._write_lock
        else:
            self._read_guard = nullcontext()
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                connect_args={"check_same_thread": False, "timeout": 30},
            )
        event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

    def close(self) -> None:
        self.engine.dispose()

    def migrate(self) -> None:
        """Create missing tables and indexes."""
        logger.debug("running migration on %s", self.db_path)
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"migration failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def _write(self) -> Iterator[Connection]:
        """Serialised all-or-nothing write transaction."""
        with self._write_lock:
            try:
                with self.engine.begin() as conn:
                    yield conn
            except SQLAlchemyError as exc:
                raise StorageError(str(exc)) from exc

    @contextmanager
    def _read(self) -> Iterator[Connection]:
        with self._read_guard:
            try:
                with self.engine.connect() as conn:
                    yield conn
            except SQLAlchemyError as exc:
                raise StorageError(str(exc)) from exc

    # ------------------------------------------------------------------
    # Articles
    # ------------------------------------------------------------------

    def upsert_article(
        self,
        article_id: str,
        feed_id: str,
        title: str,
        content: str,
        author: str,
        href: str,
        published_at: int,
    ) -> bool:
        """Insert an article and its status row unless the id is known.

        Article ids are immutable once minted by the remote service, so a
        later fetch of the same id is ignored.

        Returns:
            ``True`` if a new article was stored.
        """
        with self._write() as conn:
            inserted = conn.execute(
                sqlite_insert(articles)
                .values(
                    id=article_id,
                    feed_id=feed_id,
                    title=title,
                    content=content,
                    author=author,
                    href=href,
                    published_at=published_at,
                )
                .on_conflict_do_nothing(index_elements=[articles.c.id])
            ).rowcount
            conn.execute(
                sqlite_insert(article_statuses)
                .values(article_id=article_id)
                .on_conflict_do_nothing(
                    index_elements=[article_statuses.c.article_id]
                )
            )
        return inserted > 0

    def reconcile_read_status(self, unread_ids: Iterable[str]) -> None:
        """Mark exactly *unread_ids* unread and every other article read."""
        ids = list(dict.fromkeys(unread_ids))
        with self._write() as conn:
            conn.execute(
                update(article_statuses).values(
                    is_read=case(
                        (article_statuses.c.article_id.in_(ids), false()),
                        else_=true(),
                    )
                )
            )

    def reconcile_starred_status(self, starred_ids: Iterable[str]) -> None:
        """Mark exactly *starred_ids* starred and every other article unstarred."""
        ids = list(dict.fromkeys(starred_ids))
        with self._write() as conn:
            conn.execute(
                update(article_statuses).values(
                    is_starred=case(
                        (article_statuses.c.article_id.in_(ids), true()),
                        else_=false(),
                    )
                )
            )

    def get_article(self, article_id: str) -> Article:
        """Return one article with its status.

        Raises:
            NotFoundError: If the id is unknown.
        """
        query = self._article_query().where(articles.c.id == article_id)
        with self._read() as conn:
            row = conn.execute(query).mappings().first()
        if row is None:
            raise NotFoundError(f"article {article_id} not found")
        return Article(**row)

    def list_articles(
        self,
        feed_id: str | None = None,
        unread_only: bool = False,
        starred_only: bool = False,
        limit: int | None = None,
    ) -> list[Article]:
        """List articles, newest first."""
        query = self._article_query()
        if feed_id is not None:
            query = query.where(articles.c.feed_id == feed_id)
        if unread_only:
            query = query.where(article_statuses.c.is_read == false())
        if starred_only:
            query = query.where(article_statuses.c.is_starred == true())
        query = query.order_by(
            articles.c.published_at.desc(), articles.c.id.desc()
        )
        if limit is not None:
            query = query.limit(limit)
        with self._read() as conn:
            rows = conn.execute(query).mappings().all()
        return [Article(**row) for row in rows]

    @staticmethod
    def _article_query():
        return select(
            articles.c.id,
            articles.c.feed_id,
            articles.c.title,
            articles.c.content,
            articles.c.author,
            articles.c.href,
            articles.c.published_at,
            article_statuses.c.is_read,
            article_statuses.c.is_starred,
        ).join(
            article_statuses,
            article_statuses.c.article_id == articles.c.id,
        )

    def get_status(self, article_id: str) -> ArticleStatus:
        """Raises ``NotFoundError`` if the article has no status row."""
        with self._read() as conn:
            row = (
                conn.execute(
                    select(article_statuses).where(
                        article_statuses.c.article_id == article_id
                    )
                )
                .mappings()
                .first()
            )
        if row is None:
            raise NotFoundError(f"no status for article {article_id}")
        return ArticleStatus(**row)

    # ------------------------------------------------------------------
    # Feeds and folders
    # ------------------------------------------------------------------

    def upsert_feed(
        self, feed_id: str, title: str, url: str, html_url: str
    ) -> None:
        """Insert a feed or refresh its descriptive columns."""
        stmt = sqlite_insert(feeds).values(
            id=feed_id, title=title, url=url, html_url=html_url
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[feeds.c.id],
            set_={
                "title": stmt.excluded.title,
                "url": stmt.excluded.url,
                "html_url": stmt.excluded.html_url,
            },
        )
        with self._write() as conn:
            conn.execute(stmt)

    def upsert_folder(self, folder_id: str) -> None:
        # Update-free upsert: a REPLACE would delete the row and cascade
        # away its feed links.
        with self._write() as conn:
            conn.execute(
                sqlite_insert(folders)
                .values(id=folder_id)
                .on_conflict_do_nothing(index_elements=[folders.c.id])
            )

    def link_feed_folder(self, feed_id: str, folder_id: str) -> None:
        """Link a feed to a folder; both must exist (foreign keys)."""
        with self._write() as conn:
            conn.execute(
                sqlite_insert(feed_folders)
                .values(feed_id=feed_id, folder_id=folder_id)
                .on_conflict_do_nothing()
            )

    def remove_feeds_not_in(self, current_ids: Iterable[str]) -> int:
        """Delete feeds absent from *current_ids*.

        An empty *current_ids* deletes every feed: the subscription list
        is authoritative.

        Returns:
            Number of feeds removed.
        """
        ids = list(dict.fromkeys(current_ids))
        stmt = delete(feeds)
        if ids:
            stmt = stmt.where(feeds.c.id.not_in(ids))
        with self._write() as conn:
            removed = conn.execute(stmt).rowcount
        if removed:
            logger.info("removed %d feeds no longer subscribed", removed)
        return removed

    def list_feeds(self) -> list[Feed]:
        with self._read() as conn:
            rows = (
                conn.execute(select(feeds).order_by(feeds.c.title, feeds.c.id))
                .mappings()
                .all()
            )
        return [Feed(**row) for row in rows]

    def list_folders(self) -> list[str]:
        with self._read() as conn:
            return list(
                conn.execute(
                    select(folders.c.id).order_by(folders.c.id)
                ).scalars()
            )

    def list_feed_folders(self, feed_id: str) -> list[str]:
        """Folder ids a feed is linked to."""
        with self._read() as conn:
            return list(
                conn.execute(
                    select(feed_folders.c.folder_id)
                    .where(feed_folders.c.feed_id == feed_id)
                    .order_by(feed_folders.c.folder_id)
                ).scalars()
            )

    # ------------------------------------------------------------------
    # Outbox
    # ------------------------------------------------------------------

    def change_article_status(
        self, article_id: str, kind: ActionKind
    ) -> None:
        """Apply a local status change and queue it for delivery.

        Both the flag update and the outbox entry commit together.

        Raises:
            NotFoundError: If the article has no status row; nothing changes.
        """
        kind = ActionKind(kind)
        with self._write() as conn:
            changed = conn.execute(
                update(article_statuses)
                .where(article_statuses.c.article_id == article_id)
                .values(**_STATUS_CHANGES[kind])
            ).rowcount
            if changed == 0:
                raise NotFoundError(f"no status for article {article_id}")
            conn.execute(
                pending_actions.insert().values(
                    article_id=article_id,
                    action=kind.value,
                    created_at=self._clock(),
                )
            )
        logger.debug("queued %s for %s", kind.value, article_id)

    def list_pending_actions(
        self, kind: ActionKind, limit: int
    ) -> list[str]:
        """Return up to *limit* queued article ids for *kind*, oldest first."""
        if limit <= 0:
            return []
        query = (
            select(pending_actions.c.article_id)
            .where(pending_actions.c.action == ActionKind(kind).value)
            .order_by(pending_actions.c.created_at, pending_actions.c.id)
            .limit(limit)
        )
        with self._read() as conn:
            return list(conn.execute(query).scalars())

    def list_pending_entries(
        self, kind: ActionKind, limit: int
    ) -> list[PendingAction]:
        """Like ``list_pending_actions`` but returns whole outbox entries.

        The entry ids let a dispatcher delete exactly the batch it sent,
        leaving entries queued meanwhile for the same article in place.
        """
        if limit <= 0:
            return []
        query = (
            select(pending_actions)
            .where(pending_actions.c.action == ActionKind(kind).value)
            .order_by(pending_actions.c.created_at, pending_actions.c.id)
            .limit(limit)
        )
        with self._read() as conn:
            rows = conn.execute(query).mappings().all()
        return [PendingAction(**row) for row in rows]

    def delete_pending_entries(self, entry_ids: Iterable[int]) -> int:
        """Remove outbox entries by entry id. Returns the number deleted."""
        ids = list(dict.fromkeys(entry_ids))
        if not ids:
            return 0
        with self._write() as conn:
            return conn.execute(
                delete(pending_actions).where(pending_actions.c.id.in_(ids))
            ).rowcount

    def delete_pending_actions(
        self, kind: ActionKind, article_ids: Iterable[str]
    ) -> int:
        """Remove every queued entry of *kind* for *article_ids*.

        Returns the number of rows deleted. Entries queued after a batch
        was read are removed too; use ``delete_pending_entries`` to
        acknowledge a delivered batch.
        """
        ids = list(dict.fromkeys(article_ids))
        if not ids:
            return 0
        with self._write() as conn:
            return conn.execute(
                delete(pending_actions).where(
                    pending_actions.c.action == ActionKind(kind).value,
                    pending_actions.c.article_id.in_(ids),
                )
            ).rowcount

    def count_pending_actions(self, kind: ActionKind | None = None) -> int:
        query = select(func.count()).select_from(pending_actions)
        if kind is not None:
            query = query.where(
                pending_actions.c.action == ActionKind(kind).value
            )
        with self._read() as conn:
            return conn.execute(query).scalar_one()

    def counts(self) -> dict[str, int]:
        """Article, unread, starred, feed and pending-action totals."""
        with self._read() as conn:
            total, unread, starred = conn.execute(
                select(
                    func.count(),
                    func.coalesce(
                        func.sum(
                            case((article_statuses.c.is_read == false(), 1), else_=0)
                        ),
                        0,
                    ),
                    func.coalesce(
                        func.sum(
                            case((article_statuses.c.is_starred == true(), 1), else_=0)
                        ),
                        0,
                    ),
                ).select_from(article_statuses)
            ).one()
            feed_count = conn.execute(
                select(func.count()).select_from(feeds)
            ).scalar_one()
            pending = conn.execute(
                select(func.count()).select_from(pending_actions)
            ).scalar_one()
        return {
            "articles": total,
            "unread": unread,
            "starred": starred,
            "feeds": feed_count,
            "pending": pending,
        }

    # ------------------------------------------------------------------
    # Reader singleton
    # ------------------------------------------------------------------

    def _get_reader_value(self, column) -> object | None:
        with self._read() as conn:
            return conn.execute(
                select(column).where(reader.c.id == READER_ROW_ID)
            ).scalar_one_or_none()

    def _set_reader_values(self, **values) -> None:
        stmt = sqlite_insert(reader).values(id=READER_ROW_ID, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[reader.c.id], set_=values
        )
        with self._write() as conn:
            conn.execute(stmt)

    def get_last_sync_time(self) -> int | None:
        """Epoch seconds of the last successful pass, ``None`` before the first."""
        return self._get_reader_value(reader.c.last_sync)

    def set_last_sync_time(self, last_sync: int) -> None:
        self._set_reader_values(last_sync=int(last_sync))

    def get_token(self) -> str | None:
        return self._get_reader_value(reader.c.token)

    def set_token(self, token: str) -> None:
        self._set_reader_values(token=token)

    def get_write_token(self) -> str | None:
        return self._get_reader_value(reader.c.write_token)

    def set_write_token(self, token: str) -> None:
        self._set_reader_values(write_token=token)

    def clear_tokens(self) -> None:
        """Forget both tokens so the next session logs in again."""
        self._set_reader_values(token=None, write_token=None)
