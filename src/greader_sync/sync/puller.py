"""Reconciliation pass: pull remote state into the local store.

The ``Puller`` runs these steps strictly in order:

1. Read the checkpoint (``last_sync_time``; missing means 0).
2. Capture the new checkpoint *before* any remote call, so an interrupted
   pass re-covers a window that contains everything it may have missed.
3. Tags -> folders (system states skipped, except starred).
4. Subscriptions -> feeds, feed/folder links, purge of vanished feeds.
5. Unread article bodies since the checkpoint.
6. Unread id snapshot -> full-state read reconciliation.
7. Starred article bodies since the checkpoint.
8. Starred id snapshot -> full-state starred reconciliation.
9. Persist the new checkpoint.

Any step failure aborts the pass and leaves the checkpoint untouched. Re-running
the same window is safe: article upserts are idempotent and the status
reconciliations overwrite rather than accumulate. Inside the tag and
subscription steps, per-item failures are collected and raised together as a
``CombinedError`` once the whole batch has been attempted.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from datetime import datetime, timezone

from greader_sync.core.client import GReaderClient
from greader_sync.core.models import (
    STATE_READ,
    STATE_READING_LIST,
    STATE_STARRED,
    ContentItem,
)
from greader_sync.errors import SyncCancelledError, join_errors
from greader_sync.store.sqlite import LocalStore
from greader_sync.sync.models import StepResult, SyncReport, SyncStep

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000


class Puller:
    """Run reconciliation passes of remote state into a ``LocalStore``.

    Args:
        client: Authenticated remote client.
        store: Local state store.
        page_size: Items requested per stream call. Status snapshots are
            capped by the same size; articles outside the window are
            treated as read/unstarred.
        clock: Returns the current epoch time; used for the checkpoint.
        cancel_event: When set, the pass stops at the next step boundary.
    """

    def __init__(
        self,
        client: GReaderClient,
        store: LocalStore,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        clock: Callable[[], float] = time.time,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.client = client
        self.store = store
        self.page_size = page_size
        self.clock = clock
        self.cancel_event = cancel_event

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(self) -> SyncReport:
        """Execute one full pass.

        Returns:
            A ``SyncReport`` for the completed pass.

        Raises:
            GReaderSyncError: Any step failure; the checkpoint is not advanced.
        """
        started_at = datetime.now(timezone.utc).isoformat()

        since = self._read_checkpoint()
        new_checkpoint = int(self.clock())

        steps: list[StepResult] = []
        for step in (
            self._sync_tags,
            self._sync_subscriptions,
            self._sync_unread_items,
            self._sync_unread_status,
            self._sync_starred_items,
            self._sync_starred_status,
        ):
            self._check_cancelled()
            steps.append(step(since))

        self._check_cancelled()
        self.store.set_last_sync_time(new_checkpoint)
        logger.info("sync finished, checkpoint %d -> %d", since, new_checkpoint)

        return SyncReport(
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
            previous_checkpoint=since,
            checkpoint=new_checkpoint,
            steps=steps,
        )

    def _read_checkpoint(self) -> int:
        last_sync = self.store.get_last_sync_time()
        if last_sync is None:
            logger.info("no previous sync, starting from 0")
            return 0
        logger.info("last sync time %d", last_sync)
        return last_sync

    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise SyncCancelledError("sync pass cancelled")

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _sync_tags(self, since: int) -> StepResult:
        logger.info("syncing tags")
        tags = self.client.list_tags()

        errors: list[Exception] = []
        stored = 0
        for tag in tags:
            if not tag.is_folder:
                continue
            try:
                self.store.upsert_folder(tag.id)
                stored += 1
            except Exception as exc:
                logger.error("failed to store folder %s: %s", tag.id, exc)
                errors.append(exc)

        logger.info("finished tag sync, %d errors", len(errors))
        join_errors(errors)
        return StepResult(step=SyncStep.TAGS, fetched=len(tags), stored=stored)

    def _sync_subscriptions(self, since: int) -> StepResult:
        logger.info("syncing subscriptions")
        subs = self.client.list_subscriptions()

        errors: list[Exception] = []
        stored = 0
        for sub in subs:
            try:
                self.store.upsert_feed(sub.id, sub.title, sub.url, sub.html_url)
                stored += 1
            except Exception as exc:
                logger.error("failed to store feed %s: %s", sub.id, exc)
                errors.append(exc)

            for folder_id in sub.label_ids:
                try:
                    self.store.link_feed_folder(sub.id, folder_id)
                except Exception as exc:
                    logger.error(
                        "failed to link feed %s to %s: %s",
                        sub.id,
                        folder_id,
                        exc,
                    )
                    errors.append(exc)

        # Runs even after per-item failures.
        removed = 0
        try:
            removed = self.store.remove_feeds_not_in([s.id for s in subs])
        except Exception as exc:
            logger.error("failed to purge stale feeds: %s", exc)
            errors.append(exc)

        logger.info("finished subscriptions sync, %d errors", len(errors))
        join_errors(errors)
        return StepResult(
            step=SyncStep.SUBSCRIPTIONS,
            fetched=len(subs),
            stored=stored,
            removed=removed,
        )

    def _sync_unread_items(self, since: int) -> StepResult:
        logger.info("syncing unread items")
        items = self.client.stream_contents(
            STATE_READING_LIST,
            exclude=STATE_READ,
            since=since,
            limit=self.page_size,
        )
        logger.debug("got %d unread items", len(items))
        return StepResult(
            step=SyncStep.UNREAD_ITEMS,
            fetched=len(items),
            stored=self._store_items(items),
        )

    def _sync_unread_status(self, since: int) -> StepResult:
        logger.info("syncing unread item ids")
        ids = self.client.stream_item_ids(
            STATE_READING_LIST, exclude=STATE_READ, limit=self.page_size
        )
        logger.debug("got %d unread ids", len(ids))
        self.store.reconcile_read_status(ids)
        return StepResult(step=SyncStep.UNREAD_STATUS, fetched=len(ids))

    def _sync_starred_items(self, since: int) -> StepResult:
        logger.info("syncing starred items")
        items = self.client.stream_contents(
            STATE_STARRED, since=since, limit=self.page_size
        )
        logger.debug("got %d starred items", len(items))
        return StepResult(
            step=SyncStep.STARRED_ITEMS,
            fetched=len(items),
            stored=self._store_items(items),
        )

    def _sync_starred_status(self, since: int) -> StepResult:
        logger.info("syncing starred item ids")
        ids = self.client.stream_item_ids(STATE_STARRED, limit=self.page_size)
        logger.debug("got %d starred ids", len(ids))
        self.store.reconcile_starred_status(ids)
        return StepResult(step=SyncStep.STARRED_STATUS, fetched=len(ids))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _store_items(self, items: list[ContentItem]) -> int:
        """Upsert fetched articles; returns how many were new.

        Per-item failures are collected and raised together.
        """
        errors: list[Exception] = []
        stored = 0
        for item in items:
            try:
                if self.store.upsert_article(
                    item.article_id,
                    item.origin_stream_id,
                    item.title,
                    item.content,
                    item.author,
                    item.href,
                    item.published_at,
                ):
                    stored += 1
            except Exception as exc:
                logger.error(
                    "failed to store article %s: %s", item.article_id, exc
                )
                errors.append(exc)
        join_errors(errors)
        return stored
