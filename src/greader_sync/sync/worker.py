"""Outbox worker: deliver locally-queued status changes to the remote service.

Every ``interval`` seconds the worker checks connectivity and then drains
the four action kinds concurrently. Each kind sends its oldest
``batch_size`` entries in one ``edit-tag`` call and deletes them only after
the call succeeds. A failed kind is logged and retried on the next tick;
other kinds are unaffected. There is no backoff and no retry cap, so an
undelivered change is never dropped.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from collections.abc import Callable
from urllib.parse import urlparse

from greader_sync.core.async_utils import gather_isolated, run_sync
from greader_sync.core.client import GReaderClient
from greader_sync.errors import GReaderSyncError, UnauthorizedError
from greader_sync.store.models import ActionKind
from greader_sync.store.sqlite import LocalStore

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 5.0
DEFAULT_BATCH_SIZE = 10


def _always_online() -> bool:
    return True


def host_reachable(url: str, timeout: float = 3.0) -> Callable[[], bool]:
    """Build a connectivity check that opens a TCP connection to *url*'s host."""
    parsed = urlparse(url)
    host = parsed.hostname or ""
    port = parsed.port or (443 if parsed.scheme == "https" else 80)

    def _check() -> bool:
        try:
            with socket.create_connection((host, port), timeout=timeout):
                return True
        except OSError:
            return False

    return _check


class OutboxWorker:
    """Periodically drain the pending-action outbox.

    Args:
        client: Authenticated remote client.
        store: Local state store holding the outbox.
        write_token: Token required by ``edit-tag``.
        interval: Seconds between ticks.
        batch_size: Entries delivered per kind per tick.
        is_online: Blocking connectivity predicate; ticks are skipped while
            it returns False. Defaults to always online.
        refresh_token: Blocking callable returning a fresh write token.
            Called after a tick in which a kind was rejected as
            unauthorized.
    """

    def __init__(
        self,
        client: GReaderClient,
        store: LocalStore,
        write_token: str,
        *,
        interval: float = DEFAULT_INTERVAL,
        batch_size: int = DEFAULT_BATCH_SIZE,
        is_online: Callable[[], bool] | None = None,
        refresh_token: Callable[[], str] | None = None,
    ) -> None:
        self.client = client
        self.store = store
        self.write_token = write_token
        self.interval = interval
        self.batch_size = batch_size
        self.is_online = is_online or _always_online
        self.refresh_token = refresh_token

    async def run(self) -> None:
        """Tick forever; returns only by cancellation of the enclosing task."""
        logger.info(
            "worker started (interval=%.1fs, batch=%d)",
            self.interval,
            self.batch_size,
        )
        try:
            while True:
                await asyncio.sleep(self.interval)
                await self.tick()
        finally:
            logger.info("worker stopped")

    async def tick(self) -> dict[ActionKind, int | Exception] | None:
        """Run one delivery round.

        Returns:
            ``None`` if the tick was skipped for lack of connectivity,
            otherwise a mapping from kind to number of delivered entries
            or the exception that kind failed with.
        """
        if not await run_sync(self.is_online):
            logger.info("worker: no network connection, skipping tick")
            return None

        outcome = await gather_isolated(
            {kind: self.drain(kind) for kind in ActionKind}
        )
        unauthorized = False
        for kind, result in outcome.items():
            if isinstance(result, Exception):
                logger.error("worker: %s: %s", kind.value, result)
                unauthorized = unauthorized or isinstance(
                    result, UnauthorizedError
                )
            elif result:
                logger.info("worker: delivered %d %s actions", result, kind.value)

        if unauthorized and self.refresh_token is not None:
            try:
                self.write_token = await run_sync(self.refresh_token)
            except GReaderSyncError as exc:
                logger.error("worker: token refresh failed: %s", exc)
        return outcome

    async def drain(self, kind: ActionKind) -> int:
        """Deliver one batch of *kind*; returns the number of entries sent."""
        logger.debug("worker: pending %s", kind.value)
        entries = await run_sync(
            self.store.list_pending_entries, kind, self.batch_size
        )
        if not entries:
            return 0
        article_ids = list(dict.fromkeys(e.article_id for e in entries))

        add, remove = kind.labels
        await run_sync(
            self.client.edit_tag,
            self.write_token,
            article_ids,
            add,
            remove,
        )
        # Only the entries sent are acknowledged; anything queued for the
        # same articles during the call waits for the next tick.
        await run_sync(
            self.store.delete_pending_entries, [e.id for e in entries]
        )
        return len(entries)
