"""Tests for the outbox worker."""

import asyncio
from unittest.mock import MagicMock, patch

import pytest
from conftest import FakeReaderClient

from greader_sync.core.models import (
    STATE_KEPT_UNREAD,
    STATE_READ,
    STATE_STARRED,
)
from greader_sync.errors import RemoteError, UnauthorizedError
from greader_sync.store import ActionKind
from greader_sync.sync import OutboxWorker, host_reachable


def _seed(store, *article_ids):
    for article_id in article_ids:
        store.upsert_article(article_id, "feed/1", "t", "c", "a", "h", 0)


def _worker(client, store, **kwargs):
    return OutboxWorker(client, store, "write-token", **kwargs)


class TestDrain:
    @pytest.mark.parametrize(
        "kind, add, remove",
        [
            (ActionKind.READ, STATE_READ, None),
            (ActionKind.UNREAD, STATE_KEPT_UNREAD, None),
            (ActionKind.STAR, STATE_STARRED, None),
            (ActionKind.UNSTAR, None, STATE_STARRED),
        ],
    )
    async def test_labels_per_kind(self, store, kind, add, remove):
        _seed(store, "a")
        store.change_article_status("a", kind)
        client = FakeReaderClient()

        sent = await _worker(client, store).drain(kind)

        assert sent == 1
        assert client.edit_tag_calls == [("write-token", ["a"], add, remove)]
        assert store.count_pending_actions(kind) == 0

    async def test_empty_queue_makes_no_call(self, store):
        client = FakeReaderClient()

        assert await _worker(client, store).drain(ActionKind.READ) == 0
        assert client.edit_tag_calls == []

    async def test_batch_is_oldest_first_and_capped(self, store):
        ids = [str(i) for i in range(12)]
        _seed(store, *ids)
        for article_id in ids:
            store.change_article_status(article_id, ActionKind.READ)
        client = FakeReaderClient()
        worker = _worker(client, store, batch_size=10)

        assert await worker.drain(ActionKind.READ) == 10
        assert await worker.drain(ActionKind.READ) == 2

        assert client.edit_tag_calls[0][1] == ids[:10]
        assert client.edit_tag_calls[1][1] == ids[10:]
        assert store.count_pending_actions() == 0

    async def test_failed_delivery_keeps_batch(self, store):
        _seed(store, "a")
        store.change_article_status("a", ActionKind.STAR)
        client = FakeReaderClient()
        client.edit_tag_failures[STATE_STARRED] = RemoteError("503")

        with pytest.raises(RemoteError):
            await _worker(client, store).drain(ActionKind.STAR)

        assert store.list_pending_actions(ActionKind.STAR, 10) == ["a"]

    async def test_change_queued_during_delivery_survives(self, store):
        _seed(store, "x")
        store.change_article_status("x", ActionKind.READ)

        class TogglingClient(FakeReaderClient):
            def edit_tag(self, write_token, item_ids, add=None, remove=None):
                super().edit_tag(write_token, item_ids, add, remove)
                store.change_article_status("x", ActionKind.UNREAD)
                store.change_article_status("x", ActionKind.READ)

        client = TogglingClient()

        assert await _worker(client, store).drain(ActionKind.READ) == 1

        assert store.count_pending_actions(ActionKind.READ) == 1
        assert store.count_pending_actions(ActionKind.UNREAD) == 1
        assert store.get_status("x").is_read is True

    async def test_duplicate_entries_sent_once_and_all_acknowledged(
        self, store
    ):
        _seed(store, "a")
        store.change_article_status("a", ActionKind.READ)
        store.change_article_status("a", ActionKind.READ)
        client = FakeReaderClient()

        assert await _worker(client, store).drain(ActionKind.READ) == 2

        assert client.edit_tag_calls == [
            ("write-token", ["a"], STATE_READ, None)
        ]
        assert store.count_pending_actions() == 0


class TestTick:
    async def test_failing_kind_does_not_affect_others(self, store):
        _seed(store, "a", "b")
        store.change_article_status("a", ActionKind.READ)
        store.change_article_status("b", ActionKind.STAR)
        client = FakeReaderClient()
        client.edit_tag_failures[STATE_STARRED] = RemoteError("503")

        outcome = await _worker(client, store).tick()

        assert outcome[ActionKind.READ] == 1
        assert isinstance(outcome[ActionKind.STAR], RemoteError)
        assert outcome[ActionKind.UNREAD] == 0
        assert store.count_pending_actions(ActionKind.READ) == 0
        assert store.list_pending_actions(ActionKind.STAR, 10) == ["b"]

    async def test_failed_kind_retried_next_tick(self, store):
        _seed(store, "b")
        store.change_article_status("b", ActionKind.STAR)
        client = FakeReaderClient()
        client.edit_tag_failures[STATE_STARRED] = RemoteError("503")
        worker = _worker(client, store)

        await worker.tick()
        del client.edit_tag_failures[STATE_STARRED]
        outcome = await worker.tick()

        assert outcome[ActionKind.STAR] == 1
        assert store.count_pending_actions() == 0

    async def test_offline_tick_is_skipped(self, store):
        _seed(store, "a")
        store.change_article_status("a", ActionKind.READ)
        client = FakeReaderClient()

        outcome = await _worker(
            client, store, is_online=lambda: False
        ).tick()

        assert outcome is None
        assert client.edit_tag_calls == []
        assert store.count_pending_actions() == 1

    async def test_unauthorized_refreshes_write_token(self, store):
        _seed(store, "a")
        store.change_article_status("a", ActionKind.READ)
        client = FakeReaderClient()
        client.edit_tag_failures[STATE_READ] = UnauthorizedError("401")
        worker = _worker(client, store, refresh_token=lambda: "fresh-token")

        await worker.tick()
        del client.edit_tag_failures[STATE_READ]
        await worker.tick()

        assert worker.write_token == "fresh-token"
        assert client.edit_tag_calls[-1][0] == "fresh-token"
        assert store.count_pending_actions() == 0


class TestRun:
    async def test_run_ticks_until_cancelled(self, store):
        _seed(store, "a")
        store.change_article_status("a", ActionKind.READ)
        client = FakeReaderClient()
        worker = _worker(client, store, interval=0.01)

        task = asyncio.create_task(worker.run())
        for _ in range(200):
            if client.edit_tag_calls:
                break
            await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert client.edit_tag_calls == [
            ("write-token", ["a"], STATE_READ, None)
        ]


class TestHostReachable:
    @patch("greader_sync.sync.worker.socket.create_connection")
    def test_reachable(self, mock_connect):
        mock_connect.return_value = MagicMock()

        check = host_reachable("https://reader.example.com/api")

        assert check() is True
        mock_connect.assert_called_once_with(
            ("reader.example.com", 443), timeout=3.0
        )

    @patch("greader_sync.sync.worker.socket.create_connection")
    def test_unreachable(self, mock_connect):
        mock_connect.side_effect = OSError("no route")

        assert host_reachable("http://reader.example.com:8080")() is False
        mock_connect.assert_called_once_with(
            ("reader.example.com", 8080), timeout=3.0
        )
