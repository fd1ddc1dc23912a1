"""Shared pytest fixtures for greader-sync tests."""

import itertools
from typing import Dict, List, Optional

import pytest

from greader_sync.config import Config
from greader_sync.core.models import ContentItem, Subscription, Tag
from greader_sync.store import LocalStore


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep tests away from the real XDG dirs and GREADER_* variables."""
    for key in (
        "GREADER_URL",
        "GREADER_USERNAME",
        "GREADER_PASSWORD",
        "GREADER_INSECURE",
        "GREADER_DEBUG",
        "GREADER_DB_PATH",
        "GREADER_SYNC_CONFIG",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "xdg-state"))


@pytest.fixture
def mock_config(tmp_path):
    """Create a Config instance for testing."""
    return Config(
        server_url="https://reader.example.com/api/greader.php",
        username="testuser",
        password="testpass",
        insecure=False,
        db_path=str(tmp_path / "test.sqlite"),
    )


class TickClock:
    """Monotonic fake clock; every call advances by one second."""

    def __init__(self, start: int = 1_700_000_000) -> None:
        self._counter = itertools.count(start)
        self.last: Optional[int] = None

    def __call__(self) -> float:
        self.last = next(self._counter)
        return float(self.last)


@pytest.fixture
def clock():
    return TickClock()


@pytest.fixture
def store(tmp_path, clock):
    """Migrated on-disk store in a temp directory."""
    local = LocalStore(tmp_path / "store.sqlite", clock=clock)
    local.migrate()
    yield local
    local.close()


def make_item(
    ts: str,
    feed: str = "feed/1",
    title: Optional[str] = None,
    url: Optional[str] = None,
) -> ContentItem:
    """Build a ContentItem whose article id is *ts*."""
    return ContentItem(
        id=f"tag:google.com,2005:reader/item/{ts}",
        timestamp_usec=ts,
        title=title or f"Article {ts}",
        content=f"<p>{ts}</p>",
        author="author",
        published_at=1_700_000_000,
        origin_stream_id=feed,
        origin_url="https://site.example.com",
        canonical_urls=[url] if url else [],
    )


class FakeReaderClient:
    """Minimal GReaderClient replacement for testing.

    Remote state lives in plain attributes. ``failures`` maps a method name
    to the exception it raises; ``edit_tag_failures`` maps an edit-tag label
    (added or removed) to the exception raised for it.
    """

    def __init__(
        self,
        tags: Optional[List[Tag]] = None,
        subscriptions: Optional[List[Subscription]] = None,
        unread_items: Optional[List[ContentItem]] = None,
        unread_ids: Optional[List[str]] = None,
        starred_items: Optional[List[ContentItem]] = None,
        starred_ids: Optional[List[str]] = None,
    ) -> None:
        self.tags = tags or []
        self.subscriptions = subscriptions or []
        self.unread_items = unread_items or []
        self.unread_ids = unread_ids or []
        self.starred_items = starred_items or []
        self.starred_ids = starred_ids or []
        self.failures: Dict[str, Exception] = {}
        self.edit_tag_failures: Dict[str, Exception] = {}
        self.calls: list[tuple] = []
        self.edit_tag_calls: list[tuple] = []
        self.auth_token: Optional[str] = None
        self.login_count = 0
        self.write_token_count = 0

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if name in self.failures:
            raise self.failures[name]

    def set_auth_token(self, token: Optional[str]) -> None:
        self.auth_token = token

    def login(self, username: str, password: str) -> str:
        self._record("login", username)
        self.login_count += 1
        return f"auth-{self.login_count}"

    def get_write_token(self) -> str:
        self._record("get_write_token")
        self.write_token_count += 1
        return f"write-{self.write_token_count}"

    def list_tags(self) -> List[Tag]:
        self._record("list_tags")
        return list(self.tags)

    def list_subscriptions(self) -> List[Subscription]:
        self._record("list_subscriptions")
        return list(self.subscriptions)

    def stream_contents(
        self,
        stream_id: str,
        exclude: Optional[str] = None,
        since: int = 0,
        limit: int = 0,
    ) -> List[ContentItem]:
        name = (
            "stream_contents_starred"
            if stream_id.endswith("/starred")
            else "stream_contents_unread"
        )
        self._record(name, stream_id, exclude, since, limit)
        if name == "stream_contents_starred":
            return list(self.starred_items)
        return list(self.unread_items)

    def stream_item_ids(
        self,
        include: str,
        exclude: Optional[str] = None,
        limit: int = 0,
    ) -> List[str]:
        name = (
            "stream_item_ids_starred"
            if include.endswith("/starred")
            else "stream_item_ids_unread"
        )
        self._record(name, include, exclude, limit)
        if name == "stream_item_ids_starred":
            return list(self.starred_ids)
        return list(self.unread_ids)

    def edit_tag(
        self,
        write_token: str,
        item_ids: List[str],
        add: Optional[str] = None,
        remove: Optional[str] = None,
    ) -> None:
        self.edit_tag_calls.append((write_token, list(item_ids), add, remove))
        for label in (add, remove):
            if label in self.edit_tag_failures:
                raise self.edit_tag_failures[label]


@pytest.fixture
def fake_client():
    return FakeReaderClient()
