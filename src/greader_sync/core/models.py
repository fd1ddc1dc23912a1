"""Value models returned by ``GReaderClient``.

The Google Reader API encodes article state as stream/tag ids; the
constants below name the ones the sync layer relies on.
"""

from __future__ import annotations

from pydantic import BaseModel

STATE_PREFIX = "user/-/state/com.google/"
STATE_READ = "user/-/state/com.google/read"
STATE_READING_LIST = "user/-/state/com.google/reading-list"
STATE_KEPT_UNREAD = "user/-/state/com.google/kept-unread"
STATE_STARRED = "user/-/state/com.google/starred"
LABEL_MARKER = "user/-/label"


class Category(BaseModel):
    id: str
    label: str = ""

    model_config = {"frozen": True}


class Subscription(BaseModel):
    """One feed from ``subscription/list``."""

    id: str
    title: str = ""
    url: str = ""
    html_url: str = ""
    categories: list[Category] = []

    model_config = {"frozen": True}

    @property
    def label_ids(self) -> list[str]:
        """Category ids that are user labels (folders)."""
        return [c.id for c in self.categories if LABEL_MARKER in c.id]


class Tag(BaseModel):
    id: str
    type: str = ""

    model_config = {"frozen": True}

    @property
    def is_folder(self) -> bool:
        """True for labels and for the starred state; other states are skipped."""
        if self.id.startswith(STATE_PREFIX):
            return self.id.endswith("/state/com.google/starred")
        return True


class ContentItem(BaseModel):
    """One article from ``stream/contents``.

    Attributes:
        id: Long-form item id (``tag:google.com,2005:reader/item/...``).
        timestamp_usec: Microsecond timestamp the service uses as the
            short item id; this is what ``stream/items/ids`` returns.
        published_at: Publication time, epoch seconds.
        origin_stream_id: Feed id the item belongs to.
        origin_url: HTML URL of the originating site.
        canonical_urls: Article links, most specific first.
    """

    id: str
    timestamp_usec: str = ""
    title: str = ""
    content: str = ""
    author: str = ""
    published_at: int = 0
    origin_stream_id: str = ""
    origin_url: str = ""
    origin_title: str = ""
    categories: list[str] = []
    canonical_urls: list[str] = []

    model_config = {"frozen": True}

    @property
    def article_id(self) -> str:
        return self.timestamp_usec or self.id

    @property
    def href(self) -> str:
        if self.canonical_urls:
            return self.canonical_urls[0]
        return self.origin_url
