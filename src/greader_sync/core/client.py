import logging
import threading
import time
from typing import Any
from urllib.parse import quote

import requests

from ..config import Config
from ..errors import RemoteError, UnauthorizedError
from .models import Category, ContentItem, Subscription, Tag

logger = logging.getLogger(__name__)

API_PREFIX = "/reader/api/0"


class GReaderClient:
    """Blocking client for the Google Reader API (FreshRSS, Miniflux, ...).

    One ``requests.Session`` is kept per thread so the outbox worker can
    call the client from several threads at once.
    """

    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()
        self._auth_token: str | None = None
        self.base_url = config.server_url.rstrip("/")

    @property
    def session(self) -> requests.Session:
        """Session bound to the calling thread."""
        return self._get_session()

    @property
    def auth_token(self) -> str | None:
        return self._auth_token

    def set_auth_token(self, token: str | None) -> None:
        """Attach *token* to every following request (``None`` detaches)."""
        self._auth_token = token

    def _get_session(self) -> requests.Session:
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.verify = not self.config.insecure
        return session

    def _headers(self) -> dict[str, str]:
        if self._auth_token:
            return {"Authorization": f"GoogleLogin auth={self._auth_token}"}
        return {}

    def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        data: Any = None,
    ) -> requests.Response:
        """
        Send a request and map failures onto the error taxonomy.

        GET requests carry a ``ck`` cache-buster. POST bodies are sent
        form-encoded; pass a list of pairs to repeat a key.
        """
        url = f"{self.base_url}{endpoint}"
        query = dict(params or {})
        if method == "GET":
            query["ck"] = int(time.time() * 1000)

        try:
            response = self._get_session().request(
                method,
                url,
                params=query or None,
                data=data,
                headers=self._headers(),
                timeout=self.config.timeout,
            )
        except requests.RequestException as exc:
            raise RemoteError(f"request failed: {exc}") from exc

        if response.status_code == 401:
            raise UnauthorizedError(f"{method} {endpoint}: unauthorized")
        if response.status_code != 200:
            raise RemoteError(
                f"API error: status {response.status_code}: {response.text}"
            )
        return response

    def _get_json(
        self, endpoint: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        response = self._request("GET", endpoint, params=params)
        try:
            payload = response.json()
        except ValueError as exc:
            raise RemoteError(f"failed to decode response: {exc}") from exc
        if not isinstance(payload, dict):
            raise RemoteError(
                f"failed to decode response: expected object, got {type(payload).__name__}"
            )
        if payload.get("error"):
            raise RemoteError(str(payload["error"]))
        return payload

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def login(self, username: str, password: str) -> str:
        """
        Exchange credentials for an auth token.

        Returns:
            The token from the ``Auth=`` line of the response body.

        Raises:
            UnauthorizedError: If credentials are rejected or the body has
                no ``Auth=`` line.
        """
        response = self._request(
            "POST",
            "/accounts/ClientLogin",
            data={"Email": username, "Passwd": password},
        )
        for line in response.text.splitlines():
            if line.startswith("Auth="):
                return line[len("Auth=") :].strip()
        raise UnauthorizedError("login response has no Auth token")

    def get_write_token(self) -> str:
        """Fetch the short-lived token required by edit endpoints."""
        response = self._request("GET", f"{API_PREFIX}/token")
        return response.text.strip()

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def list_subscriptions(self) -> list[Subscription]:
        payload = self._get_json(
            f"{API_PREFIX}/subscription/list", {"output": "json"}
        )
        return [
            Subscription(
                id=sub.get("id", ""),
                title=sub.get("title") or "",
                url=sub.get("url") or "",
                html_url=sub.get("htmlUrl") or "",
                categories=[
                    Category(id=c.get("id", ""), label=c.get("label") or "")
                    for c in sub.get("categories") or []
                ],
            )
            for sub in payload.get("subscriptions") or []
        ]

    def list_tags(self) -> list[Tag]:
        payload = self._get_json(f"{API_PREFIX}/tag/list", {"output": "json"})
        return [
            Tag(id=tag.get("id", ""), type=tag.get("type") or "")
            for tag in payload.get("tags") or []
        ]

    # ------------------------------------------------------------------
    # Streams
    # ------------------------------------------------------------------

    def stream_contents(
        self,
        stream_id: str,
        exclude: str | None = None,
        since: int = 0,
        limit: int = 0,
    ) -> list[ContentItem]:
        """
        Fetch article bodies of a stream, newest first.

        Args:
            stream_id: Stream to read, e.g. the reading-list state.
            exclude: Drop items carrying this state/tag (``xt``).
            since: Only items newer than this epoch second (``ot``); 0 = no bound.
            limit: Maximum number of items (``n``); 0 = server default.
        """
        params: dict[str, Any] = {"r": "n"}
        if exclude:
            params["xt"] = exclude
        if since:
            params["ot"] = since
        if limit:
            params["n"] = limit

        payload = self._get_json(
            f"{API_PREFIX}/stream/contents/{quote(stream_id, safe='/-:')}",
            params,
        )
        return [_parse_item(item) for item in payload.get("items") or []]

    def stream_item_ids(
        self,
        include: str,
        exclude: str | None = None,
        limit: int = 0,
    ) -> list[str]:
        """Fetch only the item ids of a stream."""
        params: dict[str, Any] = {"s": include, "r": "n"}
        if exclude:
            params["xt"] = exclude
        if limit:
            params["n"] = limit

        payload = self._get_json(f"{API_PREFIX}/stream/items/ids", params)
        return [
            str(ref["id"])
            for ref in payload.get("itemRefs") or []
            if ref.get("id") is not None
        ]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def edit_tag(
        self,
        write_token: str,
        item_ids: list[str],
        add: str | None = None,
        remove: str | None = None,
    ) -> None:
        """
        Add and/or remove a state label on several items at once.

        Raises:
            ValueError: If no items or no label is given.
        """
        if not item_ids:
            raise ValueError("edit_tag requires at least one item id")
        if not add and not remove:
            raise ValueError("edit_tag requires a label to add or remove")

        form: list[tuple[str, str]] = [("T", write_token)]
        if add:
            form.append(("a", add))
        if remove:
            form.append(("r", remove))
        form.extend(("i", item_id) for item_id in item_ids)

        self._request("POST", f"{API_PREFIX}/edit-tag", data=form)

    def edit_subscription(
        self,
        write_token: str,
        stream_id: str,
        action: str,
        title: str | None = None,
        add: str | None = None,
        remove: str | None = None,
    ) -> str:
        """
        Subscribe, unsubscribe or edit a feed.

        Args:
            stream_id: ``feed/<id>`` or ``feed/<url>``.
            action: ``subscribe``, ``unsubscribe`` or ``edit``.
            title: New title.
            add: Category (label) id to add the feed to.
            remove: Category (label) id to remove the feed from.
        """
        if action not in ("subscribe", "unsubscribe", "edit"):
            raise ValueError(f"Unsupported subscription action: {action}")

        form: dict[str, str] = {"T": write_token, "s": stream_id, "ac": action}
        if title:
            form["t"] = title
        if add:
            form["a"] = add
        if remove:
            form["r"] = remove

        response = self._request(
            "POST", f"{API_PREFIX}/subscription/edit", data=form
        )
        return response.text


def _parse_item(item: dict[str, Any]) -> ContentItem:
    origin = item.get("origin") or {}
    summary = item.get("summary") or item.get("content") or {}
    return ContentItem(
        id=str(item.get("id", "")),
        timestamp_usec=str(item.get("timestampUsec") or ""),
        title=item.get("title") or "",
        content=summary.get("content") or "",
        author=item.get("author") or "",
        published_at=int(item.get("published") or 0),
        origin_stream_id=origin.get("streamId") or "",
        origin_url=origin.get("htmlUrl") or "",
        origin_title=origin.get("title") or "",
        categories=[str(c) for c in item.get("categories") or []],
        canonical_urls=[
            link["href"]
            for link in item.get("canonical") or []
            if link.get("href")
        ],
    )
