"""Authenticated session shared by the puller and the worker.

Tokens live in the store's reader row; ``ReaderSession`` is the single
object that reads, obtains and refreshes them, so neither the puller nor
the worker touches credentials.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from greader_sync.config import Config
from greader_sync.core.client import GReaderClient
from greader_sync.errors import UnauthorizedError
from greader_sync.store.sqlite import LocalStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ReaderSession:
    """Token lifecycle for one client/store pair.

    Args:
        config: Runtime config holding the credentials.
        client: Remote client; receives the auth token.
        store: Local store persisting the tokens.
    """

    def __init__(
        self, config: Config, client: GReaderClient, store: LocalStore
    ) -> None:
        self.config = config
        self.client = client
        self.store = store

    def authenticate(self) -> str:
        """Attach an auth token to the client, logging in if none is stored."""
        token = self.store.get_token()
        if token is None:
            logger.info("requesting auth token")
            token = self.client.login(
                self.config.username, self.config.password
            )
            self.store.set_token(token)
        self.client.set_auth_token(token)
        return token

    def write_token(self) -> str:
        """Return the stored write token, fetching one if missing."""
        token = self.store.get_write_token()
        if token is None:
            logger.info("requesting write token")
            token = self.client.get_write_token()
            self.store.set_write_token(token)
        return token

    def reauthenticate(self) -> str:
        """Drop stored tokens and log in again."""
        logger.warning("auth token rejected, logging in again")
        self.store.clear_tokens()
        self.client.set_auth_token(None)
        return self.authenticate()

    def refresh_write_token(self) -> str:
        """Log in again and fetch a new write token."""
        self.reauthenticate()
        return self.write_token()

    def call_with_reauth(self, func: Callable[[], T]) -> T:
        """Run *func*; on ``UnauthorizedError`` log in again and retry once."""
        try:
            return func()
        except UnauthorizedError:
            self.reauthenticate()
            return func()
