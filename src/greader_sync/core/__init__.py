"""Remote Google Reader API client and async helpers."""

from .async_utils import gather_isolated, run_sync
from .client import GReaderClient

__all__ = ["GReaderClient", "gather_isolated", "run_sync"]
