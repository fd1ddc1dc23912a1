"""Pydantic models describing one reconciliation pass.

- ``SyncStep``: Enum of the pass steps, in execution order.
- ``StepResult``: What one step fetched and stored.
- ``SyncReport``: Aggregate results for a full pass.

All models are frozen (immutable).
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class SyncStep(str, Enum):
    """Steps of a reconciliation pass."""

    TAGS = "tags"
    SUBSCRIPTIONS = "subscriptions"
    UNREAD_ITEMS = "unread_items"
    UNREAD_STATUS = "unread_status"
    STARRED_ITEMS = "starred_items"
    STARRED_STATUS = "starred_status"


class StepResult(BaseModel):
    """Outcome of one step.

    Attributes:
        step: Which step ran.
        fetched: Number of remote records received.
        stored: Number of local rows created (articles, folders, feeds).
        removed: Number of local rows deleted (feed purge only).
    """

    step: SyncStep
    fetched: int = 0
    stored: int = 0
    removed: int = 0

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for a successful pass.

    Attributes:
        started_at: ISO 8601 timestamp when the pass started.
        completed_at: ISO 8601 timestamp when it finished.
        previous_checkpoint: ``last_sync_time`` before the pass (0 on first run).
        checkpoint: ``last_sync_time`` persisted by the pass.
        steps: Per-step results in execution order.
    """

    started_at: str
    completed_at: str
    previous_checkpoint: int
    checkpoint: int
    steps: list[StepResult] = []

    model_config = {"frozen": True}

    def step(self, step: SyncStep) -> StepResult | None:
        for result in self.steps:
            if result.step == step:
                return result
        return None

    @property
    def new_articles(self) -> int:
        """Articles stored for the first time during this pass."""
        return sum(
            r.stored
            for r in self.steps
            if r.step in (SyncStep.UNREAD_ITEMS, SyncStep.STARRED_ITEMS)
        )

    def summary(self) -> str:
        """Format a one-paragraph summary of the pass."""
        tags = self.step(SyncStep.TAGS)
        subs = self.step(SyncStep.SUBSCRIPTIONS)
        unread = self.step(SyncStep.UNREAD_STATUS)
        starred = self.step(SyncStep.STARRED_STATUS)
        lines = [
            "Sync report",
            f"  Folders:       {tags.fetched if tags else 0}",
            f"  Feeds:         {subs.fetched if subs else 0}"
            f" ({subs.removed if subs else 0} removed)",
            f"  New articles:  {self.new_articles}",
            f"  Unread:        {unread.fetched if unread else 0}",
            f"  Starred:       {starred.fetched if starred else 0}",
        ]
        return "\n".join(lines)
