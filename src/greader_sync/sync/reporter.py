"""Sync report formatting.

- ``format_sync_report`` -- human-readable post-sync summary.
- ``format_status`` -- local cache totals for ``greader-sync status``.
- ``report_to_json`` -- structured dict for machine consumers.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import SyncReport

_STEP_LABELS = {
    "tags": "Folders",
    "subscriptions": "Feeds",
    "unread_items": "Unread articles",
    "unread_status": "Unread ids",
    "starred_items": "Starred articles",
    "starred_status": "Starred ids",
}


def _format_epoch(ts: int) -> str:
    if not ts:
        return "never"
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime(
        "%Y-%m-%d %H:%M:%S UTC"
    )


def format_sync_report(report: SyncReport) -> str:
    """Format a completed pass as human-readable text.

    Args:
        report: The completed sync report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = [
        "Sync complete",
        f"Started: {report.started_at}",
        f"Completed: {report.completed_at}",
        f"Window: since {_format_epoch(report.previous_checkpoint)}",
        "",
    ]
    for result in report.steps:
        label = _STEP_LABELS.get(result.step.value, result.step.value)
        line = f"  {label + ':':<18}{result.fetched} fetched"
        if result.stored:
            line += f", {result.stored} new"
        if result.removed:
            line += f", {result.removed} removed"
        lines.append(line)

    lines.append("")
    lines.append(f"New articles: {report.new_articles}")
    return "\n".join(lines)


def format_status(counts: dict[str, int], last_sync: int | None) -> str:
    """Format ``LocalStore.counts()`` for display."""
    return "\n".join(
        [
            f"Last sync: {_format_epoch(last_sync or 0)}",
            f"Feeds:     {counts.get('feeds', 0)}",
            f"Articles:  {counts.get('articles', 0)}",
            f"Unread:    {counts.get('unread', 0)}",
            f"Starred:   {counts.get('starred', 0)}",
            f"Pending:   {counts.get('pending', 0)}",
        ]
    )


def report_to_json(report: SyncReport) -> dict:
    """Convert a report into a JSON-serialisable dict."""
    return {
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "previous_checkpoint": report.previous_checkpoint,
        "checkpoint": report.checkpoint,
        "new_articles": report.new_articles,
        "steps": [
            {
                "step": r.step.value,
                "fetched": r.fetched,
                "stored": r.stored,
                "removed": r.removed,
            }
            for r in report.steps
        ],
    }
