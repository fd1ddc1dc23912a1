"""Synchronisation between the remote service and the local store.

Architecture
------------
Pulling and pushing are deliberately separate:

- ``puller``   -- ``Puller``: one reconciliation pass (remote -> local),
  advancing the checkpoint only on full success.
- ``worker``   -- ``OutboxWorker``: asyncio loop delivering queued local
  status changes (local -> remote), one lane per action kind.
- ``session``  -- ``ReaderSession``: auth/write token lifecycle.
- ``models``   -- ``SyncStep``, ``StepResult``, ``SyncReport``.
- ``reporter`` -- human-readable and JSON report formatting.

Usage example
-------------
::

    from greader_sync.core.client import GReaderClient
    from greader_sync.store import LocalStore
    from greader_sync.sync import Puller, ReaderSession, format_sync_report

    store = LocalStore(config.db_path)
    store.migrate()
    client = GReaderClient(config)
    session = ReaderSession(config, client, store)
    session.authenticate()

    report = session.call_with_reauth(Puller(client, store).run)
    print(format_sync_report(report))
"""

from .models import StepResult, SyncReport, SyncStep
from .puller import Puller
from .reporter import format_status, format_sync_report, report_to_json
from .session import ReaderSession
from .worker import OutboxWorker, host_reachable

__all__ = [
    "OutboxWorker",
    "Puller",
    "ReaderSession",
    "StepResult",
    "SyncReport",
    "SyncStep",
    "format_status",
    "format_sync_report",
    "host_reachable",
    "report_to_json",
]
