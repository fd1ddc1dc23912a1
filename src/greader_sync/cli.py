"""Command line entry point for greader-sync."""

import argparse
import asyncio
import json
import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import yaml
from dotenv import load_dotenv

from . import __version__
from .config import Config, load_config
from .config_loader import init_config, load_hierarchical_config, state_file
from .config_schema import FileConfig, build_config
from .core.client import GReaderClient
from .errors import GReaderSyncError
from .logger import setup_logging
from .store import ActionKind, LocalStore
from .sync import (
    OutboxWorker,
    Puller,
    ReaderSession,
    format_status,
    format_sync_report,
    host_reachable,
    report_to_json,
)

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    print(msg, file=sys.stderr, flush=True)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def _load_file_config(args: argparse.Namespace) -> tuple[FileConfig, Path | None]:
    explicit = Path(args.config).expanduser() if args.config else None
    raw, path = load_hierarchical_config(explicit)
    return build_config(raw), path


def _load_runtime_config(args: argparse.Namespace) -> Config:
    """Merge CLI args, env vars, .env and the YAML file into a ``Config``."""
    file_config, path = _load_file_config(args)
    config = load_config(
        url=args.url,
        username=args.username,
        password=args.password,
        insecure=args.insecure,
        debug=args.debug,
        file_config=file_config,
        config_dir=path.parent if path else None,
    )
    logger.info(
        "Configuration loaded from: %s", path or "environment variables"
    )
    return config


def _resolve_db_path(args: argparse.Namespace) -> str:
    """Database location for commands that never talk to the server."""
    file_config, _ = _load_file_config(args)
    db_path = os.getenv("GREADER_DB_PATH") or file_config.sync.db_path
    if db_path:
        return os.path.expanduser(db_path)
    return str(state_file("greader_sync.sqlite"))


def _apply_log_level(config: Config, debug: bool) -> None:
    if debug or "LOG_LEVEL" in os.environ:
        return
    level = getattr(logging, config.log_level.upper(), None)
    if isinstance(level, int):
        logging.getLogger().setLevel(level)


@dataclass
class AppContext:
    config: Config
    client: GReaderClient
    store: LocalStore
    session: ReaderSession


@contextmanager
def open_app(config: Config) -> Iterator[AppContext]:
    """Open the store and an authenticated client; close the store on exit."""
    store = LocalStore(config.db_path)
    try:
        store.migrate()
        client = GReaderClient(config)
        session = ReaderSession(config, client, store)
        session.authenticate()
        yield AppContext(config, client, store, session)
    finally:
        store.close()


@contextmanager
def open_store(db_path: str) -> Iterator[LocalStore]:
    store = LocalStore(db_path)
    try:
        store.migrate()
        yield store
    finally:
        store.close()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_init(args: argparse.Namespace) -> int:
    target = Path(args.config).expanduser() if args.config else None
    path = init_config(target)
    print(f"Created {path}")
    print("Edit server.url and server.username, then run: greader-sync sync")
    return 0


def cmd_sync(args: argparse.Namespace) -> int:
    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=args.log_file,
        debug_format=args.log_format,
    )
    config = _load_runtime_config(args)
    _apply_log_level(config, args.debug)

    with open_app(config) as app:
        puller = Puller(app.client, app.store, page_size=config.page_size)
        report = app.session.call_with_reauth(puller.run)

    if args.json:
        print(json.dumps(report_to_json(report), indent=2))
    else:
        print(format_sync_report(report))
    return 0


def cmd_mark(args: argparse.Namespace) -> int:
    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=args.log_file,
        debug_format=args.log_format,
    )
    kind = ActionKind(args.action)
    with open_store(_resolve_db_path(args)) as store:
        store.change_article_status(args.article_id, kind)
        pending = store.count_pending_actions()
    print(f"Marked {args.article_id} as {kind.value} ({pending} pending)")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=args.log_file,
        debug_format=args.log_format,
    )
    with open_store(_resolve_db_path(args)) as store:
        counts = store.counts()
        last_sync = store.get_last_sync_time()
    print(format_status(counts, last_sync))
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    config = _load_runtime_config(args)
    log_file = args.log_file or config.log_file
    setup_logging(
        mode="daemon",
        debug=config.debug,
        log_file=log_file,
        debug_format=args.log_format,
    )
    _apply_log_level(config, config.debug)
    _stderr_print(f"greader-sync worker running, logging to {log_file}")

    with open_app(config) as app:
        worker = OutboxWorker(
            app.client,
            app.store,
            app.session.call_with_reauth(app.session.write_token),
            interval=config.worker_interval,
            batch_size=config.worker_batch_size,
            is_online=host_reachable(config.server_url),
            refresh_token=app.session.refresh_write_token,
        )
        asyncio.run(worker.run())
    return 0


COMMANDS = {
    "init": cmd_init,
    "sync": cmd_sync,
    "mark": cmd_mark,
    "status": cmd_status,
    "run": cmd_run,
}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="greader-sync",
        description="Offline cache and sync for Google Reader API services",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Write a starter config to ~/.config/greader_sync/config.yml
  greader-sync init

  # Pull subscriptions, articles and status once
  greader-sync sync

  # Queue a status change for the worker
  greader-sync mark 1700000000000001 read

  # Deliver queued changes every few seconds until interrupted
  greader-sync run --log-file /tmp/greader-sync.log
        """,
    )
    parser.add_argument(
        "--config",
        help="Config file path (default: discovered, see GREADER_SYNC_CONFIG)",
    )
    parser.add_argument(
        "--url",
        help="Override service URL (takes precedence over GREADER_URL and config files)",
    )
    parser.add_argument("--username", help="Override login name")
    parser.add_argument(
        "--password",
        help="Override password (visible in process list -- prefer GREADER_PASSWORD)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log line format (default: text)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"greader-sync version {__version__}",
    )

    sub = parser.add_subparsers(dest="command")
    sub.add_parser("init", help="Write a starter config file")
    sync_parser = sub.add_parser("sync", help="Run one reconciliation pass")
    sync_parser.add_argument(
        "--json", action="store_true", help="Print the report as JSON"
    )
    mark_parser = sub.add_parser(
        "mark", help="Change an article's status and queue it for delivery"
    )
    mark_parser.add_argument("article_id")
    mark_parser.add_argument(
        "action", choices=[kind.value for kind in ActionKind]
    )
    sub.add_parser("status", help="Show local cache totals")
    sub.add_parser("run", help="Run the outbox worker (default)")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, dispatch the command and return the exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    command = args.command or "run"

    load_dotenv()

    try:
        return COMMANDS[command](args)
    except (
        GReaderSyncError,
        ValueError,
        OSError,
        yaml.YAMLError,
    ) as e:
        logger.error("%s failed: %s", command, e)
        _stderr_print(f"ERROR: {e}")
        return 1
    except KeyboardInterrupt:
        _stderr_print("\nInterrupted.")
        return 0


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
