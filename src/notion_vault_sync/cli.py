"""Command-line interface for notion-vault-sync.

Commands:

- ``sync [CONFIG]`` -- run one sync configuration, or every enabled one.
- ``status`` -- show configurations with their last sync and last run.
- ``databases`` -- list databases shared with the integration.
- ``schema DATABASE_ID`` -- show a database's properties and suggested mappings.
- ``watch`` -- run every enabled configuration periodically.
- ``init`` -- write a starter ``.notion_sync/config.yml``.

Exit codes: 0 success, 1 some items or configurations failed,
2 configuration error, 3 Notion API error.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from . import __version__
from .config import Config, load_config
from .config_loader import ensure_config, load_hierarchical_config
from .config_schema import SyncDirection, UnifiedConfig, build_config
from .core.client import NotionClient
from .exceptions import ConfigurationError, RemoteAPIError, SyncRunError
from .logger import setup_logging
from .sync.engine import build_engine
from .sync.properties import field_type_for, suggest_local_property
from .sync.reporter import (
    format_conflict_diff,
    format_sync_all,
    format_sync_report,
    report_to_json,
)
from .sync.scheduler import AutoSyncScheduler
from .sync.state import SyncState
from .validators import normalize_database_id, validate_database_id

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_CONFIG_ERROR = 2
EXIT_REMOTE_ERROR = 3


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="notion-vault-sync",
        description="Synchronize Notion databases with a Markdown vault",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--token",
        help="Notion integration token (default: NOTION_TOKEN or config file)",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument(
        "--json", action="store_true", help="Print JSON instead of text"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Run sync configurations")
    sync_parser.add_argument(
        "config",
        nargs="?",
        help="Id or name of one configuration (default: every enabled one)",
    )
    direction = sync_parser.add_mutually_exclusive_group()
    direction.add_argument(
        "--direction",
        choices=[d.value for d in SyncDirection],
        help="Override the configured direction",
    )
    direction.add_argument(
        "--pull",
        dest="direction",
        action="store_const",
        const=SyncDirection.PULL.value,
        help="Shortcut for --direction pull",
    )
    direction.add_argument(
        "--push",
        dest="direction",
        action="store_const",
        const=SyncDirection.PUSH.value,
        help="Shortcut for --direction push",
    )

    subparsers.add_parser("status", help="Show sync configurations and state")
    subparsers.add_parser("databases", help="List databases shared with the integration")

    schema_parser = subparsers.add_parser(
        "schema", help="Show a database's properties and suggested mappings"
    )
    schema_parser.add_argument("database_id", help="Notion database id")

    watch_parser = subparsers.add_parser(
        "watch", help="Run every enabled configuration periodically"
    )
    watch_parser.add_argument(
        "--interval",
        type=float,
        help="Minutes between runs (default: sync.sync_interval)",
    )
    watch_parser.add_argument(
        "--max-runs", type=int, help="Stop after this many runs"
    )

    init_parser = subparsers.add_parser("init", help="Write a starter config file")
    init_parser.add_argument(
        "--output", "-o", type=Path, help="Config file path (default: .notion_sync/config.yml)"
    )

    return parser


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_unified() -> UnifiedConfig:
    return build_config(load_hierarchical_config())


def _client_config(args: argparse.Namespace, unified: UnifiedConfig) -> Config:
    fallbacks = {
        k: v for k, v in unified.notion.model_dump().items() if v is not None
    }
    return load_config(token=args.token, debug=args.debug, yaml_fallbacks=fallbacks)


def _emit(args: argparse.Namespace, text: str, data: Any) -> None:
    if args.json:
        print(json.dumps(data, indent=2, default=str))
    else:
        print(text)


def _format_millis(millis: int) -> str:
    if not millis:
        return "never"
    dt = datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    return dt.strftime("%Y-%m-%d %H:%M UTC")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_sync(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    client = NotionClient(_client_config(args, unified))
    engine, state = build_engine(client, unified.sync)
    configs = state.apply_to(unified.sync.configs)

    if args.config:
        config = next((c for c in configs if args.config in (c.id, c.name)), None)
        if config is None:
            raise ConfigurationError(
                f"Sync configuration '{args.config}' not found", field="configs"
            )
        report = engine.run(config, args.direction)
        state.record_report(report)
        _emit(args, format_sync_report(report), report_to_json(report))
        for conflict in engine.pending_conflicts:
            print(format_conflict_diff(conflict), file=sys.stderr)
        return EXIT_FAILURES if report.errors else EXIT_OK

    if not configs:
        raise ConfigurationError(
            "No sync configurations defined; run 'notion-vault-sync init'",
            field="configs",
        )
    result = engine.sync_all(configs, args.direction)
    for report in result.reports:
        state.record_report(report)
    _emit(
        args,
        format_sync_all(result),
        {
            "reports": [report_to_json(r) for r in result.reports],
            "failures": [f.model_dump() for f in result.failures],
        },
    )
    failed = result.failures or any(r.errors for r in result.reports)
    return EXIT_FAILURES if failed else EXIT_OK


def _cmd_status(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    state = SyncState(Path(unified.sync.state_dir).expanduser())
    stored = state.load()["configs"]
    configs = state.apply_to(unified.sync.configs)

    lines = [
        f"Vault: {unified.sync.vault_root}",
        f"Conflict resolution: {unified.sync.conflict_resolution}",
        f"Auto-sync: {'every %d min' % unified.sync.sync_interval if unified.sync.auto_sync else 'off'}",
        "",
    ]
    data = []
    for config in configs:
        last_run = (stored.get(config.id) or {}).get("last_run")
        status = "" if config.enabled else " (disabled)"
        lines.append(
            f"{config.name} [{config.id}]{status}: {config.direction.value} "
            f"{config.database_id} <-> {config.folder}, "
            f"last sync {_format_millis(config.last_sync)}"
        )
        data.append(
            {
                "id": config.id,
                "name": config.name,
                "enabled": config.enabled,
                "direction": config.direction.value,
                "last_sync": config.last_sync,
                "last_run": last_run,
            }
        )
    if not configs:
        lines.append("No sync configurations defined.")
    _emit(args, "\n".join(lines), {"configs": data})
    return EXIT_OK


def _cmd_databases(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    client = NotionClient(_client_config(args, unified))
    databases = client.list_databases()
    text = "\n".join(f"{db.title}  {db.id}" for db in databases) or (
        "No databases are shared with the integration."
    )
    _emit(args, text, [db.model_dump() for db in databases])
    return EXIT_OK


def _cmd_schema(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    database_id = normalize_database_id(args.database_id)
    is_valid, message = validate_database_id(database_id)
    if not is_valid:
        raise ConfigurationError(message, field="database_id")

    client = NotionClient(_client_config(args, unified))
    schema = client.get_record_schema(database_id)
    rows = [
        {
            "remote_property": name,
            "notion_type": notion_type,
            "local_property": suggest_local_property(name),
            "type": field_type_for(notion_type),
        }
        for name, notion_type in sorted(schema.items())
    ]
    lines = [
        f"{r['remote_property']} ({r['notion_type']}) -> "
        f"{r['local_property']} [{r['type']}]"
        for r in rows
    ]
    _emit(args, "\n".join(lines), rows)
    return EXIT_OK


def _cmd_watch(args: argparse.Namespace, unified: UnifiedConfig) -> int:
    client = NotionClient(_client_config(args, unified))
    engine, state = build_engine(client, unified.sync)

    def on_result(result) -> None:
        for report in result.reports:
            state.record_report(report)
        _emit(
            args,
            format_sync_all(result),
            {
                "reports": [report_to_json(r) for r in result.reports],
                "failures": [f.model_dump() for f in result.failures],
            },
        )

    scheduler = AutoSyncScheduler(
        engine,
        lambda: state.apply_to(unified.sync.configs),
        interval_minutes=args.interval or unified.sync.sync_interval,
        on_result=on_result,
    )
    print(
        f"Syncing every {scheduler.interval / 60:g} minutes. Press Ctrl+C to stop.",
        file=sys.stderr,
    )
    asyncio.run(scheduler.run_forever(max_runs=args.max_runs))
    return EXIT_OK


def _cmd_init(args: argparse.Namespace) -> int:
    path = ensure_config(args.output)
    print(f"Config file: {path}")
    return EXIT_OK


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    load_dotenv()

    if args.command == "init":
        setup_logging(mode="cli", debug=args.debug, log_file=args.log_file)
        return _cmd_init(args)

    try:
        unified = _load_unified()
    except ValueError as exc:
        setup_logging(mode="cli", debug=args.debug, log_file=args.log_file)
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    setup_logging(
        mode="cli",
        debug=args.debug,
        log_file=args.log_file or unified.logging.file,
        level=unified.logging.level,
    )

    try:
        match args.command:
            case "sync":
                return _cmd_sync(args, unified)
            case "status":
                return _cmd_status(args, unified)
            case "databases":
                return _cmd_databases(args, unified)
            case "schema":
                return _cmd_schema(args, unified)
            case "watch":
                return _cmd_watch(args, unified)
            case _:
                parser.error(f"unknown command: {args.command}")
    except (ConfigurationError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    except SyncRunError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_FAILURES
    except RemoteAPIError as exc:
        print(f"error ({exc.category}): {exc}", file=sys.stderr)
        return EXIT_REMOTE_ERROR
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_OK
    return EXIT_OK


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
