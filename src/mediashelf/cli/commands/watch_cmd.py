from __future__ import annotations

import argparse
import threading

from mediashelf.application.services.indexing_service import build_indexing_service
from mediashelf.application.services.watch_service import WatchService
from mediashelf.cli.commands._common import require_initialized
from mediashelf.cli.commands.scan_cmd import report_table
from mediashelf.cli.context import CLIContext


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("watch", help="Scan, then re-index whenever the library changes")
    parser.add_argument("--debounce", type=float, default=None, help="Seconds of quiet before re-indexing")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    require_initialized(ctx)
    indexing_service = build_indexing_service(ctx.config)
    ctx.console.print(report_table(indexing_service.scan()))

    debounce = args.debounce if args.debounce and args.debounce > 0 else ctx.config.watch_debounce_seconds
    watcher = WatchService(ctx.config.library_root, indexing_service.scan, debounce_seconds=debounce)
    watcher.start()
    ctx.console.print(f"[green]Watching[/green] {ctx.config.library_root} (Ctrl+C to stop)")
    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        ctx.console.print("[yellow]Stopping watcher[/yellow]")
    finally:
        watcher.stop()
    return 0
