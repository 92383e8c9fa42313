from __future__ import annotations

import argparse

from rich.table import Table

from mediashelf.application.services.indexing_service import ScanReport, build_indexing_service
from mediashelf.cli.commands._common import require_initialized
from mediashelf.cli.context import CLIContext


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("scan", help="Index the library once and refresh thumbnails")
    parser.set_defaults(handler=run)


def report_table(report: ScanReport) -> Table:
    table = Table(title="Scan Summary")
    table.add_column("Metric")
    table.add_column("Count", justify="right")
    for key, value in report.as_dict().items():
        table.add_row(key, str(value))
    return table


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    require_initialized(ctx)
    report = build_indexing_service(ctx.config).scan()
    ctx.console.print(report_table(report))
    return 0
