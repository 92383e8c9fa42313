from __future__ import annotations

import argparse

from rich.table import Table

from mediashelf.cli.commands._common import require_initialized
from mediashelf.cli.context import CLIContext
from mediashelf.domain.models.item import ITEM_SORTS, ITEM_TYPES, MAX_PAGE_SIZE, ItemQuery
from mediashelf.infrastructure.db.repos.item_repo import ItemRepo


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("items", help="List indexed items")
    parser.add_argument("--type", choices=ITEM_TYPES)
    parser.add_argument("--folder")
    parser.add_argument("--query", "-q")
    parser.add_argument("--sort", choices=ITEM_SORTS, default="title")
    parser.add_argument("--limit", type=int, default=50)
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    require_initialized(ctx)

    query = ItemQuery(
        type=args.type,
        folder=args.folder,
        q=args.query,
        sort=args.sort,
        limit=min(args.limit, MAX_PAGE_SIZE),
    )
    items = ItemRepo(ctx.config.db_path).search(query)

    table = Table(title=f"Items ({len(items)})")
    table.add_column("ID", justify="right")
    table.add_column("Type")
    table.add_column("Title", overflow="fold")
    table.add_column("Path", overflow="fold")
    table.add_column("Pages", justify="right")
    table.add_column("Size", justify="right")

    for item in items:
        table.add_row(
            str(item.id),
            item.type,
            item.title,
            item.path,
            "" if item.pages is None else str(item.pages),
            str(item.size),
        )

    ctx.console.print(table)
    return 0
