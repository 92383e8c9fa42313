from __future__ import annotations

import argparse
import json

from rich.table import Table

from mediashelf.application.services.user_service import UserService
from mediashelf.cli.commands._common import require_initialized
from mediashelf.cli.context import CLIContext
from mediashelf.infrastructure.db.repos.user_repo import UserRepo


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("users", help="List the users defined in users.json")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    require_initialized(ctx)
    users = UserService(ctx.config.users_file, UserRepo(ctx.config.db_path)).load_users()

    table = Table(title=f"Users ({len(users)})")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Preferences", overflow="fold")
    for user in users:
        table.add_row(user.id, user.name, json.dumps(user.preferences, sort_keys=True))

    ctx.console.print(table)
    ctx.console.print(f"Edit {ctx.config.users_file} to change users.")
    return 0
