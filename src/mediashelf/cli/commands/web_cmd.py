from __future__ import annotations

import argparse

import uvicorn

from mediashelf.cli.context import CLIContext
from mediashelf.web.app import create_app


def register(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    parser = subparsers.add_parser("web", help="Scan, watch the library and serve the shelf UI")
    parser.add_argument("--host", default=None, help="Bind address (default: HOST or 127.0.0.1)")
    parser.add_argument("--port", type=int, default=None, help="Port (default: PORT or 4000)")
    parser.add_argument("--no-watch", action="store_true", help="Serve without the filesystem watcher")
    parser.set_defaults(handler=run)


def run(args: argparse.Namespace, ctx: CLIContext) -> int:
    app = create_app(ctx.config, scan_on_startup=True, watch=not args.no_watch)
    uvicorn.run(app, host=args.host or ctx.config.host, port=args.port or ctx.config.port)
    return 0
