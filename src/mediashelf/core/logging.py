from __future__ import annotations

import logging

from rich.logging import RichHandler

_LEVELS = {0: logging.WARNING, 1: logging.INFO}


def configure_logging(verbosity: int = 0) -> None:
    """Install a single rich handler on the root logger.

    ``verbosity`` follows the CLI ``-v`` count: 0 warnings, 1 info, 2+ debug.
    """
    level = _LEVELS.get(verbosity, logging.DEBUG)
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)
    handler = RichHandler(show_path=False, rich_tracebacks=True, markup=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root.addHandler(handler)
    root.setLevel(level)
    # watchdog debug output only with -vvv
    logging.getLogger("watchdog").setLevel(logging.DEBUG if verbosity > 2 else logging.INFO)
