"""Logging setup for the holorag CLI.

Library modules only create ``logging.getLogger(__name__)`` loggers; the CLI
calls configure_logging() once to route them through rich on stderr.
"""

from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

_NOISY_LOGGERS = ("LiteLLM", "LiteLLM Router", "LiteLLM Proxy", "httpx", "httpcore", "urllib3")


def configure_logging(verbose: bool = False) -> None:
    """Install a RichHandler on the root logger.

    Level: DEBUG with *verbose*, else ``HOLORAG_LOG_LEVEL`` (default INFO).
    Third-party HTTP/LLM loggers are held at WARNING.
    """
    level_name = "DEBUG" if verbose else os.environ.get("HOLORAG_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=verbose,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    root = logging.getLogger()
    for existing in list(root.handlers):
        if isinstance(existing, RichHandler):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
