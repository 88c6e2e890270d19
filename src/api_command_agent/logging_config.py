"""Logging setup for the CLI.

Library modules only create ``logging.getLogger(__name__)`` loggers; the
entry point decides where records go.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

NOISY_LOGGERS = [
    "LiteLLM",
    "litellm",
    "httpx",
    "httpcore",
    "asyncio",
]


def setup_logging(level: str | int = "WARNING") -> None:
    """Send application logs to stderr at the given level."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
