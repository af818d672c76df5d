"""Diagnostics sink for recoverable anomalies.

The sink is passed explicitly into the conversion entry points instead of
being swapped globally. By default it forwards to the ``api_schema_guard``
logger.
"""

import logging
import re
from typing import Any, Callable

logger = logging.getLogger("api_schema_guard")

Hook = Callable[[str, dict[str, Any]], None]


def _log_error(message: str, context: dict[str, Any]) -> None:
    if context:
        logger.error("%s %s", message, context)
    else:
        logger.error(message)


def _log_warn(message: str, context: dict[str, Any]) -> None:
    if context:
        logger.warning("%s %s", message, context)
    else:
        logger.warning(message)


class Diagnostics:
    """Reports errors and warnings through two hooks, ``on_error`` and ``on_warn``."""

    def __init__(self, on_error: Hook | None = None, on_warn: Hook | None = None):
        self.on_error = on_error or _log_error
        self.on_warn = on_warn or _log_warn

    def error(self, message: str, context: dict[str, Any] | None = None) -> None:
        self.on_error(message, dict(context or {}))

    def warn(self, message: str, context: dict[str, Any] | None = None) -> None:
        self.on_warn(message, dict(context or {}))


def shorten_file_path(path: str, segments: int = 3) -> str:
    """Keep the last ``segments`` parts of a file path, prefixed with an ellipsis.

    Example:
        shorten_file_path('/src/routes/api/users/[id]/+server.py')
        -> '…/users/[id]/+server.py'
    """
    parts = re.split(r"[/\\]", path)
    if len(parts) <= segments:
        return path
    return "…/" + "/".join(parts[-segments:])
