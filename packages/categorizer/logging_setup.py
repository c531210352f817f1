"""Process-wide logging for ``categorizer``.

Entrypoints (the CLI, a queue worker) call :func:`configure_logging` once at
startup; it installs one ``StreamHandler`` on the ``"categorizer"`` logger.
Library modules only ever call :func:`get_logger` and log ``event:name
key=value`` style messages. Until an entrypoint configures logging, the
package logger carries a ``NullHandler`` and stays silent.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

PACKAGE_LOGGER = "categorizer"
LEVEL_ENV = "CATEGORIZER_LOG_LEVEL"
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_configured = False


def resolve_level(level: int | str | None = None) -> int:
    """Turn ``level`` (or ``CATEGORIZER_LOG_LEVEL`` when None) into an int.

    Accepts ints, numeric strings and standard level names in any case.
    Anything unrecognised resolves to ``INFO``.
    """

    if level is None:
        level = os.getenv(LEVEL_ENV) or logging.INFO
    if isinstance(level, int):
        return level
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    value = logging.getLevelNamesMapping().get(name)
    return value if value is not None else logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Attach the package handler; later calls are no-ops.

    ``stream`` defaults to ``sys.stderr`` looked up at call time, so a test
    runner that swaps stderr still sees the output.
    """

    global _configured
    if _configured:
        return

    resolved = resolve_level(level)
    pkg = logging.getLogger(PACKAGE_LOGGER)
    for h in [h for h in pkg.handlers if isinstance(h, logging.NullHandler)]:
        pkg.removeHandler(h)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
    pkg.addHandler(handler)
    pkg.setLevel(resolved)
    # The root logger would print everything twice.
    pkg.propagate = False

    _configured = True


def reset_logging() -> None:
    """Undo :func:`configure_logging`. Used by the test suite between tests."""

    global _configured
    pkg = logging.getLogger(PACKAGE_LOGGER)
    for h in list(pkg.handlers):
        pkg.removeHandler(h)
    pkg.setLevel(logging.NOTSET)
    pkg.propagate = True
    _configured = False


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)``; silences the package until configured."""

    pkg = logging.getLogger(PACKAGE_LOGGER)
    if not _configured and not pkg.handlers:
        pkg.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = [
    "configure_logging",
    "get_logger",
    "reset_logging",
    "resolve_level",
]
