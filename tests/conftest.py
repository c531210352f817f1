"""Pytest configuration for test isolation.

- Puts the workspace ``packages/`` and ``libs/db/src`` directories (and the
  repo root, for ``tests.helpers``) on ``sys.path`` so the suite runs from a
  plain checkout as well as from an installed environment.
- Clears every environment variable the categorizer reads so a developer's
  ``.env`` or shell cannot leak into assertions.
- Detaches logging handlers and disposes cached database engines after each
  test; both are process-wide.
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

_ROOT = Path(__file__).resolve().parents[1]
sys.path[:0] = [
    p
    for p in (str(_ROOT / "packages"), str(_ROOT / "libs" / "db" / "src"), str(_ROOT))
    if p not in sys.path
]

from categorizer.logging_setup import reset_logging  # noqa: E402
from db.client import dispose_engines  # noqa: E402

_ENV_VARS = (
    "OPENAI_API_KEY",
    "DATABASE_URL",
    "CATEGORIZER_OPENAI_MODEL",
    "CATEGORIZER_LLM_TIMEOUT",
    "CATEGORIZER_LOG_LEVEL",
    "CATEGORIZER_ORG_CONCURRENCY",
    "CATEGORIZER_GLOBAL_CONCURRENCY",
)


@pytest.fixture(autouse=True)
def _isolate_process_state(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield
    reset_logging()
    dispose_engines()
