"""Error types shared by the categorization stages.

Only provider failures get a dedicated type. Lookup misses are not errors
(they return ``None`` or an empty tuple) and malformed transactions surface as
``pydantic.ValidationError`` from :class:`categorizer.models.NormalizedTransaction`.
"""

from __future__ import annotations

from typing import Literal

type ProviderErrorKind = Literal[
    "timeout",
    "rate_limit",
    "api_error",
    "connection",
    "malformed_response",
    "invalid_category",
    "configuration",
]


class ProviderError(RuntimeError):
    """A pass-2 (LLM) call failed.

    ``kind`` classifies the failure for logs and the orchestrator's
    ``violations`` entry. ``retryable`` is True only for timeouts, HTTP 429 and
    5xx responses; parsing and validation failures are terminal.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: ProviderErrorKind,
        retryable: bool = False,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind: ProviderErrorKind = kind
        self.retryable = retryable
        self.status_code = status_code

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            return f"{self.kind} ({self.status_code}): {base}"
        return f"{self.kind}: {base}"


__all__ = ["ProviderError", "ProviderErrorKind"]
