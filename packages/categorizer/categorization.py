"""Response decoding and strict parsing of the model's categorization verdict.

Nothing here guesses: a verdict that is not exactly
``{category_slug, confidence, rationale}`` with a prompt-eligible slug, a
numeric confidence in [0,1] and a non-empty rationale raises ``ValueError``.
Recovery is the orchestrator's job.
"""

from __future__ import annotations

import json
from collections.abc import Collection, Mapping
from typing import Any

from pydantic import ValidationError

from .models import LlmVerdict


class InvalidCategoryError(ValueError):
    """The model answered with a slug outside the prompt-eligible set."""


def extract_response_json(resp: Any) -> Mapping[str, Any]:
    """Decode the JSON mapping from an OpenAI Responses SDK result.

    - Prefer ``resp.output_text``; fall back to ``resp.output[0].content[0].text``.
    - Raise ``ValueError`` if text cannot be located or if JSON decoding fails.
    """

    text: str | None = getattr(resp, "output_text", None)
    if not text:
        first = resp.output[0] if getattr(resp, "output", None) else None
        content = getattr(first, "content", None)
        if content:
            txt_obj = getattr(content[0], "text", None)
            if isinstance(txt_obj, str):
                text = txt_obj
            else:
                # Some SDK versions wrap text in an object with ``value``.
                maybe_val = getattr(txt_obj, "value", None)
                if isinstance(maybe_val, str):
                    text = maybe_val
    if not text or not isinstance(text, str):
        raise ValueError("Unexpected Responses API shape; unable to locate text output")
    return decode_verdict_text(text)


def decode_verdict_text(text: str) -> Mapping[str, Any]:
    try:
        decoded = json.loads(text.strip())
    except json.JSONDecodeError as e:
        raise ValueError("Model output was not valid JSON") from e
    if not isinstance(decoded, Mapping):
        raise ValueError("Invalid response: expected a JSON object at top level")
    return decoded


def _is_allowlist_error(err: Mapping[str, Any]) -> bool:
    return tuple(err.get("loc", ())) == ("category_slug",) and err.get("type") == "value_error"


def parse_llm_verdict(
    body: Mapping[str, Any] | str,
    *,
    allowed_slugs: Collection[str],
) -> LlmVerdict:
    """Validate the model's answer against ``allowed_slugs``.

    ``body`` may be the raw JSON text or an already-decoded mapping. Raises
    :class:`InvalidCategoryError` for an unknown slug and ``ValueError`` for
    any other deviation (malformed JSON, missing or extra fields,
    non-numeric or out-of-range confidence, empty rationale).
    """

    if isinstance(body, str):
        body = decode_verdict_text(body)
    if not isinstance(body, Mapping):
        raise ValueError("Invalid response: expected a JSON object at top level")

    try:
        return LlmVerdict.model_validate(
            dict(body), context={"allowed_slugs": frozenset(allowed_slugs)}
        )
    except ValidationError as e:
        errors = e.errors()
        if errors and all(_is_allowlist_error(err) for err in errors):
            raise InvalidCategoryError(
                f"Invalid response: category_slug not allowed: {body.get('category_slug')!r}"
            ) from e
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "<root>" for err in errors)
        raise ValueError(f"Invalid response: bad fields ({fields})") from e


__all__ = [
    "InvalidCategoryError",
    "decode_verdict_text",
    "extract_response_json",
    "parse_llm_verdict",
]
