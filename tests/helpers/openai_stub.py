"""Test helpers to stub the OpenAI Responses client used by ``categorizer.llm``.

Tests provide a ``decide`` callable receiving the ``responses.create`` kwargs
and returning either the model's output text or raising an SDK exception
(build those with :func:`status_error`, :func:`timeout_error` or
:func:`connection_error`). Every call's kwargs are captured for assertions.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import openai

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/responses")


def verdict_text(slug: str, confidence: float = 0.9, rationale: str = "looks right") -> str:
    return json.dumps({"category_slug": slug, "confidence": confidence, "rationale": rationale})


def status_error(status_code: int, message: str = "upstream error") -> openai.APIStatusError:
    response = httpx.Response(status_code, request=_REQUEST)
    if status_code == 429:
        return openai.RateLimitError(message, response=response, body=None)
    if status_code >= 500:
        return openai.InternalServerError(message, response=response, body=None)
    return openai.APIStatusError(message, response=response, body=None)


def timeout_error() -> openai.APITimeoutError:
    return openai.APITimeoutError(request=_REQUEST)


def connection_error() -> openai.APIConnectionError:
    return openai.APIConnectionError(request=_REQUEST)


class OpenAIStub:
    """Minimal stub matching the ``openai.OpenAI`` shape used by the scorer.

    Parameters
    ----------
    decide:
        Receives the ``responses.create`` kwargs; returns the output text or
        raises.
    calls_out:
        A list appended with each call's kwargs.
    """

    def __init__(
        self,
        decide: Callable[[dict[str, Any]], str],
        calls_out: list[dict[str, Any]] | None = None,
    ) -> None:
        self._decide = decide
        self._calls = calls_out if calls_out is not None else []

        class _Responses:
            def __init__(self, outer: OpenAIStub) -> None:
                self._outer = outer

            def create(self, **kwargs):
                self._outer._calls.append(kwargs)
                text = self._outer._decide(kwargs)

                class _Resp:
                    output_text: str

                resp = _Resp()
                resp.output_text = text
                return resp

        self.responses = _Responses(self)

    @property
    def calls(self) -> list[dict[str, Any]]:
        return self._calls


def make_openai_class(
    decide: Callable[[dict[str, Any]], str],
    calls_out: list[dict[str, Any]],
    init_kwargs_out: list[dict[str, Any]] | None = None,
):
    """Return a class to monkeypatch over ``categorizer.llm.OpenAI``."""

    class _Client(OpenAIStub):
        def __init__(self, *a: Any, **kw: Any) -> None:
            if init_kwargs_out is not None:
                init_kwargs_out.append(kw)
            super().__init__(decide, calls_out)

    return _Client
