"""Pass 2: score a transaction with the OpenAI Responses API.

Public API:
    - :class:`LLMScorer` and the functional :func:`score_with_llm`
    - :func:`pass2_categorize`, which turns provider failures into a tagged
      :class:`~categorizer.models.ProviderFailed` outcome
    - :class:`RetryingScorer`, an opt-in retry wrapper for batch callers

The scorer makes exactly one request per call. Every failure is raised as a
:class:`~categorizer.errors.ProviderError`; nothing is retried here unless the
caller wraps the scorer in :class:`RetryingScorer`. No client is created and
no environment is read at import time.
"""

from __future__ import annotations

import os
import random
import time
from typing import Protocol

import openai
from openai import OpenAI
from openai.types.responses import ResponseTextConfigParam

from . import prompting
from .categorization import InvalidCategoryError, extract_response_json, parse_llm_verdict
from .errors import ProviderError
from .logging_setup import get_logger
from .models import LlmVerdict, Matched, NormalizedTransaction, Pass2Outcome, ProviderFailed

_DEFAULT_MODEL = "gpt-4o-mini"
_DEFAULT_TIMEOUT_SEC = 30.0
_TEMPERATURE = 0.1

_MODEL_ENV = "CATEGORIZER_OPENAI_MODEL"
_TIMEOUT_ENV = "CATEGORIZER_LLM_TIMEOUT"

_MAX_ATTEMPTS: int = 3
_BACKOFF_SCHEDULE_SEC: tuple[float, ...] = (0.5, 2.0)
_JITTER_PCT: float = 0.20

_logger = get_logger("categorizer.llm")


class Scorer(Protocol):
    def score(
        self, tx: NormalizedTransaction, prior_category_name: str | None = None
    ) -> LlmVerdict: ...


def _create_client(*, timeout: float) -> OpenAI:
    # SDK-level retries are disabled; retry policy belongs to the caller.
    return OpenAI(timeout=timeout, max_retries=0)


def _env_timeout() -> float:
    raw = os.getenv(_TIMEOUT_ENV)
    if not raw:
        return _DEFAULT_TIMEOUT_SEC
    try:
        val = float(raw)
    except ValueError:
        _logger.warning("llm:bad_timeout_env value=%r default=%s", raw, _DEFAULT_TIMEOUT_SEC)
        return _DEFAULT_TIMEOUT_SEC
    return val if val > 0 else _DEFAULT_TIMEOUT_SEC


def _to_provider_error(exc: Exception) -> ProviderError:
    """Classify an SDK or parsing exception as a :class:`ProviderError`."""

    # APITimeoutError subclasses APIConnectionError; check it first.
    if isinstance(exc, openai.APITimeoutError):
        return ProviderError(str(exc) or "request timed out", kind="timeout", retryable=True)
    if isinstance(exc, TimeoutError):
        return ProviderError(str(exc) or "deadline exceeded", kind="timeout", retryable=True)
    if isinstance(exc, openai.APIConnectionError):
        return ProviderError(str(exc) or "connection error", kind="connection", retryable=False)
    if isinstance(exc, openai.APIStatusError):
        sc = exc.status_code
        if sc == 429:
            return ProviderError(str(exc), kind="rate_limit", retryable=True, status_code=sc)
        return ProviderError(
            str(exc), kind="api_error", retryable=500 <= sc < 600, status_code=sc
        )
    if isinstance(exc, InvalidCategoryError):
        return ProviderError(str(exc), kind="invalid_category")
    if isinstance(exc, ValueError):
        return ProviderError(str(exc), kind="malformed_response")
    if isinstance(exc, openai.OpenAIError):
        # e.g. missing API key at client construction
        return ProviderError(str(exc), kind="configuration")
    return ProviderError(f"{exc.__class__.__name__}: {exc}", kind="api_error")


class LLMScorer:
    """Pass-2 scorer backed by the OpenAI Responses API.

    ``model`` defaults to ``CATEGORIZER_OPENAI_MODEL`` (else ``gpt-4o-mini``)
    and ``timeout`` to ``CATEGORIZER_LLM_TIMEOUT`` seconds (else 30). The
    OpenAI client is created lazily on first use and reused; the SDK client is
    safe to share across threads.
    """

    def __init__(
        self,
        *,
        model: str | None = None,
        timeout: float | None = None,
        temperature: float = _TEMPERATURE,
        client: OpenAI | None = None,
    ) -> None:
        self.model = model or os.getenv(_MODEL_ENV) or _DEFAULT_MODEL
        self.timeout = timeout if timeout is not None else _env_timeout()
        self.temperature = temperature
        self._client = client
        self._allowed = frozenset(prompting.get_available_category_slugs())
        self._text_cfg: ResponseTextConfigParam = {"format": prompting.build_response_format()}

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = _create_client(timeout=self.timeout)
        return self._client

    def score(
        self, tx: NormalizedTransaction, prior_category_name: str | None = None
    ) -> LlmVerdict:
        t0 = time.perf_counter()
        try:
            user_content = prompting.build_categorization_prompt(tx, prior_category_name)
            client = self._get_client()
            resp = client.responses.create(
                model=self.model,
                instructions=prompting.build_system_instructions(),
                input=user_content,
                text=self._text_cfg,
                temperature=self.temperature,
                timeout=self.timeout,
            )
            decoded = extract_response_json(resp)
            verdict = parse_llm_verdict(decoded, allowed_slugs=self._allowed)
        except ProviderError:
            raise
        except Exception as e:  # noqa: BLE001 - every failure is classified below
            err = _to_provider_error(e)
            dt_ms = (time.perf_counter() - t0) * 1000.0
            _logger.warning(
                "llm:score_failed tx_id=%s model=%s kind=%s retryable=%s latency_ms=%.2f",
                tx.id,
                self.model,
                err.kind,
                err.retryable,
                dt_ms,
            )
            raise err from e
        dt_ms = (time.perf_counter() - t0) * 1000.0
        _logger.info(
            "llm:score_done tx_id=%s model=%s slug=%s confidence=%.2f latency_ms=%.2f",
            tx.id,
            self.model,
            verdict.category_slug,
            verdict.confidence,
            dt_ms,
        )
        return verdict


def score_with_llm(
    tx: NormalizedTransaction,
    prior_category_name: str | None = None,
    *,
    scorer: Scorer | None = None,
) -> LlmVerdict:
    """Score ``tx`` once; raises :class:`ProviderError` on any failure."""

    return (scorer or LLMScorer()).score(tx, prior_category_name)


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ProviderError) and exc.retryable


def _sleep_backoff(attempt_no: int) -> None:
    if attempt_no - 1 < len(_BACKOFF_SCHEDULE_SEC):
        base = _BACKOFF_SCHEDULE_SEC[attempt_no - 1]
    else:
        base = _BACKOFF_SCHEDULE_SEC[-1]
    jitter = base * _JITTER_PCT
    delay = base + random.uniform(-jitter, jitter)
    time.sleep(max(0.0, delay))


class RetryingScorer:
    """Wrap a scorer with bounded retries for retryable provider errors.

    Only timeouts, HTTP 429 and 5xx are retried; malformed or invalid
    verdicts are terminal. The last error is re-raised unchanged.
    """

    def __init__(self, scorer: Scorer, *, max_attempts: int = _MAX_ATTEMPTS) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be a positive integer")
        self.scorer = scorer
        self.max_attempts = max_attempts

    @property
    def model(self) -> str | None:
        return getattr(self.scorer, "model", None)

    def score(
        self, tx: NormalizedTransaction, prior_category_name: str | None = None
    ) -> LlmVerdict:
        attempt = 1
        while True:
            try:
                return self.scorer.score(tx, prior_category_name)
            except ProviderError as e:
                if attempt >= self.max_attempts or not _is_retryable(e):
                    raise
                _logger.warning(
                    "llm:retry tx_id=%s kind=%s attempt=%d",
                    tx.id,
                    e.kind,
                    attempt,
                )
                _sleep_backoff(attempt)
                attempt += 1


def pass2_categorize(
    tx: NormalizedTransaction,
    scorer: Scorer,
    prior_category_name: str | None = None,
) -> Pass2Outcome:
    """Run pass 2 and return ``Matched`` or ``ProviderFailed``.

    Never raises: any exception from the scorer, including a caller-imposed
    deadline, is classified and returned as ``ProviderFailed``.
    """

    try:
        verdict = scorer.score(tx, prior_category_name)
    except Exception as e:  # noqa: BLE001 - a caller-imposed deadline may raise anything
        err = e if isinstance(e, ProviderError) else _to_provider_error(e)
        reason = str(err.args[0]) if err.args else err.kind
        return ProviderFailed(reason=reason, kind=err.kind)

    rationale = [f"LLM: {verdict.rationale}"]
    model = getattr(scorer, "model", None)
    if model:
        rationale.append(f"Model: {model}")
    return Matched(
        category_slug=verdict.category_slug,
        confidence=verdict.confidence,
        source="llm",
        rationale=tuple(rationale),
    )


__all__ = [
    "LLMScorer",
    "RetryingScorer",
    "Scorer",
    "pass2_categorize",
    "score_with_llm",
]
