"""Categorization orchestrator.

Public API:
    - :func:`categorize`

Sequence per transaction: pass 1, then pass 2 when pass 1 is weak or
missing, then a catch-all fallback when pass 2 fails, then guardrails. Stage
outcomes are tagged values (``Matched``, ``NoMatch``, ``ProviderFailed``)
matched here; the only exception that reaches the caller is a
``ValidationError`` for a malformed transaction.

The function holds no state between calls and is safe to call from many
threads at once.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .config import get_categorization_config
from .guardrails import clamp_confidence, get_category_id_with_guardrails
from .llm import Scorer, pass2_categorize
from .logging_setup import get_logger
from .models import (
    CategorizationConfig,
    CategorizationResult,
    Matched,
    NoMatch,
    NormalizedTransaction,
    ProviderFailed,
    ResultSource,
)
from .pass1 import pass1_categorize
from .taxonomy import (
    CATCH_ALL_SLUG,
    get_category_by_id,
    get_category_by_slug,
    map_category_slug_to_id,
)

# Confidence assigned when pass 2 fails; below every auto-apply threshold.
PROVIDER_FAILURE_CONFIDENCE = 0.5
# Confidence assigned when nothing matched and no scorer is available.
NO_MATCH_CONFIDENCE = 0.0

_logger = get_logger("categorizer.pipeline")


@dataclass(frozen=True, slots=True)
class _Proposal:
    slug: str
    confidence: float
    source: ResultSource
    rationale: tuple[str, ...] = ()
    violations: tuple[str, ...] = ()


def _prior_category_name(tx: NormalizedTransaction) -> str | None:
    if not tx.category_id:
        return None
    node = get_category_by_id(tx.category_id)
    return node.name if node is not None else None


def _from_match(m: Matched, *extra_rationale: str) -> _Proposal:
    return _Proposal(m.category_slug, m.confidence, m.source, m.rationale + extra_rationale)


def _resolve_weak(
    tx: NormalizedTransaction,
    first: Matched | NoMatch,
    scorer: Scorer | None,
) -> _Proposal:
    """Decide the proposal when pass 1 is below the hybrid threshold."""

    if scorer is None:
        match first:
            case Matched():
                return _from_match(first)
            case NoMatch():
                _logger.info("categorize:catch_all tx_id=%s reason=no_match_no_scorer", tx.id)
                return _Proposal(
                    CATCH_ALL_SLUG,
                    NO_MATCH_CONFIDENCE,
                    "fallback",
                    ("no rule matched; model scoring unavailable",),
                )

    second = pass2_categorize(tx, scorer, _prior_category_name(tx))
    match (first, second):
        case (_, ProviderFailed(reason=reason, kind=kind)):
            _logger.warning("categorize:llm_failed tx_id=%s kind=%s reason=%s", tx.id, kind, reason)
            return _Proposal(
                CATCH_ALL_SLUG,
                PROVIDER_FAILURE_CONFIDENCE,
                "fallback",
                ("LLM categorization failed, using fallback",),
                (f"LLM categorization failed ({kind}): {reason}",),
            )
        case (Matched(confidence=c1), Matched(confidence=c2)) if c1 >= c2:
            _logger.info("categorize:pass1_kept tx_id=%s pass1=%.2f llm=%.2f", tx.id, c1, c2)
            return _from_match(first, *(f"not used: {r}" for r in second.rationale))
        case (_, Matched()):
            return _from_match(second)
    raise AssertionError(f"unhandled stage outcomes: {first!r}, {second!r}")


def categorize(
    tx: NormalizedTransaction | Mapping[str, Any],
    config: CategorizationConfig | None = None,
    *,
    scorer: Scorer | None = None,
) -> CategorizationResult:
    """Categorize one transaction.

    Parameters
    ----------
    tx:
        A :class:`NormalizedTransaction` or a mapping validated into one.
        Malformed input raises ``pydantic.ValidationError``.
    config:
        Organization settings; defaults to the ecommerce configuration.
    scorer:
        Pass-2 scorer. When ``None`` the model is never consulted and weak
        or missing pass-1 results stand on their own.
    """

    if not isinstance(tx, NormalizedTransaction):
        tx = NormalizedTransaction.model_validate(tx)
    cfg = config or get_categorization_config()

    first = pass1_categorize(tx)
    match first:
        case Matched(confidence=c) if c >= cfg.hybrid_threshold:
            _logger.debug("categorize:pass1_confident tx_id=%s slug=%s", tx.id, first.category_slug)
            proposal = _from_match(first)
        case _:
            proposal = _resolve_weak(tx, first, scorer)

    if cfg.use_guardrails:
        g = get_category_id_with_guardrails(tx, proposal.slug, proposal.confidence)
        category_id, slug, confidence = g.category_id, g.category_slug, g.confidence
        applied, violations = g.guardrails_applied, g.violations
    else:
        slug = proposal.slug if get_category_by_slug(proposal.slug) else CATCH_ALL_SLUG
        category_id = map_category_slug_to_id(slug)
        confidence = clamp_confidence(proposal.confidence)
        applied, violations = (), ()

    result = CategorizationResult(
        category_id=category_id,
        category_slug=slug,
        confidence=confidence,
        guardrails_applied=applied,
        violations=proposal.violations + violations,
        source=proposal.source,
        rationale=proposal.rationale,
        needs_review=confidence < cfg.auto_apply_threshold,
    )
    _logger.info(
        "categorize:done tx_id=%s slug=%s confidence=%.2f source=%s guardrails=%s needs_review=%s",
        tx.id,
        result.category_slug,
        result.confidence,
        result.source,
        ",".join(result.guardrails_applied) or "-",
        result.needs_review,
    )
    return result


__all__ = [
    "NO_MATCH_CONFIDENCE",
    "PROVIDER_FAILURE_CONFIDENCE",
    "categorize",
]
