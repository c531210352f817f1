from __future__ import annotations

import dataclasses
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import pytest
from pydantic import ValidationError

from categorizer.config import get_categorization_config
from categorizer.errors import ProviderError
from categorizer.models import LlmVerdict, NormalizedTransaction
from categorizer.pipeline import NO_MATCH_CONFIDENCE, PROVIDER_FAILURE_CONFIDENCE, categorize
from categorizer.taxonomy import get_catch_all_category, get_category_by_id, get_category_by_slug

CONFIG = get_categorization_config("ecommerce")


def _raw(**overrides: Any) -> dict[str, Any]:
    base: dict[str, Any] = {
        "id": "t1",
        "orgId": "org-1",
        "date": "2025-03-01",
        "amountCents": "-4999",
        "description": "zzz qqq",
        "merchantName": None,
    }
    base.update(overrides)
    return base


class _Scorer:
    """Deterministic scorer recording its calls."""

    model = "stub"

    def __init__(self, slug: str = "travel", confidence: float = 0.9, error=None) -> None:
        self.slug = slug
        self.confidence = confidence
        self.error = error
        self.calls: list[tuple[str, str | None]] = []

    def score(self, tx, prior_category_name=None):
        self.calls.append((tx.id, prior_category_name))
        if self.error is not None:
            raise self.error
        return LlmVerdict(category_slug=self.slug, confidence=self.confidence, rationale="stub")


# ---- Input validation --------------------------------------------------------


@pytest.mark.parametrize("missing", ["amountCents", "date", "id", "orgId", "description"])
def test_malformed_transaction_fails_fast(missing: str) -> None:
    raw = _raw()
    del raw[missing]
    with pytest.raises(ValidationError):
        categorize(raw, CONFIG)


# Arabic-Indic and fullwidth digits are not ASCII cents.
@pytest.mark.parametrize(
    "amount", [12.5, "12.50", "abc", True, "\u0661\u0662\u0663", "-\uff15\uff10"]
)
def test_non_integer_amount_is_rejected(amount) -> None:
    with pytest.raises(ValidationError):
        categorize(_raw(amountCents=amount), CONFIG)


def test_integer_amount_is_coerced_to_string() -> None:
    tx = NormalizedTransaction.model_validate(_raw(amountCents=-4999))
    assert tx.amount_cents == "-4999"


# ---- State machine -----------------------------------------------------------


def test_confident_pass1_skips_the_model() -> None:
    scorer = _Scorer()
    res = categorize(_raw(merchantName="Shopify", description="SHOPIFY PAYOUT"), CONFIG, scorer=scorer)
    assert scorer.calls == []
    assert res.category_slug == "shopify_payouts_clearing"
    assert res.source == "pass1"
    assert res.confidence == 1.0
    assert res.needs_review is False
    assert res.auto_apply is True


def test_weak_pass1_consults_the_model_and_uses_better_verdict() -> None:
    scorer = _Scorer("payment_processing_fees", 0.97)
    res = categorize(_raw(merchantName="Stripe", description="fee"), CONFIG, scorer=scorer)
    assert scorer.calls == [("t1", None)]
    assert res.category_slug == "payment_processing_fees"
    assert res.source == "llm"
    assert res.confidence == 0.97
    assert res.needs_review is False
    assert res.rationale[0] == "LLM: stub"


def test_weaker_model_verdict_keeps_pass1_result() -> None:
    scorer = _Scorer("other_ops", 0.4)
    res = categorize(_raw(merchantName="Stripe", description="fee"), CONFIG, scorer=scorer)
    assert res.category_slug == "stripe_fees"
    assert res.source == "pass1"
    assert res.confidence == 0.9
    assert res.needs_review is True


def test_no_pass1_match_uses_model() -> None:
    res = categorize(_raw(), CONFIG, scorer=_Scorer("travel", 0.6))
    assert res.category_slug == "travel"
    assert res.category_id == get_category_by_slug("travel").id
    assert res.source == "llm"


def test_prior_category_name_is_passed_as_hint() -> None:
    scorer = _Scorer()
    categorize(_raw(categoryId=get_category_by_slug("insurance").id), CONFIG, scorer=scorer)
    assert scorer.calls == [("t1", "Insurance")]


def test_provider_failure_degrades_to_catch_all() -> None:
    err = ProviderError("request timed out", kind="timeout", retryable=True)
    res = categorize(_raw(merchantName="Stripe", description="fee"), CONFIG, scorer=_Scorer(error=err))
    assert res.category_id == get_catch_all_category().id
    assert res.confidence == PROVIDER_FAILURE_CONFIDENCE
    assert res.source == "fallback"
    assert res.needs_review is True
    assert res.violations == ("LLM categorization failed (timeout): request timed out",)


def test_scorer_deadline_error_degrades_to_catch_all() -> None:
    err = TimeoutError("deadline exceeded")
    res = categorize(_raw(merchantName="Stripe", description="fee"), CONFIG, scorer=_Scorer(error=err))
    assert res.category_slug == "other_ops"
    assert res.confidence == PROVIDER_FAILURE_CONFIDENCE
    assert res.source == "fallback"
    assert res.violations == ("LLM categorization failed (timeout): deadline exceeded",)


def test_no_scorer_and_no_match_is_catch_all_at_zero() -> None:
    res = categorize(_raw(), CONFIG)
    assert res.category_slug == "other_ops"
    assert res.confidence == NO_MATCH_CONFIDENCE
    assert res.source == "fallback"
    assert res.needs_review is True


def test_no_scorer_keeps_weak_pass1_match() -> None:
    res = categorize(_raw(merchantName="Stripe", description="fee"), CONFIG)
    assert res.category_slug == "stripe_fees"
    assert res.confidence == 0.9
    assert res.needs_review is True


def test_default_config_is_ecommerce() -> None:
    res = categorize(_raw(merchantName="Shopify", description="SHOPIFY PAYOUT"))
    assert res.needs_review is False


# ---- Guardrails in the pipeline ----------------------------------------------


def test_guardrails_correct_model_output() -> None:
    raw = _raw(merchantName="Stripe", description="PAYMENT PROCESSING FEE", amountCents="-2500")
    res = categorize(raw, CONFIG, scorer=_Scorer("dtc_sales", 0.99))
    assert res.category_slug == "payment_processing_fees"
    assert res.guardrails_applied == ("revenue_block",)
    assert res.confidence == pytest.approx(0.69)
    assert res.needs_review is True


def test_refund_proposed_as_sales_becomes_contra_revenue() -> None:
    raw = _raw(description="REFUND FOR ORDER #12345", amountCents="-4500")
    res = categorize(raw, CONFIG, scorer=_Scorer("dtc_sales", 0.9))
    assert res.category_slug == "refunds_allowances_contra"


def test_disabled_guardrails_return_proposal_verbatim() -> None:
    cfg = dataclasses.replace(CONFIG, use_guardrails=False)
    raw = _raw(merchantName="Stripe", description="PAYMENT PROCESSING FEE", amountCents="-2500")
    res = categorize(raw, cfg, scorer=_Scorer("dtc_sales", 0.99))
    assert res.category_slug == "dtc_sales"
    assert res.guardrails_applied == ()
    assert res.confidence == 0.99


def test_disabled_guardrails_still_map_unknown_slugs() -> None:
    class _Rogue(_Scorer):
        def score(self, tx, prior_category_name=None):
            return LlmVerdict.model_construct(
                category_slug="not_a_real_slug", confidence=0.8, rationale="?"
            )

    cfg = dataclasses.replace(CONFIG, use_guardrails=False)
    res = categorize(_raw(), cfg, scorer=_Rogue())
    assert res.category_id == get_catch_all_category().id
    assert res.category_slug == "other_ops"


def test_custom_thresholds_are_honoured() -> None:
    cfg = dataclasses.replace(CONFIG, hybrid_threshold=0.5, auto_apply_threshold=0.85)
    scorer = _Scorer()
    res = categorize(_raw(merchantName="Stripe", description="fee"), cfg, scorer=scorer)
    assert scorer.calls == []
    assert res.needs_review is False


# ---- Properties --------------------------------------------------------------


@pytest.mark.parametrize(
    "raw",
    [
        _raw(),
        _raw(merchantName="Stripe", description="PAYMENT PROCESSING FEE", amountCents="-2500"),
        _raw(description="STATE SALES TAX", amountCents="-700"),
        _raw(merchantName="Shopify", description="transfer", amountCents="120000"),
        _raw(description="", amountCents="0"),
    ],
)
@pytest.mark.parametrize("scorer_slug", ["dtc_sales", "travel", None])
def test_category_id_always_resolves(raw: dict[str, Any], scorer_slug: str | None) -> None:
    scorer = _Scorer(scorer_slug, 0.9) if scorer_slug else None
    res = categorize(raw, CONFIG, scorer=scorer)
    assert get_category_by_id(res.category_id) is not None
    assert 0.0 <= res.confidence <= 1.0


def test_concurrent_calls_are_independent() -> None:
    raws = [_raw(id=f"t{i}", merchantName="Stripe", description="fee") for i in range(20)]
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda r: categorize(r, CONFIG, scorer=_Scorer("bank_fees", 0.95)), raws))
    assert {r.category_slug for r in results} == {"bank_fees"}


def test_result_serializes_to_json_dict() -> None:
    res = categorize(_raw(), CONFIG)
    body = res.as_json_dict()
    assert body["category_id"] == res.category_id
    assert body["guardrails_applied"] == []
    assert isinstance(body["rationale"], list)
