"""Guardrail engine: deterministic post-hoc corrections of a proposed category.

Rules are explicit objects evaluated in a fixed order by
:func:`apply_guardrails`; later rules see the output of earlier ones. Each
firing rule redirects the proposal, subtracts its confidence penalty, and
records its id and a human-readable violation. Pattern lists and penalties
live in a versioned :class:`GuardrailPatterns` table.

The chain is idempotent: the liability and clearing redirects never re-route
a proposal that is already a balance-sheet category, and the revenue block
only fires for revenue-type proposals it would move away from revenue.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from .logging_setup import get_logger
from .models import CategoryNode, NormalizedTransaction
from .taxonomy import CATCH_ALL_SLUG, get_category_by_slug, map_category_slug_to_id

_logger = get_logger("categorizer.guardrails")

GUARDRAIL_PATTERNS_VERSION = "ecommerce-1"


@dataclass(frozen=True, slots=True)
class GuardrailPatterns:
    """Lowercase substring patterns and subtractive confidence penalties."""

    version: str
    refund_keywords: tuple[str, ...]
    payment_processors: tuple[str, ...]
    sales_tax_keywords: tuple[str, ...]
    tax_authorities: tuple[str, ...]
    shopify_payout_keywords: tuple[str, ...]
    payout_descriptions: tuple[str, ...]
    refund_penalty: float
    processor_penalty: float
    sales_tax_penalty: float
    payout_penalty: float


GUARDRAIL_PATTERNS = GuardrailPatterns(
    version=GUARDRAIL_PATTERNS_VERSION,
    refund_keywords=(
        "refund",
        "return",
        "chargeback",
        "reversal",
        "void",
        "cancelled",
        "dispute",
        "adjustment",
        "credit",
    ),
    payment_processors=(
        "stripe",
        "paypal",
        "square",
        "shopify payments",
        "shop pay",
        "afterpay",
        "affirm",
        "klarna",
        "sezzle",
        "adyen",
        "braintree",
    ),
    sales_tax_keywords=(
        "sales tax",
        "state tax",
        "local tax",
        "use tax",
        "revenue department",
        "tax authority",
        "comptroller",
        "department of revenue",
        "tax commission",
    ),
    # Matched against the merchant name only.
    tax_authorities=(
        "state of",
        "city of",
        "county of",
        "department of revenue",
        "tax collector",
        "revenue service",
    ),
    shopify_payout_keywords=(
        "shopify payout",
        "shopify transfer",
        "shopify deposit",
        "shopify payments payout",
    ),
    payout_descriptions=("payout", "transfer", "deposit", "settlement"),
    refund_penalty=0.4,
    processor_penalty=0.3,
    sales_tax_penalty=0.2,
    payout_penalty=0.1,
)

# Edge cases the pattern table does not cover. They are left to pass 1/2.
KNOWN_PATTERN_GAPS: dict[str, tuple[str, ...]] = {
    "fx_fees": ("fx fee", "currency conversion", "foreign exchange"),
    "crypto_fees": ("crypto fee", "bitcoin fee", "coinbase"),
}


# ---------------------------------------------------------------------------
# Rule objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Redirect:
    """What a firing rule does to the current proposal."""

    target_slug: str
    confidence_penalty: float
    violation: str


class GuardrailRule(Protocol):
    rule_id: str

    def evaluate(self, tx: NormalizedTransaction, slug: str) -> Redirect | None: ...


def _texts(tx: NormalizedTransaction) -> tuple[str, str]:
    return tx.description.casefold(), (tx.merchant_name or "").casefold()


def _contains_any(text: str, patterns: Sequence[str]) -> bool:
    return bool(text) and any(p in text for p in patterns)


def _is_balance_sheet(node: CategoryNode | None) -> bool:
    return node is not None and node.type in ("liability", "clearing")


@dataclass(frozen=True, slots=True)
class RevenueBlock:
    """Keep payment processors, refunds and outflows out of revenue.

    A processor match redirects to processing fees even for contra-revenue
    proposals. Otherwise a refund keyword or a negative amount redirects any
    non-contra revenue proposal to refunds & allowances.
    """

    patterns: GuardrailPatterns
    rule_id: str = "revenue_block"

    def evaluate(self, tx: NormalizedTransaction, slug: str) -> Redirect | None:
        node = get_category_by_slug(slug)
        if node is None or node.type != "revenue":
            return None
        p = self.patterns
        description, merchant = _texts(tx)
        if _contains_any(merchant, p.payment_processors) or _contains_any(
            description, p.payment_processors
        ):
            return Redirect(
                "payment_processing_fees",
                p.processor_penalty,
                "Payment processor cannot map to revenue",
            )
        is_refund = (
            _contains_any(description, p.refund_keywords)
            or _contains_any(merchant, p.refund_keywords)
            or tx.amount < 0
        )
        if is_refund and not node.is_contra_revenue:
            return Redirect(
                "refunds_allowances_contra",
                p.refund_penalty,
                "Refund/return cannot map to positive revenue",
            )
        return None


@dataclass(frozen=True, slots=True)
class SalesTaxRedirect:
    patterns: GuardrailPatterns
    rule_id: str = "sales_tax_redirect"
    target_slug: str = "sales_tax_payable"

    def evaluate(self, tx: NormalizedTransaction, slug: str) -> Redirect | None:
        if _is_balance_sheet(get_category_by_slug(slug)):
            return None
        p = self.patterns
        description, merchant = _texts(tx)
        matched = (
            _contains_any(description, p.sales_tax_keywords)
            or _contains_any(merchant, p.sales_tax_keywords)
            or _contains_any(merchant, p.tax_authorities)
        )
        if not matched:
            return None
        return Redirect(
            self.target_slug,
            p.sales_tax_penalty,
            "Sales tax payment should map to liability account",
        )


@dataclass(frozen=True, slots=True)
class ShopifyPayoutRedirect:
    patterns: GuardrailPatterns
    rule_id: str = "shopify_payout_redirect"
    target_slug: str = "shopify_payouts_clearing"

    def evaluate(self, tx: NormalizedTransaction, slug: str) -> Redirect | None:
        if _is_balance_sheet(get_category_by_slug(slug)):
            return None
        p = self.patterns
        description, merchant = _texts(tx)
        is_payout = _contains_any(description, p.shopify_payout_keywords) or _contains_any(
            merchant, p.shopify_payout_keywords
        )
        if not is_payout:
            is_payout = "shopify" in merchant and _contains_any(description, p.payout_descriptions)
        if not is_payout:
            return None
        return Redirect(
            self.target_slug,
            p.payout_penalty,
            "Shopify payouts should map to clearing account",
        )


@dataclass(frozen=True, slots=True)
class UnknownSlugFallback:
    """Map a slug outside the taxonomy to the catch-all, without a penalty."""

    rule_id: str = "unknown_slug_fallback"
    target_slug: str = CATCH_ALL_SLUG

    def evaluate(self, tx: NormalizedTransaction, slug: str) -> Redirect | None:
        if get_category_by_slug(slug) is not None:
            return None
        return Redirect(self.target_slug, 0.0, f"Unknown category slug {slug!r}")


ECOMMERCE_GUARDRAILS: tuple[GuardrailRule, ...] = (
    RevenueBlock(GUARDRAIL_PATTERNS),
    SalesTaxRedirect(GUARDRAIL_PATTERNS),
    ShopifyPayoutRedirect(GUARDRAIL_PATTERNS),
    UnknownSlugFallback(),
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class GuardrailOutcome:
    category_id: str
    category_slug: str
    confidence: float
    guardrails_applied: tuple[str, ...] = ()
    violations: tuple[str, ...] = ()


def clamp_confidence(value: float) -> float:
    """Clamp to [0,1]; NaN becomes 0."""

    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))


def apply_guardrails(
    tx: NormalizedTransaction,
    proposed_slug: str,
    confidence: float,
    rules: Sequence[GuardrailRule] = ECOMMERCE_GUARDRAILS,
) -> GuardrailOutcome:
    """Run ``rules`` in order over the proposal and return the corrected result."""

    slug = proposed_slug
    conf = clamp_confidence(confidence)
    applied: list[str] = []
    violations: list[str] = []
    for rule in rules:
        redirect = rule.evaluate(tx, slug)
        if redirect is None:
            continue
        _logger.info(
            "guardrail:fired tx_id=%s rule=%s from=%s to=%s penalty=%.2f",
            tx.id,
            rule.rule_id,
            slug,
            redirect.target_slug,
            redirect.confidence_penalty,
        )
        slug = redirect.target_slug
        conf = max(0.0, conf - redirect.confidence_penalty)
        applied.append(rule.rule_id)
        violations.append(redirect.violation)

    return GuardrailOutcome(
        category_id=map_category_slug_to_id(slug),
        category_slug=slug,
        confidence=clamp_confidence(conf),
        guardrails_applied=tuple(applied),
        violations=tuple(violations),
    )


def get_category_id_with_guardrails(
    tx: NormalizedTransaction,
    proposed_slug: str,
    confidence: float,
) -> GuardrailOutcome:
    """Apply the ecommerce guardrail chain and resolve the final category id."""
    return apply_guardrails(tx, proposed_slug, confidence, ECOMMERCE_GUARDRAILS)


__all__ = [
    "ECOMMERCE_GUARDRAILS",
    "GUARDRAIL_PATTERNS",
    "GUARDRAIL_PATTERNS_VERSION",
    "KNOWN_PATTERN_GAPS",
    "GuardrailOutcome",
    "GuardrailPatterns",
    "GuardrailRule",
    "Redirect",
    "RevenueBlock",
    "SalesTaxRedirect",
    "ShopifyPayoutRedirect",
    "UnknownSlugFallback",
    "apply_guardrails",
    "clamp_confidence",
    "get_category_id_with_guardrails",
]
