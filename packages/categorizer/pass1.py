"""Pass 1: deterministic vendor/keyword/MCC matcher.

The rule table is ordered; the first matching rule wins, so more specific
rules (vendor plus description, a payout before the plain vendor) are listed
ahead of generic description keywords. Confidence is a static property of
each rule, never computed from the match.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Sequence
from dataclasses import dataclass

from .logging_setup import get_logger
from .models import Matched, NoMatch, NormalizedTransaction, Pass1Outcome

_logger = get_logger("categorizer.pass1")

_SUFFIX_RE = re.compile(r"\b(llc|inc|corp|ltd|co|company)\b\.?")
_PUNCT_RE = re.compile(r"[^\w\s]|_")
# Split letter/digit runs so "ADS1234" and "3PL" tokenize consistently.
_ALNUM_BOUNDARY_RE = re.compile(r"(?<=[^\W\d_])(?=\d)|(?<=\d)(?=[^\W\d_])")


def normalize_text(text: str) -> str:
    """Casefold, replace punctuation with spaces and collapse whitespace."""

    s = unicodedata.normalize("NFKC", text).casefold()
    s = _PUNCT_RE.sub(" ", s)
    s = _ALNUM_BOUNDARY_RE.sub(" ", s)
    return " ".join(s.split())


def normalize_vendor(vendor: str) -> str:
    """Normalize a merchant name for matching.

    Same as :func:`normalize_text` but also drops common business suffixes
    (``LLC``, ``Inc.``, ``Corp``, ``Ltd``, ``Co``, ``Company``).
    """

    s = unicodedata.normalize("NFKC", vendor).strip().casefold()
    s = _SUFFIX_RE.sub("", s)
    return normalize_text(s)


def _has_phrase(haystack: str, phrases: Sequence[str]) -> bool:
    padded = f" {haystack} "
    return any(f" {p} " in padded for p in phrases)


@dataclass(frozen=True, slots=True)
class VendorRule:
    """One row of the pass-1 table.

    Every non-empty criterion must hold: any vendor keyword, any description
    keyword, and the exact MCC. Keywords are stored pre-normalized.
    """

    rule_id: str
    category_slug: str
    confidence: float
    vendor_keywords: tuple[str, ...] = ()
    description_keywords: tuple[str, ...] = ()
    mcc: str | None = None

    def matches(self, vendor_text: str, description_text: str, mcc: str | None) -> bool:
        if self.mcc is not None and self.mcc != mcc:
            return False
        if self.vendor_keywords and not _has_phrase(vendor_text, self.vendor_keywords):
            return False
        if self.description_keywords and not _has_phrase(
            description_text, self.description_keywords
        ):
            return False
        return bool(self.mcc or self.vendor_keywords or self.description_keywords)


def _rule(
    rule_id: str,
    slug: str,
    confidence: float,
    *,
    vendor: Sequence[str] = (),
    description: Sequence[str] = (),
    mcc: str | None = None,
) -> VendorRule:
    return VendorRule(
        rule_id=rule_id,
        category_slug=slug,
        confidence=confidence,
        vendor_keywords=tuple(normalize_text(v) for v in vendor),
        description_keywords=tuple(normalize_text(d) for d in description),
        mcc=mcc,
    )


_ADS = ("ads", "advertising")

PASS1_RULES: tuple[VendorRule, ...] = (
    # Payouts are balance-sheet movements; must precede the Shopify vendor rule.
    _rule(
        "shopify_payout",
        "shopify_payouts_clearing",
        1.0,
        vendor=("shopify",),
        description=("payout", "transfer", "deposit"),
    ),
    # Advertising platforms (vendor and description)
    _rule("ads_meta", "ads_meta", 0.9, vendor=("facebook", "meta", "instagram"), description=_ADS),
    _rule(
        "ads_google",
        "ads_google",
        0.9,
        vendor=("google",),
        description=(*_ADS, "adwords"),
    ),
    _rule("ads_tiktok", "ads_tiktok", 0.9, vendor=("tiktok",), description=_ADS),
    _rule(
        "ads_other",
        "ads_other",
        0.85,
        vendor=("pinterest", "snapchat", "twitter", "linkedin"),
        description=_ADS,
    ),
    # Payment processors and platform
    _rule("vendor_stripe", "stripe_fees", 0.9, vendor=("stripe",)),
    _rule("vendor_paypal", "paypal_fees", 0.9, vendor=("paypal",)),
    _rule("vendor_shop_pay", "shop_pay_fees", 0.9, vendor=("shop pay", "shop-pay")),
    _rule(
        "vendor_bnpl",
        "bnpl_fees",
        0.9,
        vendor=("afterpay", "affirm", "klarna", "sezzle"),
    ),
    _rule("vendor_shopify", "shopify_platform", 0.9, vendor=("shopify",)),
    # Fulfillment & 3PL
    _rule(
        "vendor_amazon_fba",
        "fulfillment_3pl_fees",
        0.9,
        vendor=("amazon fba", "fulfillment by amazon"),
    ),
    _rule(
        "vendor_3pl",
        "fulfillment_3pl_fees",
        0.9,
        vendor=("shipbob", "red stag", "whiplash", "shipmonk"),
    ),
    # Shipping
    _rule("vendor_carrier", "shipping_expense", 0.9, vendor=("usps", "ups", "fedex", "dhl")),
    _rule(
        "vendor_shipping_software",
        "shipping_expense",
        0.9,
        vendor=("shipstation", "shippo", "easypost"),
    ),
    # Email/SMS marketing tools
    _rule(
        "vendor_email_tools",
        "email_sms_tools",
        0.9,
        vendor=("klaviyo", "mailchimp", "constant contact"),
    ),
    _rule(
        "vendor_sms_tools",
        "email_sms_tools",
        0.9,
        vendor=("attentive", "postscript", "smsbump"),
    ),
    # Merchant category codes
    _rule("mcc_4215_courier", "shipping_expense", 0.9, mcc="4215"),
    _rule("mcc_9402_postal", "shipping_expense", 0.9, mcc="9402"),
    _rule("mcc_5734_software", "app_subscriptions", 0.85, mcc="5734"),
    _rule("mcc_7311_advertising", "marketing", 0.85, mcc="7311"),
    _rule("mcc_7399_business_services", "professional_services", 0.8, mcc="7399"),
    _rule("mcc_5921_package_stores", "packaging_supplies", 0.8, mcc="5921"),
    # Description keywords
    _rule("desc_bank_fee", "bank_fees", 0.9, description=("bank fee", "service charge")),
    _rule("desc_rent", "rent_utilities", 0.85, description=("rent", "lease")),
    _rule("desc_insurance", "insurance", 0.85, description=("insurance",)),
    _rule(
        "desc_fulfillment",
        "fulfillment_3pl_fees",
        0.8,
        description=("fulfillment", "3pl", "warehouse"),
    ),
    _rule(
        "desc_inventory",
        "inventory_purchases",
        0.8,
        description=("inventory", "wholesale", "supplier"),
    ),
    _rule(
        "desc_manufacturing",
        "manufacturing_costs",
        0.8,
        description=("manufacturing", "production", "factory"),
    ),
    _rule(
        "desc_packaging",
        "packaging_supplies",
        0.8,
        description=("packaging", "boxes", "mailers"),
    ),
    _rule(
        "desc_office_supplies",
        "office_supplies",
        0.8,
        description=("office supplies", "stationery"),
    ),
    _rule(
        "desc_travel",
        "travel",
        0.8,
        description=("travel", "hotel", "flight", "uber", "lyft"),
    ),
    _rule("desc_shipping", "shipping_expense", 0.75, description=("shipping", "postage", "freight")),
)


def find_matching_rule(
    tx: NormalizedTransaction,
    rules: Sequence[VendorRule] = PASS1_RULES,
) -> VendorRule | None:
    """Return the first rule in ``rules`` matching ``tx``, or ``None``."""

    description_text = normalize_text(tx.description)
    vendor_text = normalize_vendor(tx.merchant_name) if tx.merchant_name else description_text
    mcc = tx.mcc.strip() if tx.mcc else None
    for rule in rules:
        if rule.matches(vendor_text, description_text, mcc):
            return rule
    return None


def pass1_categorize(
    tx: NormalizedTransaction,
    rules: Sequence[VendorRule] = PASS1_RULES,
) -> Pass1Outcome:
    """Categorize ``tx`` with the deterministic rule table."""

    rule = find_matching_rule(tx, rules)
    if rule is None:
        _logger.debug("pass1:no_match tx_id=%s", tx.id)
        return NoMatch()
    _logger.debug(
        "pass1:match tx_id=%s rule=%s slug=%s confidence=%.2f",
        tx.id,
        rule.rule_id,
        rule.category_slug,
        rule.confidence,
    )
    return Matched(
        category_slug=rule.category_slug,
        confidence=rule.confidence,
        source="pass1",
        rationale=(f"rule: {rule.rule_id} -> {rule.category_slug}",),
    )


__all__ = [
    "PASS1_RULES",
    "VendorRule",
    "find_matching_rule",
    "normalize_text",
    "normalize_vendor",
    "pass1_categorize",
]
