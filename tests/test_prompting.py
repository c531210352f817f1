from __future__ import annotations

from typing import Any

from categorizer.models import NormalizedTransaction
from categorizer.prompting import (
    build_categorization_prompt,
    build_response_format,
    get_available_category_slugs,
    is_valid_category_slug,
    truncate_description,
)


def _tx(**overrides: Any) -> NormalizedTransaction:
    base: dict[str, Any] = {
        "id": "t1",
        "orgId": "org-1",
        "date": "2025-03-01",
        "amountCents": "2550",
        "description": "Order #1001",
        "merchantName": "Acme",
    }
    base.update(overrides)
    return NormalizedTransaction.model_validate(base)


def test_description_truncated_to_157_chars_plus_ellipsis() -> None:
    desc = "".join(chr(ord("a") + (i % 26)) for i in range(200))
    prompt = build_categorization_prompt(_tx(description=desc))
    assert f"- Description: {desc[:157]}...\n" in prompt
    assert desc not in prompt
    assert desc[:158] not in prompt


def test_description_at_limit_is_kept_whole() -> None:
    desc = "x" * 160
    assert truncate_description(desc) == desc
    assert truncate_description("y" * 161) == "y" * 157 + "..."


def test_amount_is_formatted_from_cents() -> None:
    assert "- Amount: $25.50\n" in build_categorization_prompt(_tx())
    assert "- Amount: $-25.00\n" in build_categorization_prompt(_tx(amountCents="-2500"))
    assert "- Amount: $0.07\n" in build_categorization_prompt(_tx(amountCents="7"))


def test_placeholders_for_missing_merchant_and_mcc() -> None:
    prompt = build_categorization_prompt(_tx(merchantName=None, mcc=None))
    assert "- Merchant: Unknown\n" in prompt
    assert "- MCC: Not provided\n" in prompt
    assert "- Industry: ecommerce\n" in prompt


def test_prior_category_hint_is_optional() -> None:
    assert "Prior category" not in build_categorization_prompt(_tx())
    prompt = build_categorization_prompt(_tx(), "Shipping Expense")
    assert "- Prior category: Shipping Expense\n" in prompt


def test_slug_lists_only_include_prompt_eligible_categories() -> None:
    prompt = build_categorization_prompt(_tx())
    lines = {ln.split(":", 1)[0]: ln.split(":", 1)[1] for ln in prompt.splitlines() if ":" in ln}
    revenue = [s.strip() for s in lines["Revenue"].split(",")]
    cogs = [s.strip() for s in lines["COGS"].split(",")]
    expenses = [s.strip() for s in lines["Expenses"].split(",")]
    assert revenue == ["dtc_sales", "shipping_income", "discounts_contra", "refunds_allowances_contra"]
    assert cogs == [
        "inventory_purchases",
        "inbound_freight",
        "packaging_supplies",
        "manufacturing_costs",
    ]
    assert "other_ops" in expenses
    assert "duties_import_taxes" in expenses
    for hidden in ("operating_expenses", "amazon_fees", "sales_tax_payable"):
        assert hidden not in expenses
    assert set(revenue + cogs + expenses) == set(get_available_category_slugs())


def test_prompt_states_json_contract_and_domain_rules() -> None:
    prompt = build_categorization_prompt(_tx())
    assert '"category_slug": "most_appropriate_category"' in prompt
    assert '"confidence": 0.95' in prompt
    assert "Refunds/returns must not map to revenue; choose refunds_allowances_contra." in prompt
    assert "Payment processors (Stripe, PayPal, Shopify Payments, BNPL)" in prompt


def test_prompt_is_deterministic() -> None:
    assert build_categorization_prompt(_tx(), "X") == build_categorization_prompt(_tx(), "X")


def test_is_valid_category_slug() -> None:
    assert is_valid_category_slug("ads_meta")
    assert not is_valid_category_slug("sales_tax_payable")
    assert not is_valid_category_slug("not_a_real_slug")


def test_response_format_is_strict_and_enumerates_prompt_slugs() -> None:
    fmt = build_response_format()
    assert fmt["type"] == "json_schema"
    assert fmt["strict"] is True
    schema = fmt["schema"]
    assert schema["additionalProperties"] is False
    assert schema["required"] == ["category_slug", "confidence", "rationale"]
    assert schema["properties"]["category_slug"]["enum"] == get_available_category_slugs()
