"""Prompt construction for pass-2 categorization.

This module builds:
- The user prompt for a single transaction (``build_categorization_prompt``),
  a pure function of the transaction and the prompt-eligible category set.
- The system instructions for the Responses API call.
- The strict ``response_format`` (JSON Schema) object constraining the model
  to one prompt-eligible slug, a confidence and a rationale.
"""

from __future__ import annotations

from openai.types.responses.response_format_text_json_schema_config_param import (
    ResponseFormatTextJSONSchemaConfigParam,
)

from .models import CategoryType, NormalizedTransaction
from .money import format_cents
from .taxonomy import get_categories_by_type, get_prompt_categories

DESCRIPTION_LIMIT = 160
_ELLIPSIS = "..."

_DOMAIN_RULES: tuple[str, ...] = (
    "- Refunds/returns must not map to revenue; choose refunds_allowances_contra.",
    "- Payment processors (Stripe, PayPal, Shopify Payments, BNPL) must not map to revenue.",
    "- If uncertain, choose a broader expense category with lower confidence.",
)


def truncate_description(description: str, limit: int = DESCRIPTION_LIMIT) -> str:
    """Return ``description`` cut to ``limit`` characters including the ellipsis."""

    if len(description) <= limit:
        return description
    return description[: limit - len(_ELLIPSIS)] + _ELLIPSIS


def _prompt_slugs(type_: CategoryType) -> str:
    return ", ".join(c.slug for c in get_categories_by_type(type_) if c.include_in_prompt)


def build_system_instructions() -> str:
    return (
        "You are a financial categorization expert for e-commerce businesses. "
        "Always respond with valid JSON only."
    )


def build_categorization_prompt(
    tx: NormalizedTransaction,
    prior_category_name: str | None = None,
) -> str:
    """Build the categorization prompt for ``tx``.

    The amount is rendered with :func:`categorizer.money.format_cents` so it is
    derived by integer division. When ``prior_category_name`` is given it is
    included as a hint line; otherwise the line is omitted.
    """

    lines: list[str] = [
        build_system_instructions(),
        "",
        "Categorize this business transaction for an e-commerce store:",
        "",
        "Transaction Details:",
        f"- Merchant: {tx.merchant_name or 'Unknown'}",
        f"- Description: {truncate_description(tx.description)}",
        f"- Amount: {format_cents(tx.amount_cents)}",
        f"- MCC: {tx.mcc or 'Not provided'}",
        "- Industry: ecommerce",
    ]
    if prior_category_name:
        lines.append(f"- Prior category: {prior_category_name}")
    lines += [
        "",
        "Available categories:",
        f"Revenue: {_prompt_slugs('revenue')}",
        f"COGS: {_prompt_slugs('cogs')}",
        f"Expenses: {_prompt_slugs('opex')}",
        "",
        "Return JSON only:",
        "{",
        '  "category_slug": "most_appropriate_category",',
        '  "confidence": 0.95,',
        '  "rationale": "Brief explanation of why this category fits"',
        "}",
        "",
        "Rules:",
        *_DOMAIN_RULES,
    ]
    return "\n".join(lines)


def get_available_category_slugs() -> list[str]:
    return [c.slug for c in get_prompt_categories()]


def is_valid_category_slug(slug: str) -> bool:
    return slug in get_available_category_slugs()


def build_response_format() -> ResponseFormatTextJSONSchemaConfigParam:
    """Return the strict JSON Schema response_format for a single verdict.

    Schema shape::

        {
          "type": "json_schema",
          "name": "transaction_category",
          "schema": {
            "type": "object",
            "properties": {
              "category_slug": {"type": "string", "enum": [...]},
              "confidence": {"type": "number", "minimum": 0, "maximum": 1},
              "rationale": {"type": "string"}
            },
            "required": ["category_slug", "confidence", "rationale"],
            "additionalProperties": false
          },
          "strict": true
        }
    """

    slugs = get_available_category_slugs()
    if not slugs:
        raise ValueError("taxonomy must contain at least one prompt-eligible category")

    result: ResponseFormatTextJSONSchemaConfigParam = {
        "type": "json_schema",
        "name": "transaction_category",
        "schema": {
            "type": "object",
            "properties": {
                "category_slug": {"type": "string", "enum": slugs},
                "confidence": {"type": "number", "minimum": 0, "maximum": 1},
                "rationale": {"type": "string"},
            },
            "required": ["category_slug", "confidence", "rationale"],
            "additionalProperties": False,
        },
        "strict": True,
    }
    return result


__all__ = [
    "DESCRIPTION_LIMIT",
    "build_categorization_prompt",
    "build_response_format",
    "build_system_instructions",
    "get_available_category_slugs",
    "is_valid_category_slug",
    "truncate_description",
]
