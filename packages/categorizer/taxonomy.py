"""Static ecommerce taxonomy and lookup helpers.

The taxonomy is a process-wide immutable table built once at import time and
validated before any lookup can run. Ids match the database seed so they are
stable across environments. Lookups never raise for unknown keys: a miss is a
normal outcome and returns ``None`` or an empty tuple.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from types import MappingProxyType

from .models import CATEGORY_TYPES, CategoryNode, CategoryType

type Industry = str

SUPPORTED_INDUSTRIES: tuple[Industry, ...] = ("ecommerce",)

CATCH_ALL_SLUG = "other_ops"

_ID_PREFIX = "550e8400-e29b-41d4-a716-446655440"

# slug -> trailing digits of the stable id
CATEGORY_IDS: Mapping[str, str] = MappingProxyType(
    {
        slug: _ID_PREFIX + suffix
        for slug, suffix in (
            # Tier 1
            ("revenue", "100"),
            ("cogs", "200"),
            ("operating_expenses", "300"),
            ("taxes_liabilities", "400"),
            ("clearing", "500"),
            # Revenue
            ("dtc_sales", "101"),
            ("shipping_income", "102"),
            ("discounts_contra", "103"),
            ("refunds_allowances_contra", "104"),
            # COGS
            ("inventory_purchases", "201"),
            ("inbound_freight", "202"),
            ("packaging_supplies", "203"),
            ("manufacturing_costs", "204"),
            # Payment processing
            ("payment_processing_fees", "301"),
            ("stripe_fees", "311"),
            ("paypal_fees", "312"),
            ("shop_pay_fees", "313"),
            ("bnpl_fees", "314"),
            # Marketing
            ("marketing", "302"),
            ("ads_meta", "321"),
            ("ads_google", "322"),
            ("ads_tiktok", "323"),
            ("ads_other", "324"),
            # Platform & tools
            ("shopify_platform", "331"),
            ("app_subscriptions", "332"),
            ("email_sms_tools", "333"),
            # Fulfillment & logistics
            ("fulfillment_3pl_fees", "341"),
            ("warehouse_storage", "342"),
            ("shipping_expense", "343"),
            ("returns_processing", "344"),
            # General business
            ("software_general", "351"),
            ("professional_services", "352"),
            ("rent_utilities", "353"),
            ("insurance", "354"),
            ("payroll_contractors", "355"),
            ("office_supplies", "356"),
            ("travel", "357"),
            ("bank_fees", "358"),
            ("other_ops", "359"),
            # Taxes & liabilities
            ("sales_tax_payable", "401"),
            ("duties_import_taxes", "402"),
            # Clearing
            ("shopify_payouts_clearing", "501"),
            # Post-MVP
            ("amazon_fees", "360"),
            ("amazon_payouts", "502"),
        )
    }
)


def _node(
    slug: str,
    name: str,
    type_: CategoryType,
    parent_slug: str | None,
    *,
    pnl: bool = True,
    prompt: bool = True,
) -> CategoryNode:
    return CategoryNode(
        id=CATEGORY_IDS[slug],
        slug=slug,
        name=name,
        type=type_,
        parent_id=CATEGORY_IDS[parent_slug] if parent_slug else None,
        is_pnl=pnl,
        include_in_prompt=prompt,
    )


ECOMMERCE_TAXONOMY: tuple[CategoryNode, ...] = (
    # Revenue
    _node("dtc_sales", "DTC Sales", "revenue", "revenue"),
    _node("shipping_income", "Shipping Income", "revenue", "revenue"),
    _node("discounts_contra", "Discounts (Contra-Revenue)", "revenue", "revenue"),
    _node(
        "refunds_allowances_contra",
        "Refunds & Allowances (Contra-Revenue)",
        "revenue",
        "revenue",
    ),
    # Cost of goods sold
    _node("inventory_purchases", "Inventory Purchases", "cogs", "cogs"),
    _node("inbound_freight", "Inbound Freight", "cogs", "cogs"),
    _node("packaging_supplies", "Packaging Supplies", "cogs", "cogs"),
    _node("manufacturing_costs", "Manufacturing Costs", "cogs", "cogs"),
    # Operating expenses: payment processing
    _node("payment_processing_fees", "Payment Processing Fees", "opex", "operating_expenses"),
    _node("stripe_fees", "Stripe Fees", "opex", "payment_processing_fees"),
    _node("paypal_fees", "PayPal Fees", "opex", "payment_processing_fees"),
    _node("shop_pay_fees", "Shop Pay Fees", "opex", "payment_processing_fees"),
    _node("bnpl_fees", "BNPL Fees", "opex", "payment_processing_fees"),
    # Operating expenses: marketing
    _node("marketing", "Marketing & Advertising", "opex", "operating_expenses"),
    _node("ads_meta", "Meta Ads", "opex", "marketing"),
    _node("ads_google", "Google Ads", "opex", "marketing"),
    _node("ads_tiktok", "TikTok Ads", "opex", "marketing"),
    _node("ads_other", "Other Ads", "opex", "marketing"),
    # Operating expenses: platform & tools
    _node("shopify_platform", "Shopify Platform", "opex", "operating_expenses"),
    _node("app_subscriptions", "App Subscriptions", "opex", "operating_expenses"),
    _node("email_sms_tools", "Email/SMS Tools", "opex", "operating_expenses"),
    # Operating expenses: fulfillment & logistics
    _node("fulfillment_3pl_fees", "Fulfillment & 3PL Fees", "opex", "operating_expenses"),
    _node("warehouse_storage", "Warehouse Storage", "opex", "operating_expenses"),
    _node("shipping_expense", "Shipping Expense", "opex", "operating_expenses"),
    _node("returns_processing", "Returns Processing", "opex", "operating_expenses"),
    # Operating expenses: general business
    _node("software_general", "Software (General)", "opex", "operating_expenses"),
    _node("professional_services", "Professional Services", "opex", "operating_expenses"),
    _node("rent_utilities", "Rent & Utilities", "opex", "operating_expenses"),
    _node("insurance", "Insurance", "opex", "operating_expenses"),
    _node("payroll_contractors", "Payroll/Contractors", "opex", "operating_expenses"),
    _node("office_supplies", "Office Supplies", "opex", "operating_expenses"),
    _node("travel", "Travel & Transportation", "opex", "operating_expenses"),
    _node("bank_fees", "Bank Fees", "opex", "operating_expenses"),
    _node("other_ops", "Other Operating Expenses", "opex", "operating_expenses"),
    # Taxes & liabilities (not in P&L)
    _node(
        "sales_tax_payable",
        "Sales Tax Payable",
        "liability",
        "taxes_liabilities",
        pnl=False,
        prompt=False,
    ),
    _node("duties_import_taxes", "Duties & Import Taxes", "opex", "operating_expenses"),
    # Clearing (not in P&L)
    _node(
        "shopify_payouts_clearing",
        "Shopify Payouts Clearing",
        "clearing",
        "clearing",
        pnl=False,
        prompt=False,
    ),
    # Post-MVP placeholders, hidden from the prompt
    _node("amazon_fees", "Amazon Fees", "opex", "operating_expenses", prompt=False),
    _node("amazon_payouts", "Amazon Payouts", "clearing", "clearing", pnl=False, prompt=False),
    # Tier 1
    _node("revenue", "Revenue", "revenue", None, prompt=False),
    _node("cogs", "Cost of Goods Sold", "cogs", None, prompt=False),
    _node("operating_expenses", "Operating Expenses", "opex", None, prompt=False),
    _node("taxes_liabilities", "Taxes & Liabilities", "liability", None, pnl=False, prompt=False),
    _node("clearing", "Clearing", "clearing", None, pnl=False, prompt=False),
)


def validate_taxonomy(nodes: Sequence[CategoryNode]) -> None:
    """Raise ``ValueError`` when ``nodes`` break a taxonomy invariant.

    Checked: unique ids and slugs, known types, resolvable parents, and
    balance-sheet (liability/clearing) nodes being neither P&L nor
    prompt-eligible. Prompt-eligible nodes must be P&L nodes.
    """

    ids: set[str] = set()
    slugs: set[str] = set()
    for n in nodes:
        if n.id in ids:
            raise ValueError(f"duplicate category id: {n.id}")
        if n.slug in slugs:
            raise ValueError(f"duplicate category slug: {n.slug}")
        ids.add(n.id)
        slugs.add(n.slug)
        if n.type not in CATEGORY_TYPES:
            raise ValueError(f"unknown category type {n.type!r} for {n.slug}")
        if n.type in ("liability", "clearing") and (n.is_pnl or n.include_in_prompt):
            raise ValueError(f"balance-sheet category must be non-P&L and hidden: {n.slug}")
        if n.include_in_prompt and not n.is_pnl:
            raise ValueError(f"non-P&L category offered to the model: {n.slug}")
    for n in nodes:
        if n.parent_id is not None and n.parent_id not in ids:
            raise ValueError(f"unknown parent id {n.parent_id} for {n.slug}")


validate_taxonomy(ECOMMERCE_TAXONOMY)

_BY_SLUG: Mapping[str, CategoryNode] = MappingProxyType({n.slug: n for n in ECOMMERCE_TAXONOMY})
_BY_ID: Mapping[str, CategoryNode] = MappingProxyType({n.id: n for n in ECOMMERCE_TAXONOMY})


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def get_active_taxonomy() -> tuple[CategoryNode, ...]:
    """Return the node list for the (currently sole) supported industry."""
    return ECOMMERCE_TAXONOMY


def get_category_by_slug(slug: str) -> CategoryNode | None:
    return _BY_SLUG.get(slug)


def get_category_by_id(category_id: str) -> CategoryNode | None:
    return _BY_ID.get(category_id)


def get_categories_by_type(type_: CategoryType) -> tuple[CategoryNode, ...]:
    """Return every node of ``type_``, tier-1 parents included."""
    return tuple(n for n in ECOMMERCE_TAXONOMY if n.type == type_)


def get_child_categories(parent_slug: str) -> tuple[CategoryNode, ...]:
    parent = get_category_by_slug(parent_slug)
    if parent is None:
        return ()
    return tuple(n for n in ECOMMERCE_TAXONOMY if n.parent_id == parent.id)


def get_prompt_categories() -> tuple[CategoryNode, ...]:
    """Return the candidate label set offered to (and accepted from) the model."""
    return tuple(n for n in ECOMMERCE_TAXONOMY if n.include_in_prompt)


def is_pnl_category(slug: str) -> bool:
    node = get_category_by_slug(slug)
    return node.is_pnl if node is not None else False


def get_catch_all_category() -> CategoryNode:
    return _BY_SLUG[CATCH_ALL_SLUG]


def map_category_slug_to_id(slug: str) -> str:
    """Resolve ``slug`` to its id, degrading to the catch-all for unknown slugs.

    The pipeline must never fail on an unrecognized label; callers that need
    to know whether the fallback happened check :func:`get_category_by_slug`.
    """

    node = _BY_SLUG.get(slug)
    if node is not None:
        return node.id
    return _BY_SLUG[CATCH_ALL_SLUG].id


def create_slug_to_id_mapping() -> dict[str, str]:
    """Return a fresh ``slug -> id`` dict for database operations."""
    return {n.slug: n.id for n in ECOMMERCE_TAXONOMY}


__all__ = [
    "CATCH_ALL_SLUG",
    "CATEGORY_IDS",
    "ECOMMERCE_TAXONOMY",
    "SUPPORTED_INDUSTRIES",
    "create_slug_to_id_mapping",
    "get_active_taxonomy",
    "get_catch_all_category",
    "get_categories_by_type",
    "get_category_by_id",
    "get_category_by_slug",
    "get_child_categories",
    "get_prompt_categories",
    "is_pnl_category",
    "map_category_slug_to_id",
    "validate_taxonomy",
]
