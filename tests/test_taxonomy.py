from __future__ import annotations

import dataclasses

import pytest

from categorizer import taxonomy as tx_mod
from categorizer.models import CategoryNode
from categorizer.taxonomy import (
    CATCH_ALL_SLUG,
    ECOMMERCE_TAXONOMY,
    create_slug_to_id_mapping,
    get_active_taxonomy,
    get_catch_all_category,
    get_categories_by_type,
    get_category_by_id,
    get_category_by_slug,
    get_child_categories,
    get_prompt_categories,
    is_pnl_category,
    map_category_slug_to_id,
    validate_taxonomy,
)


def test_ids_and_slugs_are_unique() -> None:
    nodes = get_active_taxonomy()
    assert len({n.id for n in nodes}) == len(nodes)
    assert len({n.slug for n in nodes}) == len(nodes)


def test_every_parent_resolves() -> None:
    for n in get_active_taxonomy():
        if n.parent_id is not None:
            assert get_category_by_id(n.parent_id) is not None, n.slug


def test_balance_sheet_nodes_are_hidden_and_non_pnl() -> None:
    for n in get_active_taxonomy():
        if n.type in ("liability", "clearing"):
            assert n.is_pnl is False
            assert n.include_in_prompt is False


def test_lookups_by_slug_and_id_agree() -> None:
    node = get_category_by_slug("stripe_fees")
    assert node is not None
    assert node.id == "550e8400-e29b-41d4-a716-446655440311"
    assert get_category_by_id(node.id) is node


def test_lookup_miss_returns_none() -> None:
    assert get_category_by_slug("not_a_real_slug") is None
    assert get_category_by_id("nope") is None


def test_categories_by_type_include_tier1_parent() -> None:
    revenue = get_categories_by_type("revenue")
    slugs = {n.slug for n in revenue}
    assert "revenue" in slugs
    assert {"dtc_sales", "refunds_allowances_contra"} <= slugs
    assert all(n.type == "revenue" for n in revenue)


def test_child_categories() -> None:
    kids = {n.slug for n in get_child_categories("payment_processing_fees")}
    assert kids == {"stripe_fees", "paypal_fees", "shop_pay_fees", "bnpl_fees"}
    assert get_child_categories("stripe_fees") == ()
    assert get_child_categories("unknown") == ()


def test_prompt_categories_exclude_hidden_nodes() -> None:
    slugs = {n.slug for n in get_prompt_categories()}
    assert "dtc_sales" in slugs
    assert "other_ops" in slugs
    for hidden in ("sales_tax_payable", "shopify_payouts_clearing", "amazon_fees", "revenue"):
        assert hidden not in slugs


def test_map_slug_to_id_falls_back_to_catch_all() -> None:
    assert map_category_slug_to_id("ads_meta") == get_category_by_slug("ads_meta").id
    assert map_category_slug_to_id("not_a_real_slug") == get_catch_all_category().id
    assert get_catch_all_category().slug == CATCH_ALL_SLUG == "other_ops"


def test_is_pnl_category() -> None:
    assert is_pnl_category("dtc_sales") is True
    assert is_pnl_category("sales_tax_payable") is False
    assert is_pnl_category("missing") is False


def test_slug_to_id_mapping_is_a_fresh_copy() -> None:
    mapping = create_slug_to_id_mapping()
    assert mapping["other_ops"] == "550e8400-e29b-41d4-a716-446655440359"
    mapping["other_ops"] = "x"
    assert create_slug_to_id_mapping()["other_ops"] != "x"


def test_contra_revenue_flag() -> None:
    assert get_category_by_slug("refunds_allowances_contra").is_contra_revenue
    assert get_category_by_slug("discounts_contra").is_contra_revenue
    assert not get_category_by_slug("dtc_sales").is_contra_revenue


def test_nodes_are_immutable() -> None:
    node = get_category_by_slug("travel")
    with pytest.raises(dataclasses.FrozenInstanceError):
        node.slug = "x"  # type: ignore[misc]


def _with(node: CategoryNode, **changes) -> tuple[CategoryNode, ...]:
    return tuple(dataclasses.replace(n, **changes) if n is node else n for n in ECOMMERCE_TAXONOMY)


def test_validate_rejects_duplicate_slug() -> None:
    travel = get_category_by_slug("travel")
    with pytest.raises(ValueError, match="duplicate category slug"):
        validate_taxonomy(_with(travel, slug="insurance"))


def test_validate_rejects_dangling_parent() -> None:
    travel = get_category_by_slug("travel")
    with pytest.raises(ValueError, match="unknown parent"):
        validate_taxonomy(_with(travel, parent_id="missing"))


def test_validate_rejects_prompt_eligible_liability() -> None:
    tax = get_category_by_slug("sales_tax_payable")
    with pytest.raises(ValueError, match="balance-sheet"):
        validate_taxonomy(_with(tax, include_in_prompt=True))


def test_table_is_a_module_constant() -> None:
    assert get_active_taxonomy() is tx_mod.ECOMMERCE_TAXONOMY
