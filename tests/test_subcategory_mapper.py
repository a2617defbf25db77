from __future__ import annotations

from models.subcategory import Subcategory
from services.subcategory_mapper import (
    format_breadcrumb,
    format_descendant,
    format_subcategory,
    format_tree,
)
from services.subcategory_tree import SubcategoryTree


def test_none_maps_to_none():
    assert format_subcategory(None) is None


def test_record_has_snake_and_camel_keys(db, electronics_tree):
    _, phones, _ = electronics_tree

    record = format_subcategory(phones, product_count=3, children_count=1)

    assert record["subcategory_id"] == record["subcategoryId"] == phones.subcategory_id
    assert record["parent_id"] == record["parentId"]
    assert record["level"] == 2
    assert record["product_count"] == record["productCount"] == 3
    assert record["has_children"] is True
    assert record["is_active"] is True and record["isActive"] is True


def test_public_id_comes_from_primary_key(db, electronics_tree):
    _, phones, _ = electronics_tree

    assert format_subcategory(phones)["id"] == phones.subcategory_id
    assert not hasattr(Subcategory, "id")


def test_localized_name_falls_back_to_english(db, make_node):
    node = make_node("Phones", subcategory_name_ar="هواتف", description_en="All phones")
    node.subcategory_name_he = None
    db.commit()

    assert format_subcategory(node, lang="ar")["name"] == "هواتف"
    assert format_subcategory(node, lang="he")["name"] == "Phones"
    assert format_subcategory(node, lang="he")["description"] == "All phones"


def test_tree_records_nest_children(db, category, electronics_tree):
    tree = SubcategoryTree.get_nested_tree(db, category.category_id)

    records = format_tree(tree)

    assert records[0]["children_count"] == 1
    assert records[0]["children"][0]["children"][0]["name"] == "Smartphones"
    assert records[0]["children"][0]["children"][0]["has_children"] is False


def test_breadcrumb_types(db, electronics_tree):
    _, _, smartphones = electronics_tree

    crumbs = [format_breadcrumb(e) for e in SubcategoryTree.get_parent_chain(db, smartphones.subcategory_id)]

    assert [c["type"] for c in crumbs] == ["category", "subcategory", "subcategory", "subcategory"]
    assert crumbs[0]["name"] == "Electronics"
    assert crumbs[-1]["level"] == 3


def test_descendant_record_carries_depth(db, electronics_tree):
    electronics, _, _ = electronics_tree

    records = [
        format_descendant(node, depth)
        for node, depth in SubcategoryTree.get_descendants(db, electronics.subcategory_id)
    ]

    assert [(r["name"], r["depth"]) for r in records] == [("Phones", 1), ("Smartphones", 2)]
