from __future__ import annotations

from services import product_association


def test_counts_direct_and_subtree_products(db, electronics_tree, make_product):
    electronics, phones, smartphones = electronics_tree
    make_product(phones)
    make_product(smartphones)
    make_product(smartphones)

    assert product_association.get_product_count(db, phones.subcategory_id) == 1
    assert product_association.get_product_count_including_descendants(db, phones.subcategory_id) == 3
    assert product_association.get_product_count_including_descendants(db, electronics.subcategory_id) == 3


def test_product_counts_for_many_nodes(db, electronics_tree, make_product):
    electronics, phones, smartphones = electronics_tree
    make_product(smartphones)

    counts = product_association.get_product_counts(
        db, [electronics.subcategory_id, smartphones.subcategory_id]
    )

    assert counts == {electronics.subcategory_id: 0, smartphones.subcategory_id: 1}
    assert product_association.get_product_counts(db, []) == {}


def test_reassign_only_detaches_direct_products(db, electronics_tree, make_product):
    _, phones, smartphones = electronics_tree
    direct = make_product(phones)
    nested = make_product(smartphones)

    assert product_association.reassign_products_to_null(db, phones.subcategory_id) == 1

    db.refresh(direct)
    db.refresh(nested)
    assert direct.subcategory_id is None
    assert nested.subcategory_id == smartphones.subcategory_id


def test_get_products_lists_active_products_only(db, electronics_tree, make_product):
    _, phones, smartphones = electronics_tree
    make_product(phones)
    make_product(phones, is_active=False)
    make_product(smartphones)

    direct = product_association.get_products(db, phones.subcategory_id)
    subtree = product_association.get_products(db, phones.subcategory_id, include_descendants=True)

    assert direct["total"] == 1
    assert subtree["total"] == 2
    assert all(p.is_active for p in subtree["items"])


def test_get_products_paginates(db, electronics_tree, make_product):
    _, phones, _ = electronics_tree
    for _ in range(5):
        make_product(phones)

    page = product_association.get_products(db, phones.subcategory_id, page=2, limit=2)

    assert page["total"] == 5
    assert len(page["items"]) == 2
    assert (page["page"], page["limit"]) == (2, 2)
