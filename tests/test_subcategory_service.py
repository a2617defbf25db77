from __future__ import annotations

import pytest

from core.exceptions import (
    BusinessLogicError,
    ConflictError,
    ResourceNotFoundError,
    ValidationError,
)
from models.subcategory import Subcategory
from services import subcategory_store as store
from services.image import ImageService
from services.subcategory import SubcategoryService
from services.subcategory_tree import SubcategoryTree


# ----------------------------
# Helpers
# ----------------------------

def _assert_tree_consistent(db):
    """Levels follow parents, parents share the category, no cycles"""
    nodes = {n.subcategory_id: n for n in db.query(Subcategory).all()}
    max_level = max((n.level for n in nodes.values()), default=0)

    for node in nodes.values():
        if node.parent_id is None:
            assert node.level == 1, node
            continue
        parent = nodes[node.parent_id]
        assert node.level == parent.level + 1, node
        assert node.category_id == parent.category_id, node

        steps, current = 0, node
        while current.parent_id is not None:
            current = nodes[current.parent_id]
            steps += 1
            assert steps <= max_level, f"cycle through {node}"


def _reload(db, node):
    db.expire_all()
    return store.get_subcategory_by_id(db, node.subcategory_id)


# ----------------------------
# create_node
# ----------------------------

def test_create_computes_levels(db, electronics_tree):
    electronics, phones, smartphones = electronics_tree

    assert (electronics.level, phones.level, smartphones.level) == (1, 2, 3)
    assert smartphones.parent_id == phones.subcategory_id
    _assert_tree_consistent(db)


def test_create_defaults_other_locales_to_english_name(db, make_node):
    node = make_node("Laptops", subcategory_name_ar="حواسيب")

    assert node.subcategory_name_ar == "حواسيب"
    assert node.subcategory_name_he == "Laptops"


def test_create_requires_existing_category(db, category):
    with pytest.raises(ResourceNotFoundError) as exc:
        SubcategoryService.create_node(db, {"category_id": 77, "subcategory_name_en": "Ghost"})
    assert exc.value.resource == "Category"


def test_create_requires_existing_parent(db, category):
    with pytest.raises(ResourceNotFoundError):
        SubcategoryService.create_node(db, {
            "category_id": category.category_id,
            "parent_id": 500,
            "subcategory_name_en": "Ghost",
        })


def test_create_rejects_parent_from_other_category(db, other_category, make_node):
    root = make_node("Phones")

    with pytest.raises(ValidationError):
        make_node("Cables", parent=root, category_id=other_category.category_id)


def test_create_rejects_blank_name(db, category):
    with pytest.raises(ValidationError):
        SubcategoryService.create_node(db, {"category_id": category.category_id, "subcategory_name_en": "   "})


def test_duplicate_name_in_category_conflicts(db, make_node):
    root = make_node("Phones")

    with pytest.raises(ConflictError):
        make_node("Phones", parent=root)


def test_same_name_allowed_in_another_category(db, other_category, make_node):
    make_node("Accessories")
    node = make_node("Accessories", category_id=other_category.category_id)

    assert node.category_id == other_category.category_id


# ----------------------------
# update_fields
# ----------------------------

def test_rename_frees_old_name(db, make_node):
    node = make_node("Phones")

    SubcategoryService.update_fields(db, node.subcategory_id, {"subcategory_name_en": "Mobiles"})
    reused = make_node("Phones")

    assert reused.subcategory_id != node.subcategory_id


def test_rename_to_taken_name_conflicts(db, make_node):
    make_node("Phones")
    node = make_node("Tablets")

    with pytest.raises(ConflictError):
        SubcategoryService.update_fields(db, node.subcategory_id, {"subcategory_name_en": "Phones"})


def test_update_ignores_structural_fields(db, other_category, electronics_tree):
    electronics, phones, smartphones = electronics_tree

    node = SubcategoryService.update_fields(db, smartphones.subcategory_id, {
        "parent_id": None,
        "level": 9,
        "category_id": other_category.category_id,
        "description_en": "Pocket computers",
    })

    assert node.parent_id == phones.subcategory_id
    assert node.level == 3
    assert node.description_en == "Pocket computers"


def test_update_missing_node_raises_not_found(db, category):
    with pytest.raises(ResourceNotFoundError):
        SubcategoryService.update_fields(db, 404, {"description_en": "x"})


# ----------------------------
# reparent
# ----------------------------

def test_reparent_to_self_fails(db, electronics_tree):
    electronics, _, _ = electronics_tree

    with pytest.raises(ValidationError):
        SubcategoryService.reparent(db, electronics.subcategory_id, electronics.subcategory_id)


def test_reparent_under_own_descendant_fails(db, electronics_tree):
    electronics, phones, smartphones = electronics_tree

    for node, _ in SubcategoryTree.get_descendants(db, electronics.subcategory_id):
        with pytest.raises(ValidationError):
            SubcategoryService.reparent(db, electronics.subcategory_id, node.subcategory_id)

    assert _reload(db, electronics).parent_id is None
    _assert_tree_consistent(db)


def test_reparent_to_missing_parent_fails(db, electronics_tree):
    electronics, _, _ = electronics_tree

    with pytest.raises(ResourceNotFoundError):
        SubcategoryService.reparent(db, electronics.subcategory_id, 9999)


def test_reparent_relevels_whole_subtree(db, make_node):
    # P sits at level 5
    parent = None
    for name in ("L1", "L2", "L3", "L4", "P"):
        parent = make_node(name, parent=parent)
    assert parent.level == 5

    a = make_node("A")
    b = make_node("B", parent=a)
    c = make_node("C", parent=b)

    SubcategoryService.reparent(db, a.subcategory_id, parent.subcategory_id, actor_id="admin-1")

    assert [_reload(db, n).level for n in (a, b, c)] == [6, 7, 8]
    _assert_tree_consistent(db)


def test_reparent_to_root(db, electronics_tree):
    electronics, phones, smartphones = electronics_tree

    moved = SubcategoryService.reparent(db, phones.subcategory_id, None)

    assert moved.parent_id is None
    assert moved.level == 1
    assert _reload(db, smartphones).level == 2
    _assert_tree_consistent(db)


def test_reparent_into_other_category_carries_subtree(db, other_category, electronics_tree, make_node):
    electronics, phones, smartphones = electronics_tree
    kitchen = make_node("Kitchen", category_id=other_category.category_id)

    SubcategoryService.reparent(db, phones.subcategory_id, kitchen.subcategory_id)

    assert _reload(db, phones).category_id == other_category.category_id
    assert _reload(db, smartphones).category_id == other_category.category_id
    assert _reload(db, smartphones).level == 3
    _assert_tree_consistent(db)


def test_reparent_into_other_category_with_name_clash_changes_nothing(db, other_category, electronics_tree, make_node):
    electronics, phones, smartphones = electronics_tree
    kitchen = make_node("Kitchen", category_id=other_category.category_id)
    make_node("Smartphones", category_id=other_category.category_id)

    with pytest.raises(ConflictError):
        SubcategoryService.reparent(db, phones.subcategory_id, kitchen.subcategory_id)

    assert _reload(db, phones).parent_id == electronics.subcategory_id
    assert _reload(db, smartphones).category_id == electronics.category_id


# ----------------------------
# move_to_category
# ----------------------------

def test_move_to_category_makes_root_and_recategorizes(db, other_category, electronics_tree):
    electronics, phones, smartphones = electronics_tree

    moved = SubcategoryService.move_to_category(db, phones.subcategory_id, other_category.category_id)

    assert moved.parent_id is None
    assert moved.level == 1
    assert moved.category_id == other_category.category_id
    child = _reload(db, smartphones)
    assert (child.level, child.category_id) == (2, other_category.category_id)
    _assert_tree_consistent(db)


def test_move_to_unknown_category_fails(db, electronics_tree):
    _, phones, _ = electronics_tree

    with pytest.raises(ResourceNotFoundError):
        SubcategoryService.move_to_category(db, phones.subcategory_id, 31337)


def test_move_to_same_category_detaches_from_parent(db, category, electronics_tree):
    _, phones, _ = electronics_tree

    moved = SubcategoryService.move_to_category(db, phones.subcategory_id, category.category_id)

    assert moved.parent_id is None
    assert moved.level == 1


# ----------------------------
# delete
# ----------------------------

def test_delete_with_children_is_rejected(db, electronics_tree):
    _, phones, smartphones = electronics_tree

    with pytest.raises(ValidationError) as exc:
        SubcategoryService.delete(db, phones.subcategory_id)

    assert exc.value.details["children_count"] == 1
    assert _reload(db, phones) is not None
    assert _reload(db, smartphones).parent_id == phones.subcategory_id


def test_delete_leaf(db, electronics_tree):
    _, _, smartphones = electronics_tree

    assert SubcategoryService.delete(db, smartphones.subcategory_id, actor_id="admin-1") is True
    assert store.get_subcategory_by_id(db, smartphones.subcategory_id) is None


def test_delete_with_products_requires_reassign(db, electronics_tree, make_product):
    _, _, smartphones = electronics_tree
    product = make_product(smartphones)

    with pytest.raises(ValidationError):
        SubcategoryService.delete(db, smartphones.subcategory_id)

    SubcategoryService.delete(db, smartphones.subcategory_id, reassign_products=True)
    db.refresh(product)
    assert product.subcategory_id is None


def test_delete_missing_node(db, category):
    with pytest.raises(ResourceNotFoundError):
        SubcategoryService.delete(db, 12345)


# ----------------------------
# search
# ----------------------------

def test_search_treats_wildcards_literally(db, make_node):
    make_node("100% Cotton")
    make_node("1000 Cotton")
    make_node("Kids_Wear")
    make_node("KidsXWear")

    assert [n.subcategory_name_en for n in SubcategoryService.search(db, "100%")] == ["100% Cotton"]
    assert [n.subcategory_name_en for n in SubcategoryService.search(db, "s_W")] == ["Kids_Wear"]

    items, total = store.list_subcategories(db, search="_")
    assert total == 1
    assert items[0].subcategory_name_en == "Kids_Wear"


# ----------------------------
# admin operations
# ----------------------------

def test_toggles_flip_flags(db, make_node):
    node = make_node("Phones")

    assert SubcategoryService.toggle_status(db, node.subcategory_id).is_active is False
    assert SubcategoryService.toggle_featured(db, node.subcategory_id).is_featured is True


def test_toggle_failure_rolls_back_and_reraises(db, make_node, monkeypatch):
    node = make_node("Phones")
    real_update = store.update_subcategory

    def failing_update(db, subcategory_id, fields, commit=True):
        real_update(db, subcategory_id, fields, commit=False)
        raise RuntimeError("disk full")

    monkeypatch.setattr(store, "update_subcategory", failing_update)

    with pytest.raises(RuntimeError):
        SubcategoryService.toggle_status(db, node.subcategory_id)
    with pytest.raises(RuntimeError):
        SubcategoryService.update_display_order(db, node.subcategory_id, 9)

    reloaded = _reload(db, node)
    assert reloaded.is_active is True
    assert reloaded.display_order == 0


def test_upload_image_failure_discards_new_file(db, make_node, monkeypatch):
    node = make_node("Phones")
    stored = ImageService.upload_root() / "subcategories" / f"subcategory_{node.subcategory_id}_new.jpg"

    def fake_save(file, subcategory_id):
        stored.parent.mkdir(parents=True, exist_ok=True)
        stored.write_bytes(b"jpeg")
        return f"/uploads/subcategories/{stored.name}"

    def failing_update(db, subcategory_id, fields, commit=True):
        raise RuntimeError("database gone")

    monkeypatch.setattr(ImageService, "save_subcategory_image", staticmethod(fake_save))
    monkeypatch.setattr(store, "update_subcategory", failing_update)

    with pytest.raises(RuntimeError):
        SubcategoryService.upload_image(db, node.subcategory_id, file=None)

    assert not stored.exists()
    assert _reload(db, node).image_url is None


def test_reorder_applies_all_pairs(db, make_node):
    a = make_node("A")
    b = make_node("B")

    count = SubcategoryService.reorder(db, [(a.subcategory_id, 2), (b.subcategory_id, 1)])

    assert count == 2
    assert [_reload(db, n).display_order for n in (a, b)] == [2, 1]


def test_reorder_with_unknown_id_rolls_back(db, make_node):
    a = make_node("A")

    with pytest.raises(ResourceNotFoundError):
        SubcategoryService.reorder(db, [(a.subcategory_id, 7), (999, 1)])

    assert _reload(db, a).display_order == 0


def test_duplicate_copies_node_next_to_original(db, electronics_tree):
    _, phones, _ = electronics_tree

    first = SubcategoryService.duplicate(db, phones.subcategory_id)
    second = SubcategoryService.duplicate(db, phones.subcategory_id)

    assert first.subcategory_name_en == "Phones (Copy)"
    assert second.subcategory_name_en == "Phones (Copy 2)"
    assert first.parent_id == phones.parent_id
    assert first.level == phones.level
    assert first.is_active is False
    assert first.is_featured is False
    assert SubcategoryTree.get_children(db, first.subcategory_id) == []


def test_bulk_update_only_touches_flags(db, make_node):
    a = make_node("A")
    b = make_node("B")

    count = SubcategoryService.bulk_update(
        db,
        [a.subcategory_id, b.subcategory_id],
        {"is_featured": True, "subcategory_name_en": "Hacked"},
    )

    assert count == 2
    assert all(_reload(db, n).is_featured for n in (a, b))
    assert _reload(db, a).subcategory_name_en == "A"


def test_bulk_update_without_fields_fails(db, make_node):
    a = make_node("A")

    with pytest.raises(BusinessLogicError):
        SubcategoryService.bulk_update(db, [a.subcategory_id], {"is_active": None})


def test_bulk_delete_accepts_parent_with_its_children(db, electronics_tree):
    electronics, phones, smartphones = electronics_tree

    count = SubcategoryService.bulk_delete(
        db, [phones.subcategory_id, smartphones.subcategory_id]
    )

    assert count == 2
    assert SubcategoryTree.get_children(db, electronics.subcategory_id) == []


def test_bulk_delete_checks_everything_first(db, electronics_tree, make_node):
    electronics, phones, smartphones = electronics_tree
    leaf = make_node("Cameras")

    with pytest.raises(ValidationError):
        SubcategoryService.bulk_delete(db, [leaf.subcategory_id, phones.subcategory_id])

    assert store.get_subcategory_by_id(db, leaf.subcategory_id) is not None


def test_statistics(db, other_category, electronics_tree, make_node):
    make_node("Kitchen", category_id=other_category.category_id, is_featured=True)

    stats = SubcategoryService.get_statistics(db)

    assert stats["total_subcategories"] == 4
    assert stats["root_subcategories"] == 2
    assert stats["nested_subcategories"] == 2
    assert stats["featured_subcategories"] == 1
    assert stats["max_level"] == 3
    assert stats["subcategories_by_category"][other_category.category_id] == 1


def test_operation_sequence_keeps_tree_consistent(db, other_category, make_node):
    a = make_node("A")
    b = make_node("B", parent=a)
    c = make_node("C", parent=b)
    d = make_node("D")

    SubcategoryService.reparent(db, b.subcategory_id, d.subcategory_id)
    SubcategoryService.reparent(db, a.subcategory_id, c.subcategory_id)
    SubcategoryService.move_to_category(db, d.subcategory_id, other_category.category_id)
    SubcategoryService.reparent(db, c.subcategory_id, None)

    _assert_tree_consistent(db)
    assert _reload(db, a).category_id == other_category.category_id
