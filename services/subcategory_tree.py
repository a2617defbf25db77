"""
Read-side traversal of the subcategory tree.

Traversal is done one level at a time (one query per tree level) so it works
on any backend without recursive query support. Catalog trees are shallow, so
the number of round trips stays small; very deep or very wide trees will be
slow here.
"""
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional, Tuple, Union

from models.category import Category
from models.subcategory import Subcategory
from services import subcategory_store as store
from services.category import get_category_by_id, get_all_categories

TreeEntry = Dict[str, Any]
Breadcrumb = Union[Category, Subcategory]


class SubcategoryTree:

    @staticmethod
    def get_children(db: Session, parent_id: int, is_active: Optional[bool] = None) -> List[Subcategory]:
        """Direct children ordered by display_order, then name"""
        return store.list_by_parent(db, parent_id, is_active=is_active)

    @staticmethod
    def get_roots(db: Session, category_id: int, is_active: Optional[bool] = None) -> List[Subcategory]:
        """Nodes without a parent in the category"""
        return store.list_roots_by_category(db, category_id, is_active=is_active)

    @staticmethod
    def count_children(db: Session, parent_ids: List[int]) -> Dict[int, int]:
        """Number of direct children per node"""
        return store.count_children_by_parent(db, parent_ids)

    @staticmethod
    def get_nested_tree(db: Session, category_id: int, is_active: Optional[bool] = None) -> List[TreeEntry]:
        """Fully materialized forest for a category.

        Each entry is ``{"node": Subcategory, "children": [entries...]}``.
        When ``is_active`` is given, a filtered-out node hides its whole subtree.
        """
        roots = store.list_roots_by_category(db, category_id, is_active=is_active)
        forest = [{"node": node, "children": []} for node in roots]

        entries_by_id = {entry["node"].subcategory_id: entry for entry in forest}
        frontier = list(entries_by_id.keys())

        while frontier:
            children = store.list_by_parents(db, frontier, is_active=is_active)
            next_frontier = []
            for child in children:
                if child.subcategory_id in entries_by_id:
                    continue
                entry = {"node": child, "children": []}
                entries_by_id[child.subcategory_id] = entry
                entries_by_id[child.parent_id]["children"].append(entry)
                next_frontier.append(child.subcategory_id)
            frontier = next_frontier

        return forest

    @staticmethod
    def get_parent_chain(db: Session, subcategory_id: int) -> List[Breadcrumb]:
        """Breadcrumbs from the owning category down to the node.

        The first element is the ``Category``, followed by subcategories
        root-first, node-last. A parent reference that cannot be resolved ends
        the walk early instead of failing. Unknown node -> empty list.
        """
        chain: List[Subcategory] = []
        seen = set()
        current_id = subcategory_id

        while current_id is not None and current_id not in seen:
            node = store.get_subcategory_by_id(db, current_id)
            if node is None:
                break
            seen.add(current_id)
            chain.insert(0, node)
            current_id = node.parent_id

        if not chain:
            return []

        category = get_category_by_id(db, chain[0].category_id)
        if category is not None:
            return [category, *chain]
        return chain

    @staticmethod
    def get_descendants(
        db: Session,
        subcategory_id: int,
        is_active: Optional[bool] = None
    ) -> List[Tuple[Subcategory, int]]:
        """Every node below ``subcategory_id`` with its depth relative to it.

        Direct children have depth 1, grandchildren depth 2 and so on. The walk
        is breadth-first, one query per level.
        """
        descendants: List[Tuple[Subcategory, int]] = []
        visited = {subcategory_id}
        frontier = [subcategory_id]
        depth = 0

        while frontier:
            depth += 1
            children = store.list_by_parents(db, frontier, is_active=is_active)
            frontier = []
            for child in children:
                # Guards against a cycle already present in stored data
                if child.subcategory_id in visited:
                    continue
                visited.add(child.subcategory_id)
                descendants.append((child, depth))
                frontier.append(child.subcategory_id)

        return descendants

    @staticmethod
    def get_descendant_ids(db: Session, subcategory_id: int) -> List[int]:
        """The node's own id followed by the ids of all its descendants"""
        return [subcategory_id] + [
            node.subcategory_id for node, _ in SubcategoryTree.get_descendants(db, subcategory_id)
        ]

    @staticmethod
    def get_full_hierarchy(db: Session, is_active: Optional[bool] = None) -> List[Tuple[Category, List[TreeEntry]]]:
        """Every category paired with its nested subcategory tree"""
        return [
            (category, SubcategoryTree.get_nested_tree(db, category.category_id, is_active=is_active))
            for category in get_all_categories(db, is_active=is_active)
        ]
