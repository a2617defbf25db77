"""
Write side of the subcategory hierarchy.

Every structural change goes through ``SubcategoryService`` so that after each
call the tree satisfies:

* ``parent_id`` is NULL or points at an existing node of the same category;
* ``level`` is 1 for a root and ``parent.level + 1`` otherwise;
* the parent graph is acyclic;
* English names are unique inside a category.

Mutations are not serialized: callers that need isolation between concurrent
moves of the same subtree must provide it themselves.
"""
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional, Tuple, Union
from fastapi import UploadFile
import logging

from models.subcategory import Subcategory, LOCALES, PRIMARY_LOCALE
from schemas.subcategory import SubcategoryCreate, SubcategoryUpdate
from core.exceptions import ResourceNotFoundError, ValidationError, ConflictError, BusinessLogicError
from services import subcategory_store as store
from services import product_association
from services.category import category_exists
from services.image import ImageService
from services.subcategory_tree import SubcategoryTree

logger = logging.getLogger(__name__)

# Moved only through reparent / move_to_category
STRUCTURAL_FIELDS = ("parent_id", "category_id", "level")
BULK_UPDATABLE_FIELDS = ("is_active", "is_featured", "display_order")
COPY_SUFFIXES = {"en": " (Copy)", "ar": " (نسخة)", "he": " (עותק)"}


def _actor(actor_id: Optional[str]) -> str:
    return actor_id or "system"


def _as_dict(data: Union[SubcategoryCreate, SubcategoryUpdate, Dict[str, Any]], exclude_unset: bool) -> Dict[str, Any]:
    if isinstance(data, dict):
        return dict(data)
    return data.dict(exclude_unset=exclude_unset)


class SubcategoryService:

    # ---------------------------------------------------------------- reads

    @staticmethod
    def get_by_id(db: Session, subcategory_id: int) -> Subcategory:
        """Get a subcategory or raise ResourceNotFoundError"""
        node = store.get_subcategory_by_id(db, subcategory_id)
        if not node:
            raise ResourceNotFoundError("Subcategory", subcategory_id)
        return node

    @staticmethod
    def list_subcategories(db: Session, **filters) -> Tuple[List[Subcategory], int]:
        return store.list_subcategories(db, **filters)

    @staticmethod
    def list_by_category(db: Session, category_id: int, is_active: Optional[bool] = None) -> List[Subcategory]:
        if not category_exists(db, category_id):
            raise ResourceNotFoundError("Category", category_id)
        return store.list_by_category(db, category_id, is_active=is_active)

    @staticmethod
    def list_all(db: Session, is_active: Optional[bool] = None) -> List[Subcategory]:
        return store.list_all(db, is_active=is_active)

    @staticmethod
    def get_featured(db: Session, limit: int = 10, category_id: Optional[int] = None) -> List[Subcategory]:
        return store.list_featured(db, limit=limit, category_id=category_id)

    @staticmethod
    def search(db: Session, search_term: str, limit: int = 20, category_id: Optional[int] = None) -> List[Subcategory]:
        return store.search_subcategories(db, search_term, limit=limit, category_id=category_id)

    @staticmethod
    def get_statistics(db: Session) -> Dict[str, Any]:
        stats = store.get_statistics(db)
        stats["subcategories_by_category"] = store.count_by_category(db)
        return stats

    # ------------------------------------------------------------ structure

    @staticmethod
    def create_node(
        db: Session,
        data: Union[SubcategoryCreate, Dict[str, Any]],
        actor_id: Optional[str] = None
    ) -> Subcategory:
        """Create a root or child node, computing its level from the parent"""
        fields = _as_dict(data, exclude_unset=False)

        name = (fields.get("subcategory_name_en") or "").strip()
        if not name:
            raise ValidationError("Subcategory name is required", field="subcategory_name_en")
        fields["subcategory_name_en"] = name

        category_id = fields.get("category_id")
        if category_id is None or not category_exists(db, category_id):
            raise ResourceNotFoundError("Category", category_id)

        parent_id = fields.get("parent_id")
        if parent_id is not None:
            parent = store.get_subcategory_by_id(db, parent_id)
            if not parent:
                raise ResourceNotFoundError("Parent subcategory", parent_id)
            if parent.category_id != category_id:
                raise ValidationError(
                    "Parent subcategory belongs to a different category",
                    field="parent_id",
                    details={"parent_category_id": parent.category_id, "category_id": category_id}
                )
            fields["level"] = (parent.level or 1) + 1
        else:
            fields["level"] = 1

        if store.name_exists(db, name, category_id):
            raise ConflictError("Subcategory name already exists in this category", field="subcategory_name_en")

        for locale in LOCALES:
            if not fields.get(f"subcategory_name_{locale}"):
                fields[f"subcategory_name_{locale}"] = name

        try:
            node = store.create_subcategory(db, fields)
        except Exception as e:
            db.rollback()
            logger.error(f"Error creating subcategory: {str(e)}")
            raise

        logger.info(
            f"Subcategory created: {node.subcategory_name_en} (id={node.subcategory_id}, "
            f"level={node.level}) by admin {_actor(actor_id)}"
        )
        return node

    @staticmethod
    def update_fields(
        db: Session,
        subcategory_id: int,
        data: Union[SubcategoryUpdate, Dict[str, Any]],
        actor_id: Optional[str] = None
    ) -> Subcategory:
        """Update non-structural fields. parent/category/level changes are ignored here."""
        node = SubcategoryService.get_by_id(db, subcategory_id)
        fields = {
            key: value for key, value in _as_dict(data, exclude_unset=True).items()
            if key not in STRUCTURAL_FIELDS
        }

        if "subcategory_name_en" in fields:
            new_name = (fields["subcategory_name_en"] or "").strip()
            if not new_name:
                raise ValidationError("Subcategory name cannot be empty", field="subcategory_name_en")
            fields["subcategory_name_en"] = new_name
            if new_name != node.subcategory_name_en and store.name_exists(
                db, new_name, node.category_id, exclude_id=subcategory_id
            ):
                raise ConflictError("Subcategory name already exists in this category", field="subcategory_name_en")

        old_image = node.image_url

        try:
            node = store.update_subcategory(db, subcategory_id, fields)
        except Exception as e:
            db.rollback()
            logger.error(f"Error updating subcategory {subcategory_id}: {str(e)}")
            raise

        if "image_url" in fields and old_image and old_image != node.image_url:
            SubcategoryService._discard_image(old_image)

        logger.info(f"Subcategory updated: {subcategory_id} by admin {_actor(actor_id)}")
        return node

    @staticmethod
    def reparent(
        db: Session,
        subcategory_id: int,
        new_parent_id: Optional[int],
        actor_id: Optional[str] = None
    ) -> Subcategory:
        """Attach a node (and its subtree) under another parent, or make it a root.

        The subtree is collected before the move; every descendant then gets
        ``level = new_level + depth``. A parent in another category pulls the
        whole subtree into that category.
        """
        if new_parent_id is not None and new_parent_id == subcategory_id:
            raise ValidationError("A subcategory cannot be its own parent", field="parent_id")

        node = SubcategoryService.get_by_id(db, subcategory_id)
        descendants = SubcategoryTree.get_descendants(db, subcategory_id)

        if new_parent_id is not None:
            parent = store.get_subcategory_by_id(db, new_parent_id)
            if not parent:
                raise ResourceNotFoundError("Parent subcategory", new_parent_id)
            if any(descendant.subcategory_id == new_parent_id for descendant, _ in descendants):
                raise ValidationError(
                    "Cannot move a subcategory under one of its own descendants",
                    field="parent_id"
                )
            new_level = (parent.level or 1) + 1
            new_category_id = parent.category_id
        else:
            new_level = 1
            new_category_id = node.category_id

        if new_category_id != node.category_id:
            SubcategoryService._ensure_names_free(db, node, descendants, new_category_id)

        node = SubcategoryService._apply_move(
            db, node, new_parent_id, new_level, new_category_id, descendants
        )

        logger.info(
            f"Subcategory {subcategory_id} moved under parent {new_parent_id} "
            f"(level={new_level}, {len(descendants)} descendants relevelled) by admin {_actor(actor_id)}"
        )
        return node

    @staticmethod
    def move_to_category(
        db: Session,
        subcategory_id: int,
        new_category_id: int,
        actor_id: Optional[str] = None
    ) -> Subcategory:
        """Move a node and its subtree to another category as a root node"""
        node = SubcategoryService.get_by_id(db, subcategory_id)

        if not category_exists(db, new_category_id):
            raise ResourceNotFoundError("Category", new_category_id)

        if new_category_id == node.category_id:
            return SubcategoryService.reparent(db, subcategory_id, None, actor_id=actor_id)

        descendants = SubcategoryTree.get_descendants(db, subcategory_id)
        SubcategoryService._ensure_names_free(db, node, descendants, new_category_id)

        old_category_id = node.category_id
        node = SubcategoryService._apply_move(db, node, None, 1, new_category_id, descendants)

        logger.info(
            f"Subcategory {subcategory_id} moved from category {old_category_id} to "
            f"{new_category_id} with {len(descendants)} descendants by admin {_actor(actor_id)}"
        )
        return node

    @staticmethod
    def delete(
        db: Session,
        subcategory_id: int,
        reassign_products: bool = False,
        actor_id: Optional[str] = None
    ) -> bool:
        """Delete a leaf node.

        Nodes with children are rejected. Nodes with direct products are
        rejected unless ``reassign_products`` is set, in which case those
        products lose their subcategory first.
        """
        node = SubcategoryService.get_by_id(db, subcategory_id)
        SubcategoryService._check_deletable(db, node, reassign_products)
        image_url = node.image_url

        try:
            if reassign_products:
                product_association.reassign_products_to_null(db, subcategory_id, commit=False)
            store.delete_subcategory(db, subcategory_id, commit=False)
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Error deleting subcategory {subcategory_id}: {str(e)}")
            raise

        if image_url:
            SubcategoryService._discard_image(image_url)

        logger.info(f"Subcategory deleted: {subcategory_id} by admin {_actor(actor_id)}")
        return True

    # ---------------------------------------------------------------- admin

    @staticmethod
    def toggle_status(db: Session, subcategory_id: int, actor_id: Optional[str] = None) -> Subcategory:
        node = SubcategoryService.get_by_id(db, subcategory_id)
        node = SubcategoryService._write(db, subcategory_id, {"is_active": not node.is_active}, "toggling status of")
        logger.info(f"Subcategory {subcategory_id} is_active={node.is_active} by admin {_actor(actor_id)}")
        return node

    @staticmethod
    def toggle_featured(db: Session, subcategory_id: int, actor_id: Optional[str] = None) -> Subcategory:
        node = SubcategoryService.get_by_id(db, subcategory_id)
        node = SubcategoryService._write(db, subcategory_id, {"is_featured": not node.is_featured}, "featuring")
        logger.info(f"Subcategory {subcategory_id} is_featured={node.is_featured} by admin {_actor(actor_id)}")
        return node

    @staticmethod
    def update_display_order(
        db: Session,
        subcategory_id: int,
        display_order: int,
        actor_id: Optional[str] = None
    ) -> Subcategory:
        SubcategoryService.get_by_id(db, subcategory_id)
        node = SubcategoryService._write(db, subcategory_id, {"display_order": display_order}, "reordering")
        logger.info(f"Subcategory {subcategory_id} display_order={display_order} by admin {_actor(actor_id)}")
        return node

    @staticmethod
    def reorder(db: Session, orders: List[Tuple[int, int]], actor_id: Optional[str] = None) -> int:
        """Apply ``(subcategory_id, display_order)`` pairs in one commit"""
        try:
            for subcategory_id, display_order in orders:
                store.update_subcategory(db, subcategory_id, {"display_order": display_order}, commit=False)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Reordered {len(orders)} subcategories by admin {_actor(actor_id)}")
        return len(orders)

    @staticmethod
    def duplicate(db: Session, subcategory_id: int, actor_id: Optional[str] = None) -> Subcategory:
        """Copy a node (not its children) next to the original, inactive and not featured"""
        source = SubcategoryService.get_by_id(db, subcategory_id)

        base_name = source.subcategory_name_en + COPY_SUFFIXES["en"]
        name = base_name
        attempt = 1
        while store.name_exists(db, name, source.category_id):
            attempt += 1
            name = f"{source.subcategory_name_en} (Copy {attempt})"

        fields = {
            "category_id": source.category_id,
            "parent_id": source.parent_id,
            "level": source.level,
            "subcategory_name_en": name,
            "description_en": source.description_en,
            "description_ar": source.description_ar,
            "description_he": source.description_he,
            "display_order": source.display_order,
            "is_active": False,
            "is_featured": False,
        }
        for locale in LOCALES:
            if locale == PRIMARY_LOCALE:
                continue
            fields[f"subcategory_name_{locale}"] = source.localized_name(locale) + COPY_SUFFIXES[locale]

        try:
            node = store.create_subcategory(db, fields)
        except Exception as e:
            db.rollback()
            logger.error(f"Error duplicating subcategory {subcategory_id}: {str(e)}")
            raise

        logger.info(f"Subcategory {subcategory_id} duplicated as {node.subcategory_id} by admin {_actor(actor_id)}")
        return node

    @staticmethod
    def bulk_update(
        db: Session,
        subcategory_ids: List[int],
        data: Dict[str, Any],
        actor_id: Optional[str] = None
    ) -> int:
        """Set flags or display order on many nodes; other keys are ignored"""
        fields = {key: value for key, value in data.items() if key in BULK_UPDATABLE_FIELDS and value is not None}
        if not fields:
            raise BusinessLogicError(
                "Nothing to update",
                details={"updatable_fields": list(BULK_UPDATABLE_FIELDS)}
            )
        if not subcategory_ids:
            return 0

        nodes = store.get_subcategories_by_ids(db, subcategory_ids)
        try:
            for node in nodes:
                store.update_subcategory(db, node.subcategory_id, fields, commit=False)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Bulk updated {len(nodes)} subcategories {fields} by admin {_actor(actor_id)}")
        return len(nodes)

    @staticmethod
    def bulk_delete(
        db: Session,
        subcategory_ids: List[int],
        reassign_products: bool = False,
        actor_id: Optional[str] = None
    ) -> int:
        """Delete several nodes; every node is checked before any row is removed.

        A node's children may be deleted in the same call.
        """
        requested = list(dict.fromkeys(subcategory_ids))
        nodes = [SubcategoryService.get_by_id(db, subcategory_id) for subcategory_id in requested]
        ids = set(requested)

        for node in nodes:
            SubcategoryService._check_deletable(db, node, reassign_products, deleting_ids=ids)

        image_urls = [node.image_url for node in nodes if node.image_url]

        try:
            # Deepest first so no surviving row points at a removed parent
            for node in sorted(nodes, key=lambda n: n.level or 1, reverse=True):
                if reassign_products:
                    product_association.reassign_products_to_null(db, node.subcategory_id, commit=False)
                store.delete_subcategory(db, node.subcategory_id, commit=False)
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Error bulk deleting subcategories {requested}: {str(e)}")
            raise

        for image_url in image_urls:
            SubcategoryService._discard_image(image_url)

        logger.info(f"Bulk deleted {len(nodes)} subcategories by admin {_actor(actor_id)}")
        return len(nodes)

    @staticmethod
    def upload_image(db: Session, subcategory_id: int, file: UploadFile, actor_id: Optional[str] = None) -> Subcategory:
        """Store a new image and drop the previous one"""
        node = SubcategoryService.get_by_id(db, subcategory_id)
        old_image = node.image_url

        image_url = ImageService.save_subcategory_image(file, subcategory_id)
        try:
            node = SubcategoryService._write(db, subcategory_id, {"image_url": image_url}, "attaching image to")
        except Exception:
            SubcategoryService._discard_image(image_url)
            raise

        if old_image and old_image != image_url:
            SubcategoryService._discard_image(old_image)

        logger.info(f"Subcategory {subcategory_id} image replaced by admin {_actor(actor_id)}")
        return node

    @staticmethod
    def delete_image(db: Session, subcategory_id: int, actor_id: Optional[str] = None) -> Subcategory:
        node = SubcategoryService.get_by_id(db, subcategory_id)
        if not node.image_url:
            return node

        old_image = node.image_url
        node = SubcategoryService._write(db, subcategory_id, {"image_url": None}, "removing image of")
        SubcategoryService._discard_image(old_image)

        logger.info(f"Subcategory {subcategory_id} image removed by admin {_actor(actor_id)}")
        return node

    # -------------------------------------------------------------- helpers

    @staticmethod
    def _write(db: Session, subcategory_id: int, fields: Dict[str, Any], action: str) -> Subcategory:
        """Single-row update committed on its own; rolled back and re-raised on failure"""
        try:
            return store.update_subcategory(db, subcategory_id, fields)
        except Exception as e:
            db.rollback()
            logger.error(f"Error {action} subcategory {subcategory_id}: {str(e)}")
            raise

    @staticmethod
    def _ensure_names_free(
        db: Session,
        node: Subcategory,
        descendants: List[Tuple[Subcategory, int]],
        category_id: int
    ) -> None:
        """Every English name of the subtree must be unused in the target category"""
        for member in [node] + [descendant for descendant, _ in descendants]:
            if store.name_exists(db, member.subcategory_name_en, category_id, exclude_id=member.subcategory_id):
                raise ConflictError(
                    "Subcategory name already exists in target category",
                    field="subcategory_name_en",
                    details={"subcategory_id": member.subcategory_id, "name": member.subcategory_name_en}
                )

    @staticmethod
    def _apply_move(
        db: Session,
        node: Subcategory,
        new_parent_id: Optional[int],
        new_level: int,
        new_category_id: int,
        descendants: List[Tuple[Subcategory, int]]
    ) -> Subcategory:
        """Write the node's new position and relevel its subtree in one commit"""
        category_changed = new_category_id != node.category_id
        subcategory_id = node.subcategory_id

        try:
            store.update_subcategory(db, subcategory_id, {
                "parent_id": new_parent_id,
                "level": new_level,
                "category_id": new_category_id,
            }, commit=False)

            for descendant, depth in descendants:
                fields = {"level": new_level + depth}
                if category_changed:
                    fields["category_id"] = new_category_id
                store.update_subcategory(db, descendant.subcategory_id, fields, commit=False)

            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(f"Error moving subcategory {subcategory_id}: {str(e)}")
            raise

        db.refresh(node)
        return node

    @staticmethod
    def _check_deletable(
        db: Session,
        node: Subcategory,
        reassign_products: bool,
        deleting_ids: Optional[set] = None
    ) -> None:
        deleting_ids = deleting_ids or {node.subcategory_id}

        remaining_children = [
            child for child in store.list_by_parent(db, node.subcategory_id)
            if child.subcategory_id not in deleting_ids
        ]
        if remaining_children:
            raise ValidationError(
                f"Subcategory \"{node.subcategory_name_en}\" has child subcategories. "
                "Move or delete them first.",
                details={"children_count": len(remaining_children)}
            )

        product_count = product_association.get_product_count(db, node.subcategory_id)
        if product_count > 0 and not reassign_products:
            raise ValidationError(
                f"Subcategory \"{node.subcategory_name_en}\" has products. Please reassign products first.",
                details={"product_count": product_count}
            )

    @staticmethod
    def _discard_image(image_url: str) -> None:
        try:
            ImageService.delete_file(image_url)
        except OSError as e:
            logger.warning(f"Could not delete image {image_url}: {str(e)}")
