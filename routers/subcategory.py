from fastapi import APIRouter, Depends, Query, Header, UploadFile, File, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from core.config import settings
from core.exceptions import ResourceNotFoundError
from core.response import success_response, paginated_response
from database.connection import get_db
from models.subcategory import Subcategory
from schemas.subcategory import (
    SubcategoryCreate, SubcategoryUpdate, SubcategoryReparent, SubcategoryMove,
    DisplayOrderUpdate, ReorderRequest, BulkUpdateRequest, BulkDeleteRequest
)
from services import product_association, subcategory_store
from services.category import category_exists, get_category_by_id
from services.subcategory import SubcategoryService
from services.subcategory_tree import SubcategoryTree
from services.subcategory_mapper import (
    format_subcategory, format_tree, format_category, format_breadcrumb,
    format_descendant, format_product
)

logger = logging.getLogger(__name__)

router = APIRouter()

LANG_PATTERN = f"^({'|'.join(settings.SUPPORTED_LANGUAGES)})$"


def _first(*values):
    """First value that was actually supplied (snake_case or camelCase parameter)"""
    for value in values:
        if value is not None:
            return value
    return None


def _format_nodes(db: Session, nodes: List[Subcategory], lang: str) -> List[dict]:
    ids = [node.subcategory_id for node in nodes]
    product_counts = product_association.get_product_counts(db, ids)
    children_counts = SubcategoryTree.count_children(db, ids)
    return [
        format_subcategory(
            node,
            lang=lang,
            product_count=product_counts.get(node.subcategory_id, 0),
            children_count=children_counts.get(node.subcategory_id, 0)
        )
        for node in nodes
    ]


def _format_detail(db: Session, node: Subcategory, lang: str) -> dict:
    category = get_category_by_id(db, node.category_id)
    parent = subcategory_store.get_subcategory_by_id(db, node.parent_id) if node.parent_id else None
    return format_subcategory(
        node,
        lang=lang,
        product_count=product_association.get_product_count(db, node.subcategory_id),
        children_count=SubcategoryTree.count_children(db, [node.subcategory_id])[node.subcategory_id],
        category_name=category.localized_name(lang) if category else None,
        parent_name=parent.localized_name(lang) if parent else None
    )


def _require_category(db: Session, category_id: int) -> None:
    if not category_exists(db, category_id):
        raise ResourceNotFoundError("Category", category_id)


# ---------------------------------------------------------------- listings

@router.get("/")
def get_subcategories(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: Optional[str] = Query(None),
    category_id: Optional[int] = Query(None),
    category_id_camel: Optional[int] = Query(None, alias="categoryId"),
    parent_id: Optional[int] = Query(None),
    parent_id_camel: Optional[int] = Query(None, alias="parentId"),
    is_active: Optional[bool] = Query(None),
    is_active_camel: Optional[bool] = Query(None, alias="isActive"),
    is_featured: Optional[bool] = Query(None),
    is_featured_camel: Optional[bool] = Query(None, alias="isFeatured"),
    sort: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None),
    sort_by_camel: Optional[str] = Query(None, alias="sortBy"),
    order: Optional[str] = Query(None),
    sort_order: Optional[str] = Query(None),
    sort_order_camel: Optional[str] = Query(None, alias="sortOrder"),
    lang: str = Query(settings.DEFAULT_LANGUAGE, pattern=LANG_PATTERN),
    db: Session = Depends(get_db)
):
    """Paginated subcategory listing with filters"""
    items, total = SubcategoryService.list_subcategories(
        db,
        page=page,
        limit=limit,
        search=search,
        category_id=_first(category_id, category_id_camel),
        parent_id=_first(parent_id, parent_id_camel),
        is_active=_first(is_active, is_active_camel),
        is_featured=_first(is_featured, is_featured_camel),
        sort=_first(sort_by_camel, sort_by, sort) or "display_order",
        order=_first(sort_order_camel, sort_order, order) or "ASC"
    )

    return paginated_response(
        data=_format_nodes(db, items, lang),
        page=page,
        per_page=limit,
        total_items=total,
        message="Subcategories retrieved successfully"
    )


@router.get("/list")
def get_subcategory_list(
    category_id: Optional[int] = Query(None),
    category_id_camel: Optional[int] = Query(None, alias="categoryId"),
    is_active: Optional[bool] = Query(None),
    is_active_camel: Optional[bool] = Query(None, alias="isActive"),
    lang: str = Query(settings.DEFAULT_LANGUAGE, pattern=LANG_PATTERN),
    db: Session = Depends(get_db)
):
    """All subcategories without pagination, for dropdowns"""
    category_id = _first(category_id, category_id_camel)
    active = _first(is_active, is_active_camel)

    if category_id is not None:
        nodes = SubcategoryService.list_by_category(db, category_id, is_active=active)
    else:
        nodes = SubcategoryService.list_all(db, is_active=active)

    return success_response(
        data=[format_subcategory(node, lang=lang) for node in nodes],
        message="Subcategories retrieved successfully"
    )


@router.get("/featured")
def get_featured_subcategories(
    limit: int = Query(10, ge=1, le=settings.MAX_PAGE_SIZE),
    category_id: Optional[int] = Query(None),
    category_id_camel: Optional[int] = Query(None, alias="categoryId"),
    lang: str = Query(settings.DEFAULT_LANGUAGE, pattern=LANG_PATTERN),
    db: Session = Depends(get_db)
):
    nodes = SubcategoryService.get_featured(db, limit=limit, category_id=_first(category_id, category_id_camel))
    return success_response(
        data=_format_nodes(db, nodes, lang),
        message="Featured subcategories retrieved successfully"
    )


@router.get("/search")
def search_subcategories(
    q: Optional[str] = Query(None),
    term: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=settings.MAX_PAGE_SIZE),
    category_id: Optional[int] = Query(None),
    category_id_camel: Optional[int] = Query(None, alias="categoryId"),
    lang: str = Query(settings.DEFAULT_LANGUAGE, pattern=LANG_PATTERN),
    db: Session = Depends(get_db)
):
    """Search active subcategories by name in any language"""
    search_term = (_first(q, term, search) or "").strip()
    if not search_term:
        return success_response(data=[], message="No search term given")

    nodes = SubcategoryService.search(
        db, search_term, limit=limit, category_id=_first(category_id, category_id_camel)
    )
    return success_response(
        data=_format_nodes(db, nodes, lang),
        message=f"Found {len(nodes)} subcategories"
    )


@router.get("/statistics")
def get_subcategory_statistics(db: Session = Depends(get_db)):
    return success_response(
        data=SubcategoryService.get_statistics(db),
        message="Subcategory statistics retrieved successfully"
    )


@router.get("/hierarchy")
def get_full_hierarchy(
    is_active: Optional[bool] = Query(None),
    is_active_camel: Optional[bool] = Query(None, alias="isActive"),
    lang: str = Query(settings.DEFAULT_LANGUAGE, pattern=LANG_PATTERN),
    db: Session = Depends(get_db)
):
    """Every category with its nested subcategory tree"""
    hierarchy = []
    for category, tree in SubcategoryTree.get_full_hierarchy(db, is_active=_first(is_active, is_active_camel)):
        record = format_category(category, lang)
        record["subcategories"] = format_tree(tree, lang=lang)
        hierarchy.append(record)

    return success_response(data=hierarchy, message="Hierarchy retrieved successfully")


@router.get("/category/{category_id}")
def get_subcategories_by_category(
    category_id: int,
    is_active: Optional[bool] = Query(None),
    is_active_camel: Optional[bool] = Query(None, alias="isActive"),
    lang: str = Query(settings.DEFAULT_LANGUAGE, pattern=LANG_PATTERN),
    db: Session = Depends(get_db)
):
    nodes = SubcategoryService.list_by_category(db, category_id, is_active=_first(is_active, is_active_camel))
    return success_response(
        data=_format_nodes(db, nodes, lang),
        message="Subcategories retrieved successfully"
    )


@router.get("/category/{category_id}/tree")
def get_subcategory_tree(
    category_id: int,
    is_active: Optional[bool] = Query(None),
    is_active_camel: Optional[bool] = Query(None, alias="isActive"),
    lang: str = Query(settings.DEFAULT_LANGUAGE, pattern=LANG_PATTERN),
    db: Session = Depends(get_db)
):
    """Nested subcategory tree of a category"""
    _require_category(db, category_id)

    tree = SubcategoryTree.get_nested_tree(db, category_id, is_active=_first(is_active, is_active_camel))

    node_ids = []
    pending = list(tree)
    while pending:
        entry = pending.pop()
        node_ids.append(entry["node"].subcategory_id)
        pending.extend(entry["children"])

    return success_response(
        data=format_tree(tree, lang=lang, product_counts=product_association.get_product_counts(db, node_ids)),
        message="Subcategory tree retrieved successfully"
    )


@router.get("/category/{category_id}/roots")
def get_root_subcategories(
    category_id: int,
    is_active: Optional[bool] = Query(None),
    is_active_camel: Optional[bool] = Query(None, alias="isActive"),
    lang: str = Query(settings.DEFAULT_LANGUAGE, pattern=LANG_PATTERN),
    db: Session = Depends(get_db)
):
    _require_category(db, category_id)
    nodes = SubcategoryTree.get_roots(db, category_id, is_active=_first(is_active, is_active_camel))
    return success_response(
        data=_format_nodes(db, nodes, lang),
        message="Root subcategories retrieved successfully"
    )


# ----------------------------------------------------------- bulk actions

@router.post("/reorder")
def reorder_subcategories(
    payload: ReorderRequest,
    x_admin_id: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    count = SubcategoryService.reorder(
        db,
        [(item.subcategory_id, item.display_order) for item in payload.items],
        actor_id=x_admin_id
    )
    return success_response(data={"updated": count}, message="Subcategories reordered successfully")


@router.post("/bulk-update")
def bulk_update_subcategories(
    payload: BulkUpdateRequest,
    x_admin_id: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    count = SubcategoryService.bulk_update(
        db,
        payload.subcategory_ids,
        payload.dict(include={"is_active", "is_featured", "display_order"}),
        actor_id=x_admin_id
    )
    return success_response(data={"updated": count}, message=f"{count} subcategories updated")


@router.post("/bulk-delete")
def bulk_delete_subcategories(
    payload: BulkDeleteRequest,
    x_admin_id: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    count = SubcategoryService.bulk_delete(
        db,
        payload.subcategory_ids,
        reassign_products=payload.reassign_products,
        actor_id=x_admin_id
    )
    return success_response(data={"deleted": count}, message=f"{count} subcategories deleted")


# ------------------------------------------------------------ single node

@router.post("/", status_code=status.HTTP_201_CREATED)
def create_subcategory(
    payload: SubcategoryCreate,
    lang: str = Query(settings.DEFAULT_LANGUAGE, pattern=LANG_PATTERN),
    x_admin_id: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    """Create a root subcategory, or a child when parent_id is given"""
    node = SubcategoryService.create_node(db, payload, actor_id=x_admin_id)
    return success_response(data=_format_detail(db, node, lang), message="Subcategory created successfully")


@router.get("/{subcategory_id}")
def get_subcategory(
    subcategory_id: int,
    lang: str = Query(settings.DEFAULT_LANGUAGE, pattern=LANG_PATTERN),
    db: Session = Depends(get_db)
):
    node = SubcategoryService.get_by_id(db, subcategory_id)
    return success_response(data=_format_detail(db, node, lang), message="Subcategory retrieved successfully")


@router.put("/{subcategory_id}")
def update_subcategory(
    subcategory_id: int,
    payload: SubcategoryUpdate,
    lang: str = Query(settings.DEFAULT_LANGUAGE, pattern=LANG_PATTERN),
    x_admin_id: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    node = SubcategoryService.update_fields(db, subcategory_id, payload, actor_id=x_admin_id)
    return success_response(data=_format_detail(db, node, lang), message="Subcategory updated successfully")


@router.delete("/{subcategory_id}")
def delete_subcategory(
    subcategory_id: int,
    reassign_products: Optional[bool] = Query(None),
    reassign_products_camel: Optional[bool] = Query(None, alias="reassignProducts"),
    x_admin_id: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    SubcategoryService.delete(
        db,
        subcategory_id,
        reassign_products=bool(_first(reassign_products, reassign_products_camel)),
        actor_id=x_admin_id
    )
    return success_response(data={"subcategory_id": subcategory_id}, message="Subcategory deleted successfully")


@router.get("/{subcategory_id}/children")
def get_children(
    subcategory_id: int,
    is_active: Optional[bool] = Query(None),
    is_active_camel: Optional[bool] = Query(None, alias="isActive"),
    lang: str = Query(settings.DEFAULT_LANGUAGE, pattern=LANG_PATTERN),
    db: Session = Depends(get_db)
):
    SubcategoryService.get_by_id(db, subcategory_id)
    nodes = SubcategoryTree.get_children(db, subcategory_id, is_active=_first(is_active, is_active_camel))
    return success_response(
        data=_format_nodes(db, nodes, lang),
        message="Child subcategories retrieved successfully"
    )


@router.get("/{subcategory_id}/parent-chain")
def get_parent_chain(
    subcategory_id: int,
    lang: str = Query(settings.DEFAULT_LANGUAGE, pattern=LANG_PATTERN),
    db: Session = Depends(get_db)
):
    """Breadcrumbs: category first, then subcategories down to this one"""
    SubcategoryService.get_by_id(db, subcategory_id)
    chain = SubcategoryTree.get_parent_chain(db, subcategory_id)
    return success_response(
        data=[format_breadcrumb(entry, lang) for entry in chain],
        message="Parent chain retrieved successfully"
    )


@router.get("/{subcategory_id}/descendants")
def get_descendants(
    subcategory_id: int,
    lang: str = Query(settings.DEFAULT_LANGUAGE, pattern=LANG_PATTERN),
    db: Session = Depends(get_db)
):
    SubcategoryService.get_by_id(db, subcategory_id)
    descendants = SubcategoryTree.get_descendants(db, subcategory_id)
    return success_response(
        data=[format_descendant(node, depth, lang) for node, depth in descendants],
        message="Descendants retrieved successfully"
    )


@router.get("/{subcategory_id}/products")
def get_subcategory_products(
    subcategory_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=settings.MAX_PAGE_SIZE),
    include_descendants: Optional[bool] = Query(None),
    include_descendants_camel: Optional[bool] = Query(None, alias="includeDescendants"),
    lang: str = Query(settings.DEFAULT_LANGUAGE, pattern=LANG_PATTERN),
    db: Session = Depends(get_db)
):
    """Active products of the subcategory, optionally including its whole subtree"""
    node = SubcategoryService.get_by_id(db, subcategory_id)
    result = product_association.get_products(
        db,
        subcategory_id,
        page=page,
        limit=limit,
        include_descendants=bool(_first(include_descendants, include_descendants_camel))
    )

    response = paginated_response(
        data=[format_product(product, lang) for product in result["items"]],
        page=page,
        per_page=limit,
        total_items=result["total"],
        message="Products retrieved successfully"
    )
    response["subcategory"] = format_subcategory(node, lang=lang)
    return response


@router.get("/{subcategory_id}/product-count")
def get_product_count(subcategory_id: int, db: Session = Depends(get_db)):
    SubcategoryService.get_by_id(db, subcategory_id)
    direct = product_association.get_product_count(db, subcategory_id)
    total = product_association.get_product_count_including_descendants(db, subcategory_id)
    return success_response(
        data={
            "subcategory_id": subcategory_id,
            "product_count": direct,
            "productCount": direct,
            "total_product_count": total,
            "totalProductCount": total
        },
        message="Product count retrieved successfully"
    )


@router.patch("/{subcategory_id}/parent")
def reparent_subcategory(
    subcategory_id: int,
    payload: SubcategoryReparent,
    lang: str = Query(settings.DEFAULT_LANGUAGE, pattern=LANG_PATTERN),
    x_admin_id: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    """Move a subcategory (and its subtree) under another parent, or to the root"""
    node = SubcategoryService.reparent(db, subcategory_id, payload.parent_id, actor_id=x_admin_id)
    return success_response(data=_format_detail(db, node, lang), message="Subcategory moved successfully")


@router.patch("/{subcategory_id}/category")
def move_subcategory_to_category(
    subcategory_id: int,
    payload: SubcategoryMove,
    lang: str = Query(settings.DEFAULT_LANGUAGE, pattern=LANG_PATTERN),
    x_admin_id: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    node = SubcategoryService.move_to_category(db, subcategory_id, payload.category_id, actor_id=x_admin_id)
    return success_response(
        data=_format_detail(db, node, lang),
        message="Subcategory moved to category successfully"
    )


@router.patch("/{subcategory_id}/toggle-status")
def toggle_subcategory_status(
    subcategory_id: int,
    lang: str = Query(settings.DEFAULT_LANGUAGE, pattern=LANG_PATTERN),
    x_admin_id: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    node = SubcategoryService.toggle_status(db, subcategory_id, actor_id=x_admin_id)
    return success_response(data=format_subcategory(node, lang=lang), message="Subcategory status updated")


@router.patch("/{subcategory_id}/toggle-featured")
def toggle_subcategory_featured(
    subcategory_id: int,
    lang: str = Query(settings.DEFAULT_LANGUAGE, pattern=LANG_PATTERN),
    x_admin_id: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    node = SubcategoryService.toggle_featured(db, subcategory_id, actor_id=x_admin_id)
    return success_response(data=format_subcategory(node, lang=lang), message="Subcategory featured status updated")


@router.patch("/{subcategory_id}/display-order")
def update_subcategory_display_order(
    subcategory_id: int,
    payload: DisplayOrderUpdate,
    lang: str = Query(settings.DEFAULT_LANGUAGE, pattern=LANG_PATTERN),
    x_admin_id: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    node = SubcategoryService.update_display_order(db, subcategory_id, payload.display_order, actor_id=x_admin_id)
    return success_response(data=format_subcategory(node, lang=lang), message="Display order updated")


@router.post("/{subcategory_id}/duplicate", status_code=status.HTTP_201_CREATED)
def duplicate_subcategory(
    subcategory_id: int,
    lang: str = Query(settings.DEFAULT_LANGUAGE, pattern=LANG_PATTERN),
    x_admin_id: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    node = SubcategoryService.duplicate(db, subcategory_id, actor_id=x_admin_id)
    return success_response(data=_format_detail(db, node, lang), message="Subcategory duplicated successfully")


@router.post("/{subcategory_id}/image")
def upload_subcategory_image(
    subcategory_id: int,
    file: UploadFile = File(...),
    lang: str = Query(settings.DEFAULT_LANGUAGE, pattern=LANG_PATTERN),
    x_admin_id: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    node = SubcategoryService.upload_image(db, subcategory_id, file, actor_id=x_admin_id)
    return success_response(data=format_subcategory(node, lang=lang), message="Image uploaded successfully")


@router.delete("/{subcategory_id}/image")
def delete_subcategory_image(
    subcategory_id: int,
    lang: str = Query(settings.DEFAULT_LANGUAGE, pattern=LANG_PATTERN),
    x_admin_id: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    node = SubcategoryService.delete_image(db, subcategory_id, actor_id=x_admin_id)
    return success_response(data=format_subcategory(node, lang=lang), message="Image deleted successfully")
