"""
Turns subcategory rows into the flat records the admin UI consumes.

Records carry both snake_case and camelCase keys; the admin and storefront
clients read different ones.
"""
from typing import Any, Dict, List, Optional

from models.category import Category
from models.product import Product
from models.subcategory import Subcategory


def _timestamp(value):
    return value.isoformat() if value is not None else None


def format_subcategory(
    node: Optional[Subcategory],
    lang: str = "en",
    product_count: Optional[int] = None,
    children_count: Optional[int] = None,
    children: Optional[List[Dict[str, Any]]] = None,
    category_name: Optional[str] = None,
    parent_name: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    """Flatten a node for the API. ``None`` maps to ``None``."""
    if node is None:
        return None

    name = node.localized_name(lang)
    description = node.localized_description(lang)
    is_active = bool(node.is_active)
    is_featured = bool(node.is_featured)
    display_order = node.display_order or 0
    level = node.level or 1

    if children is not None and children_count is None:
        children_count = len(children)

    record = {
        "id": node.subcategory_id,
        "subcategory_id": node.subcategory_id,
        "subcategoryId": node.subcategory_id,

        "name": name,
        "subcategory_name": name,
        "subcategoryName": name,
        "subcategory_name_en": node.subcategory_name_en,
        "subcategory_name_ar": node.subcategory_name_ar,
        "subcategory_name_he": node.subcategory_name_he,
        "nameEn": node.subcategory_name_en,
        "nameAr": node.subcategory_name_ar,
        "nameHe": node.subcategory_name_he,

        "description": description,
        "description_en": node.description_en,
        "description_ar": node.description_ar,
        "description_he": node.description_he,
        "descriptionEn": node.description_en,
        "descriptionAr": node.description_ar,
        "descriptionHe": node.description_he,

        "category_id": node.category_id,
        "categoryId": node.category_id,
        "parent_id": node.parent_id,
        "parentId": node.parent_id,
        "level": level,

        "image_url": node.image_url,
        "imageUrl": node.image_url,

        "display_order": display_order,
        "displayOrder": display_order,
        "is_active": is_active,
        "isActive": is_active,
        "is_featured": is_featured,
        "isFeatured": is_featured,

        "created_at": _timestamp(node.created_at),
        "createdAt": _timestamp(node.created_at),
        "updated_at": _timestamp(node.updated_at),
        "updatedAt": _timestamp(node.updated_at),
    }

    if category_name is not None:
        record["category_name"] = category_name
        record["categoryName"] = category_name
    if parent_name is not None:
        record["parent_name"] = parent_name
        record["parentName"] = parent_name
    if product_count is not None:
        record["product_count"] = product_count
        record["productCount"] = product_count
    if children_count is not None:
        record["children_count"] = children_count
        record["childrenCount"] = children_count
        record["has_children"] = children_count > 0
        record["hasChildren"] = children_count > 0
    if children is not None:
        record["children"] = children

    return record


def format_tree(
    entries: List[Dict[str, Any]],
    lang: str = "en",
    product_counts: Optional[Dict[int, int]] = None
) -> List[Dict[str, Any]]:
    """Map a nested tree as produced by ``SubcategoryTree.get_nested_tree``"""
    product_counts = product_counts or {}
    return [
        format_subcategory(
            entry["node"],
            lang=lang,
            product_count=product_counts.get(entry["node"].subcategory_id),
            children=format_tree(entry["children"], lang=lang, product_counts=product_counts)
        )
        for entry in entries
    ]


def format_category(category: Category, lang: str = "en") -> Dict[str, Any]:
    name = category.localized_name(lang)
    return {
        "type": "category",
        "id": category.category_id,
        "category_id": category.category_id,
        "categoryId": category.category_id,
        "name": name,
        "category_name": name,
        "categoryName": name,
        "image": category.category_image,
        "display_order": category.display_order or 0,
        "is_active": bool(category.is_active),
    }


def format_breadcrumb(entry, lang: str = "en") -> Dict[str, Any]:
    """One element of a parent chain: the category or a subcategory"""
    if isinstance(entry, Category):
        return format_category(entry, lang)

    name = entry.localized_name(lang)
    return {
        "type": "subcategory",
        "id": entry.subcategory_id,
        "subcategory_id": entry.subcategory_id,
        "subcategoryId": entry.subcategory_id,
        "category_id": entry.category_id,
        "categoryId": entry.category_id,
        "parent_id": entry.parent_id,
        "parentId": entry.parent_id,
        "level": entry.level or 1,
        "name": name,
        "subcategory_name": name,
        "subcategoryName": name,
    }


def format_descendant(node: Subcategory, depth: int, lang: str = "en") -> Dict[str, Any]:
    record = format_subcategory(node, lang=lang)
    record["depth"] = depth
    return record


def format_product(product: Product, lang: str = "en") -> Dict[str, Any]:
    name = product.localized_name(lang)
    price = float(product.base_price) if product.base_price is not None else None
    return {
        "id": product.product_id,
        "product_id": product.product_id,
        "productId": product.product_id,
        "sku": product.sku,
        "name": name,
        "product_name": name,
        "productName": name,
        "base_price": price,
        "basePrice": price,
        "stock_quantity": product.stock_quantity or 0,
        "subcategory_id": product.subcategory_id,
        "subcategoryId": product.subcategory_id,
        "is_featured": bool(product.is_featured),
        "isFeatured": bool(product.is_featured),
    }
