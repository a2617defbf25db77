"""
Links between subcategories and the products filed under them.

Products belong to the product subsystem; this module only counts them,
lists them for a subtree and detaches them from a node that is about to go.
"""
from sqlalchemy.orm import Session
from sqlalchemy import desc, func
from models.product import Product
from services.subcategory_tree import SubcategoryTree
from typing import Any, Dict, List
import logging

logger = logging.getLogger(__name__)


def get_product_count(db: Session, subcategory_id: int) -> int:
    """Products filed directly under the node"""
    return db.query(Product).filter(Product.subcategory_id == subcategory_id).count()


def get_product_counts(db: Session, subcategory_ids: List[int]) -> Dict[int, int]:
    """Direct product count per node, for several nodes at once"""
    if not subcategory_ids:
        return {}
    rows = db.query(
        Product.subcategory_id,
        func.count(Product.product_id)
    ).filter(
        Product.subcategory_id.in_(subcategory_ids)
    ).group_by(Product.subcategory_id).all()

    counts = {subcategory_id: 0 for subcategory_id in subcategory_ids}
    counts.update({subcategory_id: count for subcategory_id, count in rows})
    return counts


def get_product_count_including_descendants(db: Session, subcategory_id: int) -> int:
    """Products filed under the node or anywhere below it"""
    subcategory_ids = SubcategoryTree.get_descendant_ids(db, subcategory_id)
    return db.query(Product).filter(Product.subcategory_id.in_(subcategory_ids)).count()


def reassign_products_to_null(db: Session, subcategory_id: int, commit: bool = True) -> int:
    """Clear the subcategory reference of the node's direct products.

    Products of descendant nodes are not touched.
    """
    try:
        count = db.query(Product).filter(
            Product.subcategory_id == subcategory_id
        ).update({Product.subcategory_id: None}, synchronize_session=False)

        if commit:
            db.commit()

        logger.info(f"Detached {count} products from subcategory {subcategory_id}")
        return count

    except Exception as e:
        db.rollback()
        logger.error(f"Error reassigning products of subcategory {subcategory_id}: {str(e)}")
        raise


def get_products(
    db: Session,
    subcategory_id: int,
    page: int = 1,
    limit: int = 20,
    include_descendants: bool = False
) -> Dict[str, Any]:
    """Active products of a node (optionally its whole subtree), paginated"""
    if include_descendants:
        subcategory_ids = SubcategoryTree.get_descendant_ids(db, subcategory_id)
    else:
        subcategory_ids = [subcategory_id]

    query = db.query(Product).filter(
        Product.subcategory_id.in_(subcategory_ids),
        Product.is_active == True
    )

    total = query.count()
    offset = (page - 1) * limit
    products = query.order_by(
        desc(Product.is_featured),
        desc(Product.created_at),
        desc(Product.product_id)
    ).offset(offset).limit(limit).all()

    return {
        "items": products,
        "total": total,
        "page": page,
        "limit": limit
    }
