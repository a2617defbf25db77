from sqlalchemy.orm import Session
from sqlalchemy import or_, asc, desc, func
from models.subcategory import Subcategory, PRIMARY_LOCALE
from models.product import Product
from core.exceptions import ResourceNotFoundError, ValidationError
from typing import Any, Dict, Iterable, List, Optional, Tuple
from datetime import datetime

# Columns the store lets callers write. parent_id, level and category_id are
# only ever passed in by SubcategoryService.
WRITABLE_FIELDS = {
    "category_id",
    "parent_id",
    "level",
    "subcategory_name_en",
    "subcategory_name_ar",
    "subcategory_name_he",
    "description_en",
    "description_ar",
    "description_he",
    "image_url",
    "display_order",
    "is_active",
    "is_featured",
}

SORTABLE_COLUMNS = {
    "subcategory_id": Subcategory.subcategory_id,
    "subcategory_name_en": Subcategory.subcategory_name_en,
    "display_order": Subcategory.display_order,
    "level": Subcategory.level,
    "created_at": Subcategory.created_at,
}

SIBLING_ORDER = (asc(Subcategory.display_order), asc(Subcategory.subcategory_name_en))
LIKE_ESCAPE = "\\"


def _contains(term: str) -> str:
    """ILIKE pattern matching ``term`` literally anywhere in the column"""
    for char in (LIKE_ESCAPE, "%", "_"):
        term = term.replace(char, LIKE_ESCAPE + char)
    return f"%{term}%"


def _name_column(lang: str):
    column = getattr(Subcategory, f"subcategory_name_{lang}", None)
    if column is None:
        raise ValidationError(f"Unsupported language '{lang}'", field="lang")
    return column


def create_subcategory(db: Session, fields: Dict[str, Any], commit: bool = True) -> Subcategory:
    """Persist a new node verbatim"""
    node = Subcategory(**{key: value for key, value in fields.items() if key in WRITABLE_FIELDS})
    db.add(node)
    if commit:
        db.commit()
        db.refresh(node)
    else:
        db.flush()
    return node


def get_subcategory_by_id(db: Session, subcategory_id: int) -> Optional[Subcategory]:
    """Get a subcategory by ID"""
    return db.query(Subcategory).filter(Subcategory.subcategory_id == subcategory_id).first()


def get_subcategories_by_ids(db: Session, subcategory_ids: Iterable[int]) -> List[Subcategory]:
    ids = list(subcategory_ids)
    if not ids:
        return []
    return db.query(Subcategory).filter(Subcategory.subcategory_id.in_(ids)).all()


def update_subcategory(
    db: Session,
    subcategory_id: int,
    fields: Dict[str, Any],
    commit: bool = True
) -> Subcategory:
    """Sparse update; keys that are absent are left untouched"""
    node = get_subcategory_by_id(db, subcategory_id)
    if not node:
        raise ResourceNotFoundError("Subcategory", subcategory_id)

    for field, value in fields.items():
        if field in WRITABLE_FIELDS:
            setattr(node, field, value)
    node.updated_at = datetime.utcnow()

    if commit:
        db.commit()
        db.refresh(node)
    else:
        db.flush()
    return node


def delete_subcategory(db: Session, subcategory_id: int, commit: bool = True) -> None:
    """Remove the row unconditionally"""
    node = get_subcategory_by_id(db, subcategory_id)
    if not node:
        raise ResourceNotFoundError("Subcategory", subcategory_id)

    db.delete(node)
    if commit:
        db.commit()
    else:
        db.flush()


def list_by_parent(db: Session, parent_id: int, is_active: Optional[bool] = None) -> List[Subcategory]:
    """Direct children of a node, in sibling order"""
    query = db.query(Subcategory).filter(Subcategory.parent_id == parent_id)
    if is_active is not None:
        query = query.filter(Subcategory.is_active == is_active)
    return query.order_by(*SIBLING_ORDER).all()


def list_by_parents(db: Session, parent_ids: List[int], is_active: Optional[bool] = None) -> List[Subcategory]:
    """Children of every node in ``parent_ids`` with a single query"""
    if not parent_ids:
        return []
    query = db.query(Subcategory).filter(Subcategory.parent_id.in_(parent_ids))
    if is_active is not None:
        query = query.filter(Subcategory.is_active == is_active)
    return query.order_by(*SIBLING_ORDER).all()


def list_roots_by_category(db: Session, category_id: int, is_active: Optional[bool] = None) -> List[Subcategory]:
    query = db.query(Subcategory).filter(
        Subcategory.category_id == category_id,
        Subcategory.parent_id.is_(None)
    )
    if is_active is not None:
        query = query.filter(Subcategory.is_active == is_active)
    return query.order_by(*SIBLING_ORDER).all()


def list_by_category(db: Session, category_id: int, is_active: Optional[bool] = None) -> List[Subcategory]:
    """Every node of a category, flat, ordered by level then sibling order"""
    query = db.query(Subcategory).filter(Subcategory.category_id == category_id)
    if is_active is not None:
        query = query.filter(Subcategory.is_active == is_active)
    return query.order_by(asc(Subcategory.level), *SIBLING_ORDER).all()


def count_children_by_parent(db: Session, parent_ids: List[int]) -> Dict[int, int]:
    if not parent_ids:
        return {}
    rows = db.query(
        Subcategory.parent_id,
        func.count(Subcategory.subcategory_id)
    ).filter(Subcategory.parent_id.in_(parent_ids)).group_by(Subcategory.parent_id).all()

    counts = {parent_id: 0 for parent_id in parent_ids}
    counts.update({parent_id: count for parent_id, count in rows})
    return counts


def name_exists(
    db: Session,
    name: str,
    category_id: int,
    exclude_id: Optional[int] = None,
    lang: str = PRIMARY_LOCALE
) -> bool:
    """True if another node of the category already uses ``name`` in ``lang``"""
    query = db.query(Subcategory.subcategory_id).filter(
        _name_column(lang) == name,
        Subcategory.category_id == category_id
    )
    if exclude_id is not None:
        query = query.filter(Subcategory.subcategory_id != exclude_id)
    return db.query(query.exists()).scalar()


def list_subcategories(
    db: Session,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    parent_id: Optional[int] = None,
    is_active: Optional[bool] = None,
    is_featured: Optional[bool] = None,
    sort: str = "display_order",
    order: str = "ASC"
) -> Tuple[List[Subcategory], int]:
    """Filtered, sorted and paginated listing. Returns (items, total)."""
    query = db.query(Subcategory)

    if search:
        term = _contains(search)
        query = query.filter(
            or_(
                Subcategory.subcategory_name_en.ilike(term, escape=LIKE_ESCAPE),
                Subcategory.subcategory_name_ar.ilike(term, escape=LIKE_ESCAPE),
                Subcategory.subcategory_name_he.ilike(term, escape=LIKE_ESCAPE)
            )
        )
    if category_id is not None:
        query = query.filter(Subcategory.category_id == category_id)
    if parent_id is not None:
        query = query.filter(Subcategory.parent_id == parent_id)
    if is_active is not None:
        query = query.filter(Subcategory.is_active == is_active)
    if is_featured is not None:
        query = query.filter(Subcategory.is_featured == is_featured)

    total = query.count()

    column = SORTABLE_COLUMNS.get(sort, Subcategory.display_order)
    direction = asc if str(order).upper() == "ASC" else desc
    query = query.order_by(direction(column), asc(Subcategory.subcategory_id))

    offset = (page - 1) * limit
    return query.offset(offset).limit(limit).all(), total


def list_all(db: Session, is_active: Optional[bool] = None) -> List[Subcategory]:
    """Every node, grouped by category and level, for dropdowns"""
    query = db.query(Subcategory)
    if is_active is not None:
        query = query.filter(Subcategory.is_active == is_active)
    return query.order_by(
        asc(Subcategory.category_id),
        asc(Subcategory.level),
        *SIBLING_ORDER
    ).all()


def list_featured(db: Session, limit: int = 10, category_id: Optional[int] = None) -> List[Subcategory]:
    query = db.query(Subcategory).filter(
        Subcategory.is_featured == True,
        Subcategory.is_active == True
    )
    if category_id is not None:
        query = query.filter(Subcategory.category_id == category_id)
    return query.order_by(*SIBLING_ORDER).limit(limit).all()


def search_subcategories(
    db: Session,
    search_term: str,
    limit: int = 20,
    category_id: Optional[int] = None
) -> List[Subcategory]:
    """Search active subcategories by any locale name"""
    term = _contains(search_term)
    query = db.query(Subcategory).filter(
        Subcategory.is_active == True,
        or_(
            Subcategory.subcategory_name_en.ilike(term, escape=LIKE_ESCAPE),
            Subcategory.subcategory_name_ar.ilike(term, escape=LIKE_ESCAPE),
            Subcategory.subcategory_name_he.ilike(term, escape=LIKE_ESCAPE),
            Subcategory.description_en.ilike(term, escape=LIKE_ESCAPE)
        )
    )
    if category_id is not None:
        query = query.filter(Subcategory.category_id == category_id)
    return query.order_by(*SIBLING_ORDER).limit(limit).all()


def get_statistics(db: Session) -> Dict[str, int]:
    total = db.query(Subcategory).count()
    active = db.query(Subcategory).filter(Subcategory.is_active == True).count()
    featured = db.query(Subcategory).filter(Subcategory.is_featured == True).count()
    roots = db.query(Subcategory).filter(Subcategory.parent_id.is_(None)).count()
    max_level = db.query(func.max(Subcategory.level)).scalar() or 0
    products_with_subcategory = db.query(Product).filter(Product.subcategory_id.isnot(None)).count()

    return {
        "total_subcategories": total,
        "active_subcategories": active,
        "inactive_subcategories": total - active,
        "featured_subcategories": featured,
        "root_subcategories": roots,
        "nested_subcategories": total - roots,
        "max_level": max_level,
        "products_with_subcategory": products_with_subcategory
    }


def count_by_category(db: Session) -> Dict[int, int]:
    rows = db.query(
        Subcategory.category_id,
        func.count(Subcategory.subcategory_id)
    ).group_by(Subcategory.category_id).all()
    return {category_id: count for category_id, count in rows}
