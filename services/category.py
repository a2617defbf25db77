from sqlalchemy.orm import Session
from sqlalchemy import asc
from models.category import Category
from typing import List, Optional


def get_category_by_id(db: Session, category_id: int) -> Optional[Category]:
    """Get a category by ID"""
    return db.query(Category).filter(Category.category_id == category_id).first()


def category_exists(db: Session, category_id: int) -> bool:
    return get_category_by_id(db, category_id) is not None


def get_all_categories(db: Session, is_active: Optional[bool] = None) -> List[Category]:
    """Categories in display order"""
    query = db.query(Category)
    if is_active is not None:
        query = query.filter(Category.is_active == is_active)
    return query.order_by(asc(Category.display_order), asc(Category.category_id)).all()
