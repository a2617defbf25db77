from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, ForeignKey, Index
from sqlalchemy.orm import relationship
from database.base import Base

LOCALES = ("en", "ar", "he")
PRIMARY_LOCALE = "en"

class Subcategory(Base):
    """A node of the per-category subcategory tree.

    ``level`` is 1 for a root node (``parent_id`` is NULL) and
    ``parent.level + 1`` otherwise. Every node of a subtree shares the
    ``category_id`` of its root.
    """
    __tablename__ = "subcategories"

    subcategory_id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    category_id = Column(Integer, ForeignKey("categories.category_id"), nullable=False, index=True)
    parent_id = Column(Integer, ForeignKey("subcategories.subcategory_id"), nullable=True, index=True)
    level = Column(Integer, nullable=False, default=1)
    subcategory_name_en = Column(String(255), nullable=False)
    subcategory_name_ar = Column(String(255), nullable=True)
    subcategory_name_he = Column(String(255), nullable=True)
    description_en = Column(Text, nullable=True)
    description_ar = Column(Text, nullable=True)
    description_he = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)
    display_order = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    is_featured = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    category = relationship("Category", back_populates="subcategories")

    __table_args__ = (
        Index("ix_subcategories_category_parent", "category_id", "parent_id"),
    )

    def localized_name(self, lang: str = PRIMARY_LOCALE) -> str:
        return getattr(self, f"subcategory_name_{lang}", None) or self.subcategory_name_en

    def localized_description(self, lang: str = PRIMARY_LOCALE):
        return getattr(self, f"description_{lang}", None) or self.description_en

    def __repr__(self):
        return (
            f"<Subcategory(subcategory_id={self.subcategory_id}, category_id={self.category_id}, "
            f"parent_id={self.parent_id}, level={self.level}, name={self.subcategory_name_en})>"
        )
