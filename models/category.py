from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text
from sqlalchemy.orm import relationship
from database.base import Base

class Category(Base):
    __tablename__ = "categories"

    category_id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    category_name_en = Column(String(255), nullable=False)
    category_name_ar = Column(String(255), nullable=True)
    category_name_he = Column(String(255), nullable=True)
    description_en = Column(Text, nullable=True)
    category_image = Column(String(500), nullable=True)
    display_order = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    subcategories = relationship("Subcategory", back_populates="category")

    def localized_name(self, lang: str = "en") -> str:
        return getattr(self, f"category_name_{lang}", None) or self.category_name_en

    def __repr__(self):
        return f"<Category(category_id={self.category_id}, name={self.category_name_en})>"
