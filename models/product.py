from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Numeric, Integer
from database.base import Base

class Product(Base):
    """Catalog product, only the columns the subcategory admin reads or clears"""
    __tablename__ = "products"

    product_id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    sku = Column(String(100), nullable=True, unique=True)
    product_name_en = Column(String(255), nullable=False)
    product_name_ar = Column(String(255), nullable=True)
    product_name_he = Column(String(255), nullable=True)
    base_price = Column(Numeric(10, 2), nullable=False, default=0)
    stock_quantity = Column(Integer, default=0)
    category_id = Column(Integer, ForeignKey("categories.category_id"), nullable=True)
    subcategory_id = Column(Integer, ForeignKey("subcategories.subcategory_id"), nullable=True, index=True)
    is_active = Column(Boolean, default=True)
    is_featured = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def localized_name(self, lang: str = "en") -> str:
        return getattr(self, f"product_name_{lang}", None) or self.product_name_en

    def __repr__(self):
        return f"<Product(product_id={self.product_id}, subcategory_id={self.subcategory_id})>"
