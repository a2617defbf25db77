from __future__ import annotations

import os
import tempfile

# Settings are read at import time, so the test database and upload folder
# must be in the environment before any application module is imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "testing"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="catalog-admin-uploads-")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from database.base import Base
from database.connection import engine, SessionLocal, get_db, create_tables
from main import app
from models.category import Category
from models.product import Product
from services.subcategory import SubcategoryService


# ----------------------------
# Database
# ----------------------------

@pytest.fixture()
def db():
    # sqlite:// + StaticPool => one live connection, fresh schema per test
    create_tables()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# ----------------------------
# Catalog data
# ----------------------------

@pytest.fixture()
def category(db):
    c = Category(
        category_name_en="Electronics",
        category_name_ar="إلكترونيات",
        category_name_he="אלקטרוניקה",
        display_order=1,
        is_active=True,
    )
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


@pytest.fixture()
def other_category(db):
    c = Category(category_name_en="Home", display_order=2, is_active=True)
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


@pytest.fixture()
def make_node(db, category):
    """Create a subcategory through the service: make_node("Phones", parent=electronics)"""

    def _make(name, parent=None, category_id=None, **extra):
        fields = {
            "category_id": category_id or (parent.category_id if parent else category.category_id),
            "parent_id": parent.subcategory_id if parent else None,
            "subcategory_name_en": name,
        }
        fields.update(extra)
        return SubcategoryService.create_node(db, fields, actor_id="tester")

    return _make


@pytest.fixture()
def make_product(db, category):
    counter = {"n": 0}

    def _make(subcategory, is_active=True, **extra):
        counter["n"] += 1
        p = Product(
            sku=f"SKU-{counter['n']:04d}",
            product_name_en=f"Product {counter['n']}",
            base_price=10,
            stock_quantity=5,
            category_id=subcategory.category_id if subcategory else category.category_id,
            subcategory_id=subcategory.subcategory_id if subcategory else None,
            is_active=is_active,
            **extra,
        )
        db.add(p)
        db.commit()
        db.refresh(p)
        return p

    return _make


@pytest.fixture()
def electronics_tree(make_node):
    """Electronics (1) > Phones (2) > Smartphones (3)"""
    electronics = make_node("Electronics")
    phones = make_node("Phones", parent=electronics)
    smartphones = make_node("Smartphones", parent=phones)
    return electronics, phones, smartphones
