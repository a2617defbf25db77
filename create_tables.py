#!/usr/bin/env python3
import sys
import logging

from core.config import settings
from database.connection import create_tables

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def create_all_tables() -> bool:
    """Create the category, subcategory and product tables"""
    try:
        logger.info(f"Creating database tables on {settings.DATABASE_URL}...")
        create_tables()
        logger.info("All tables created successfully")
        return True
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        return False


if __name__ == "__main__":
    success = create_all_tables()
    sys.exit(0 if success else 1)
