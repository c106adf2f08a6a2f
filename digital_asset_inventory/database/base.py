# digital_asset_inventory/database/base.py
"""
SQLAlchemy declarative base shared by all inventory models.
"""

from sqlalchemy.orm import declarative_base

# Declarative base for all models
Base = declarative_base()
