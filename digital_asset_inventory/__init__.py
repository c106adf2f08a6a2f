# digital_asset_inventory/__init__.py
"""Digital Asset Inventory - asset/usage tracking with a compliance archive lifecycle."""

__version__ = "1.0.0"
__title__ = "Digital Asset Inventory"
