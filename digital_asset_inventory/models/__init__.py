# digital_asset_inventory/models/__init__.py
"""Pydantic models for configuration files and export projections."""
