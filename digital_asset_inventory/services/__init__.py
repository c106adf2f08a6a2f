# digital_asset_inventory/services/__init__.py
"""Services package for the digital asset inventory."""
