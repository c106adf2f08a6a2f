"""
Pydantic models for the asset type catalogue (asset_types.yml).

Usage:
    from digital_asset_inventory.models.config_models import AssetTypesConfig
    catalogue = AssetTypesConfig.from_yaml("asset_types.yml")
    catalogue.category_for("pdf")  # "Documents"
"""

import os
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AssetTypeDefinition(BaseModel):
    """One asset type: label, category and optional external URL patterns."""
    model_config = ConfigDict(extra='forbid')

    label: str = Field(description="Human readable label")
    category: str = Field(description="Category (Documents, Videos, Images, Audio, Other)")
    url_patterns: List[str] = Field(
        default_factory=list,
        description="Substrings identifying external URLs of this type",
    )


class AssetTypesConfig(BaseModel):
    """Root of asset_types.yml."""
    model_config = ConfigDict(extra='forbid')

    asset_types: Dict[str, AssetTypeDefinition] = Field(default_factory=dict)

    def category_for(self, asset_type: str) -> str:
        definition = self.asset_types.get(asset_type)
        return definition.category if definition else "Unknown"

    def label_for(self, asset_type: str) -> str:
        definition = self.asset_types.get(asset_type)
        return definition.label if definition else asset_type

    def match_url(self, url: str) -> Optional[str]:
        """Return the first asset type whose URL pattern occurs in ``url``."""
        lowered = url.strip().lower()
        for asset_type, definition in self.asset_types.items():
            for pattern in definition.url_patterns:
                if pattern.lower() in lowered:
                    return asset_type
        return None

    @classmethod
    def from_yaml(cls, yaml_path: str) -> "AssetTypesConfig":
        """
        Load and validate the catalogue from a YAML file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            pydantic.ValidationError: If the structure is invalid
        """
        import yaml

        if not os.path.exists(yaml_path):
            raise FileNotFoundError(f"Asset type catalogue not found: {yaml_path}")

        with open(yaml_path, 'r') as f:
            raw_config = yaml.safe_load(f) or {}

        return cls(**raw_config)
