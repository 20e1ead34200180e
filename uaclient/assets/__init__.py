"""
Unit assets and their registry.
"""

from .registry import AssetRegistry, CleanupStack
from .unit_asset import UnitAsset, new_unit_asset

__all__ = [
    'AssetRegistry',
    'CleanupStack',
    'UnitAsset',
    'new_unit_asset',
]
