"""I/O utilities: loading robot descriptions and persisting preprocessed assets.

This module provides the URDF description source and the asset stores used
to cache preprocessed shape collections.
"""

from .asset_store import AssetKey, AssetStore, AssetVariant, FileAssetStore, InMemoryAssetStore
from .urdf_parser import CollisionElement, find_robot_urdf, load_urdf, parse_collision_geometry, parse_urdf

__all__ = [
    "AssetKey",
    "AssetStore",
    "AssetVariant",
    "CollisionElement",
    "FileAssetStore",
    "InMemoryAssetStore",
    "find_robot_urdf",
    "load_urdf",
    "parse_collision_geometry",
    "parse_urdf",
]
