"""Keyed storage for preprocessed robot assets.

Entries are serialized text (JSON) keyed by robot, representation scheme and
variant. The "permanent" variant is the baseline captured right after
preprocessing; "current" is the copy calibration writes to.
"""

import enum
import logging
from pathlib import Path
from typing import Dict, Protocol, Union

from flax import struct

from ..errors import AssetNotFound, AssetUnavailable

logger = logging.getLogger(__name__)


class AssetVariant(enum.Enum):
    CURRENT = "current"
    PERMANENT = "permanent"


@struct.dataclass
class AssetKey:
    robot_name: str = struct.field(pytree_node=False)
    representation: str = struct.field(pytree_node=False)
    variant: AssetVariant = struct.field(pytree_node=False, default=AssetVariant.CURRENT)


class AssetStore(Protocol):
    def save(self, key: AssetKey, text: str) -> None: ...

    def load(self, key: AssetKey) -> str: ...

    def exists(self, key: AssetKey) -> bool: ...


class FileAssetStore:
    """Stores entries as ``<root>/robots/<robot>/shape_geometry/<representation>.<variant>.json``."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def path_for(self, key: AssetKey) -> Path:
        return (self.root / "robots" / key.robot_name / "shape_geometry"
                / f"{key.representation}.{key.variant.value}.json")

    def save(self, key: AssetKey, text: str) -> None:
        path = self.path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text)
        except OSError as e:
            raise AssetUnavailable(f"failed to save {path}: {e}") from e
        logger.debug("Saved asset %s", path)

    def load(self, key: AssetKey) -> str:
        path = self.path_for(key)
        if not path.exists():
            raise AssetNotFound(f"no asset at {path}")
        try:
            text = path.read_text()
        except OSError as e:
            raise AssetUnavailable(f"failed to load {path}: {e}") from e
        logger.debug("Loaded asset %s", path)
        return text

    def exists(self, key: AssetKey) -> bool:
        return self.path_for(key).exists()


class InMemoryAssetStore:
    """Dictionary-backed store; nothing touches the filesystem."""

    def __init__(self):
        self.entries: Dict[AssetKey, str] = {}

    def save(self, key: AssetKey, text: str) -> None:
        self.entries[key] = text

    def load(self, key: AssetKey) -> str:
        if key not in self.entries:
            raise AssetNotFound(f"no asset for {key}")
        return self.entries[key]

    def exists(self, key: AssetKey) -> bool:
        return key in self.entries
