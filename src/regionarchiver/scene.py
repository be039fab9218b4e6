"""Destination scene adapter.

The archiver only needs a narrow slice of a region: its objects, the opaque
terrain and settings blobs, the asset store and identity directory, the
built-in library content and a hook to start scripts. ``Scene`` holds these
in memory; a live region wraps its own services behind the same methods.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set
from uuid import UUID, uuid4

from .constants import AssetType, REGION_SIZE, ZERO_ID
from .model import SceneObject
from .store import AssetStore, IdentityDirectory, MemoryAssetStore

__all__ = ["RegionInfo", "Scene"]


@dataclass(slots=True)
class RegionInfo:
    name: str
    region_id: UUID = field(default_factory=uuid4)
    estate_owner: UUID = ZERO_ID
    master_avatar: UUID = ZERO_ID
    size_x: int = REGION_SIZE
    size_y: int = REGION_SIZE
    is_megaregion: bool = False

    @property
    def default_owner(self) -> UUID:
        """Identity that receives objects whose owner cannot be resolved."""
        if self.estate_owner != ZERO_ID:
            return self.estate_owner
        return self.master_avatar


class Scene:
    def __init__(
        self,
        region: RegionInfo,
        assets: Optional[AssetStore] = None,
        identities: Optional[IdentityDirectory] = None,
        library_assets: Optional[Set[UUID]] = None,
    ):
        self.region = region
        self.assets = assets if assets is not None else MemoryAssetStore()
        self.identities = identities if identities is not None else IdentityDirectory()
        self.library_assets: Set[UUID] = set(library_assets or ())
        self.terrain: bytes = b""
        self.terrain_source: Optional[str] = None
        self.settings: bytes = b""
        # Object removal and insertion for one import must not interleave
        # with other scene mutators.
        self.mutation_lock = threading.RLock()
        self.started_scripts: List[UUID] = []
        self._objects: Dict[UUID, SceneObject] = {}

    # Objects -----------------------------------------------------------------
    def objects(self) -> List[SceneObject]:
        with self.mutation_lock:
            return list(self._objects.values())

    def get_object(self, object_id: UUID) -> Optional[SceneObject]:
        with self.mutation_lock:
            return self._objects.get(object_id)

    def add_object(self, obj: SceneObject) -> bool:
        with self.mutation_lock:
            if obj.object_id in self._objects:
                return False
            self._objects[obj.object_id] = obj
            return True

    def remove_objects_except(
        self, keep: Callable[[SceneObject], bool]
    ) -> List[SceneObject]:
        """Delete every object for which ``keep`` is false; return the kept ones."""
        with self.mutation_lock:
            kept = [o for o in self._objects.values() if keep(o)]
            self._objects = {o.object_id: o for o in kept}
            return kept

    def start_scripts(self, obj: SceneObject) -> int:
        started = 0
        for part in obj.parts:
            for item in part.inventory:
                if item.asset_type == AssetType.LSL_TEXT:
                    self.started_scripts.append(item.item_id)
                    started += 1
        return started

    # Terrain and settings -------------------------------------------------------
    def load_terrain(self, source: str, data: bytes) -> None:
        self.terrain_source = source
        self.terrain = data

    def save_terrain(self) -> bytes:
        return self.terrain

    def apply_region_settings(self, data: bytes) -> None:
        self.settings = data

    def region_settings(self) -> bytes:
        return self.settings

    def library_asset_ids(self) -> Set[UUID]:
        return set(self.library_assets)
