"""Asset dependency closure.

Given a scene object (or a single asset), collect every asset id it depends
on, directly or through nested inventories, wearables and scripts. The
result maps asset id -> 1; membership is what matters, and an id already in
the map is never descended into again, which is also what cuts cycles.
"""

from __future__ import annotations

import re
from typing import Callable, Dict, Iterable, Iterator, Optional, Set
from uuid import UUID

from .constants import AssetType
from .container.objects import decode_object_asset, member_objects
from .container.wearable import wearable_textures
from .errors import EntryDecodeError
from .logging import get_logger
from .model import Asset, SceneObject, ScenePart, is_null_id
from .store import AssetStore

__all__ = ["AssetGatherer", "UUID_PATTERN", "part_references", "direct_references"]

UUID_PATTERN = re.compile(
    r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
)

Closure = Dict[UUID, int]


def part_references(part: ScenePart) -> Iterator[UUID]:
    """Non-null asset ids a part uses directly, excluding its inventory."""
    shape = part.shape
    te = shape.texture_entry
    candidates = [te.default_texture, shape.sculpt_texture, part.sound_id, part.collision_sound_id]
    candidates.extend(face.texture_id for face in te.faces.values())
    for mat in shape.render_materials.values():
        candidates.extend((mat.normal_id, mat.specular_id))
    for asset_id in candidates:
        if not is_null_id(asset_id):
            yield asset_id


def direct_references(obj: SceneObject) -> Set[UUID]:
    """Asset ids referenced by an object's parts and task items, without descending."""
    refs: Set[UUID] = set()
    for part in obj.parts:
        refs.update(part_references(part))
        refs.update(i.asset_id for i in part.inventory if not is_null_id(i.asset_id))
    return refs


class AssetGatherer:
    def __init__(self, store: AssetStore):
        self.store = store
        # Referenced but not in the store.
        self.missing: Set[UUID] = set()
        # Fetched but the payload could not be parsed.
        self.undecodable: Set[UUID] = set()
        self._handlers: Dict[AssetType, Callable[[Asset, Closure], None]] = {
            AssetType.BODYPART: self._gather_wearable,
            AssetType.CLOTHING: self._gather_wearable,
            AssetType.LSL_TEXT: self._gather_script,
            AssetType.OBJECT: self._gather_object_asset,
        }

    def gather_asset(
        self, asset_id: UUID, asset_type: int, result: Optional[Closure] = None
    ) -> Closure:
        if result is None:
            result = {}
        if is_null_id(asset_id) or asset_id in result:
            return result
        result[asset_id] = 1

        handler = self._handlers.get(AssetType.coerce(asset_type))
        if handler is None:
            return result
        asset = self._fetch(asset_id)
        if asset is not None:
            handler(asset, result)
        return result

    def gather_object(self, obj: SceneObject, result: Optional[Closure] = None) -> Closure:
        if result is None:
            result = {}
        for part in obj.parts:
            for asset_id in part_references(part):
                result[asset_id] = 1
            for item in part.inventory:
                if item.asset_id not in result:
                    self.gather_asset(item.asset_id, item.asset_type, result)
        return result

    def gather_objects(self, objects: Iterable[SceneObject]) -> Closure:
        result: Closure = {}
        for obj in objects:
            self.gather_object(obj, result)
        return result

    # Internals -----------------------------------------------------------------
    @staticmethod
    def _add(asset_id: Optional[UUID], result: Closure) -> None:
        if not is_null_id(asset_id):
            result[asset_id] = 1

    def _fetch(self, asset_id: UUID) -> Optional[Asset]:
        asset = self.store.get(asset_id)
        if asset is None:
            self.missing.add(asset_id)
            get_logger().debug("Asset %s not found while gathering", asset_id)
        return asset

    def _gather_wearable(self, asset: Asset, result: Closure) -> None:
        try:
            textures = wearable_textures(asset.data)
        except EntryDecodeError as e:
            self.undecodable.add(asset.asset_id)
            get_logger().warning("Wearable %s could not be decoded: %s", asset.asset_id, e.message)
            return
        for texture_id in textures.values():
            self._add(texture_id, result)

    def _gather_script(self, asset: Asset, result: Closure) -> None:
        # Over-inclusive: any UUID-shaped text in the source counts.
        text = asset.data.decode("utf-8", errors="replace")
        for match in UUID_PATTERN.findall(text):
            self._add(UUID(match), result)

    def _gather_object_asset(self, asset: Asset, result: Closure) -> None:
        try:
            decoded, skipped = decode_object_asset(asset.data)
        except EntryDecodeError as e:
            self.undecodable.add(asset.asset_id)
            get_logger().warning("Object asset %s could not be decoded: %s", asset.asset_id, e.message)
            return
        if skipped:
            get_logger().warning(
                "Skipped %d undecodable member(s) of coalesced asset %s", skipped, asset.asset_id
            )
        for obj in member_objects(decoded):
            self.gather_object(obj, result)
