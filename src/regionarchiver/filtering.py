"""Applies a ``FilterPolicy`` to deserialized scene objects.

Parts, textures, materials, sounds and task items are rewritten in place.
Object items are fetched, filtered recursively, and when anything inside
them changed the item is re-pointed at a freshly stored copy. The ripple
stops at the item: the containing part is mutated, not re-serialized.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Set, Tuple
from uuid import UUID, uuid4

from .constants import DEFAULT_SUBSTITUTE_TEXTURE_ID, AssetType
from .container.objects import (
    decode_object_asset,
    member_objects,
    serialize_coalesced,
    serialize_object,
)
from .errors import EntryDecodeError
from .logging import get_logger
from .model import Asset, CoalescedObject, PrimShape, SceneObject, ScenePart, TaskItem
from .policy import FilterPolicy
from .store import AssetStore

__all__ = ["ObjectFilter"]


class ObjectFilter:
    def __init__(self, policy: FilterPolicy, store: AssetStore):
        self.policy = policy
        self.store = store
        self.counters = policy.counters
        # Original object asset id -> id to use instead (itself when
        # unchanged, None when the item has to go).
        self._rewritten: Dict[UUID, Optional[UUID]] = {}
        self._visiting: Set[UUID] = set()

    def filter_object(self, obj: SceneObject) -> Tuple[SceneObject, bool]:
        changed = self._filter_tree(obj, obj.owner_id)
        self.counters.objects.count(changed)
        return obj, changed

    def _filter_tree(self, obj: SceneObject, owner: UUID) -> bool:
        changed = False
        for part in obj.parts:
            if self._filter_part(part, owner):
                changed = True
        return changed

    # Parts ---------------------------------------------------------------------
    def _filter_part(self, part: ScenePart, owner: UUID) -> bool:
        policy = self.policy
        shape = part.shape
        replace = policy.must_substitute_by_creator(
            part.creator_id
        ) or policy.must_substitute_by_asset(shape.sculpt_texture, owner)
        self.counters.parts.count(replace)

        changed = replace
        if replace:
            part.shape = PrimShape.default_box(shape.scale)
            note = f"(original creator {part.creator_id})"
            part.description = f"{part.description} {note}" if part.description else note
        else:
            changed |= self._filter_textures(shape, owner)
            changed |= self._filter_materials(shape, owner)
        changed |= self._filter_sounds(part, owner)
        changed |= self._filter_inventory(part, owner)
        return changed

    def _filter_textures(self, shape: PrimShape, owner: UUID) -> bool:
        te = shape.texture_entry
        changed = False
        if self.policy.must_substitute_by_asset(te.default_texture, owner):
            te.default_texture = DEFAULT_SUBSTITUTE_TEXTURE_ID
            te.default_material = None
            self.counters.textures.count(True)
            changed = True
        else:
            self.counters.textures.count(False)
        for face in te.faces.values():
            if self.policy.must_substitute_by_asset(face.texture_id, owner):
                face.texture_id = DEFAULT_SUBSTITUTE_TEXTURE_ID
                face.material_id = None
                self.counters.textures.count(True)
                changed = True
            else:
                self.counters.textures.count(False)
        return changed

    def _filter_materials(self, shape: PrimShape, owner: UUID) -> bool:
        stripped = []
        for mat_id, mat in shape.render_materials.items():
            bad = self.policy.must_substitute_by_asset(
                mat.normal_id, owner
            ) or self.policy.must_substitute_by_asset(mat.specular_id, owner)
            self.counters.materials.count(bad)
            if bad:
                stripped.append(mat_id)
        if not stripped:
            return False
        te = shape.texture_entry
        for mat_id in stripped:
            del shape.render_materials[mat_id]
            if te.default_material == mat_id:
                te.default_material = None
            for face in te.faces.values():
                if face.material_id == mat_id:
                    face.material_id = None
        return True

    def _filter_sounds(self, part: ScenePart, owner: UUID) -> bool:
        changed = False
        for attr in ("sound_id", "collision_sound_id"):
            sound = getattr(part, attr)
            if sound is None:
                continue
            bad = self.policy.must_substitute_by_asset(sound, owner)
            self.counters.sounds.count(bad)
            if bad:
                setattr(part, attr, None)
                changed = True
        return changed

    # Inventory -----------------------------------------------------------------
    def _filter_inventory(self, part: ScenePart, owner: UUID) -> bool:
        kept: List[TaskItem] = []
        changed = False
        for item in part.inventory:
            keep = not self.policy.must_substitute_by_asset(
                item.asset_id, owner, item.creator_id
            )
            if (
                keep
                and item.asset_type == AssetType.OBJECT
                and not self.policy.is_exempt(item.asset_id)
            ):
                keep, nested_changed = self._filter_object_item(item, owner)
                changed |= nested_changed
            self.counters.items.count(not keep)
            if keep:
                kept.append(item)
            else:
                changed = True
        part.inventory = kept
        return changed

    def _filter_object_item(self, item: TaskItem, owner: UUID) -> Tuple[bool, bool]:
        """Filter the object stored behind an inventory item.

        Returns ``(keep, changed)``.
        """
        original = item.asset_id
        if original in self._rewritten:
            target = self._rewritten[original]
            if target is None:
                return False, True
            item.asset_id = target
            return True, target != original
        if original in self._visiting:
            return True, False

        asset = self.store.get(original)
        if asset is None:
            self.counters.nested_missing += 1
            get_logger().debug("Nested object asset %s not found; left as is", original)
            return True, False

        self._visiting.add(original)
        try:
            try:
                decoded, skipped = decode_object_asset(asset.data)
            except EntryDecodeError as e:
                self.counters.nested_undecodable += 1
                self._rewritten[original] = None
                get_logger().warning(
                    "Removing item %s: object asset %s is undecodable (%s)",
                    item.name, original, e.message,
                )
                return False, True

            changed = skipped > 0
            self.counters.nested_undecodable += skipped
            for nested in member_objects(decoded):
                if self._filter_tree(nested, owner):
                    changed = True
            self.counters.nested.count(changed)

            if not changed:
                self._rewritten[original] = original
                return True, False

            new_id = self._store_rewritten(asset, decoded, item.creator_id)
            self._rewritten[original] = new_id
            item.asset_id = new_id
            return True, True
        finally:
            self._visiting.discard(original)

    def _store_rewritten(self, asset: Asset, decoded, creator_id: UUID) -> UUID:
        if isinstance(decoded, CoalescedObject):
            text = serialize_coalesced(decoded)
        else:
            text = serialize_object(decoded)
        new_id = uuid4()
        self.store.put(
            Asset(
                asset_id=new_id,
                asset_type=AssetType.OBJECT,
                data=text.encode("utf-8"),
                name=asset.name,
                description=asset.description,
            )
        )
        self.policy.attribution[new_id] = creator_id
        get_logger().debug("Object asset %s rewritten as %s", asset.asset_id, new_id)
        return new_id
