"""Dataclass models for assets and scene objects carried by archives."""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional
from uuid import UUID, uuid4

from .constants import AssetType, DEFAULT_TEXTURE_ID, ZERO_ID

__all__ = [
    "PERM_TRANSFER",
    "PERM_MODIFY",
    "PERM_COPY",
    "PERM_MOVE",
    "PERM_ALL",
    "Vector3",
    "Quaternion",
    "Asset",
    "TextureFace",
    "TextureEntry",
    "RenderMaterial",
    "PrimShape",
    "TaskItem",
    "ScenePart",
    "SceneObject",
    "ItemPermissions",
    "CoalescedObject",
    "is_null_id",
]

PERM_TRANSFER = 1 << 13
PERM_MODIFY = 1 << 14
PERM_COPY = 1 << 15
PERM_MOVE = 1 << 19
PERM_ALL = 0x7FFFFFFF


def is_null_id(value: Optional[UUID]) -> bool:
    return value is None or value == ZERO_ID


@dataclass(slots=True)
class Vector3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@dataclass(slots=True)
class Quaternion:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    w: float = 1.0


@dataclass(slots=True)
class Asset:
    asset_id: UUID
    asset_type: AssetType
    data: bytes = b""
    name: str = ""
    description: str = ""


@dataclass(slots=True)
class TextureFace:
    texture_id: UUID
    material_id: Optional[UUID] = None


@dataclass(slots=True)
class TextureEntry:
    """Default texture plus per-face overrides keyed by face index."""

    default_texture: UUID = DEFAULT_TEXTURE_ID
    default_material: Optional[UUID] = None
    faces: Dict[int, TextureFace] = field(default_factory=dict)

    def texture_ids(self) -> Iterator[UUID]:
        yield self.default_texture
        for index in sorted(self.faces):
            yield self.faces[index].texture_id


@dataclass(slots=True)
class RenderMaterial:
    normal_id: Optional[UUID] = None
    specular_id: Optional[UUID] = None


@dataclass(slots=True)
class PrimShape:
    profile_curve: int = 1
    path_curve: int = 16
    path_begin: int = 0
    path_end: int = 0
    path_scale_x: int = 100
    path_scale_y: int = 100
    profile_begin: int = 0
    profile_end: int = 0
    profile_hollow: int = 0
    scale: Vector3 = field(default_factory=lambda: Vector3(0.5, 0.5, 0.5))
    texture_entry: TextureEntry = field(default_factory=TextureEntry)
    sculpt_texture: Optional[UUID] = None
    sculpt_type: int = 0
    render_materials: Dict[UUID, RenderMaterial] = field(default_factory=dict)

    @classmethod
    def default_box(cls, scale: Optional[Vector3] = None) -> "PrimShape":
        shape = cls()
        if scale is not None:
            shape.scale = Vector3(scale.x, scale.y, scale.z)
        return shape


@dataclass(slots=True)
class TaskItem:
    item_id: UUID
    asset_id: UUID
    asset_type: AssetType
    name: str = ""
    description: str = ""
    inv_type: int = 0
    owner_id: UUID = ZERO_ID
    creator_id: UUID = ZERO_ID
    last_owner_id: UUID = ZERO_ID
    base_mask: int = PERM_ALL
    owner_mask: int = PERM_ALL
    next_owner_mask: int = PERM_ALL
    coalesced: bool = False


@dataclass(slots=True)
class ScenePart:
    part_id: UUID
    name: str = "Object"
    description: str = ""
    creator_id: UUID = ZERO_ID
    owner_id: UUID = ZERO_ID
    last_owner_id: UUID = ZERO_ID
    offset_position: Vector3 = field(default_factory=Vector3)
    base_mask: int = PERM_ALL
    owner_mask: int = PERM_ALL
    next_owner_mask: int = PERM_ALL
    group_mask: int = 0
    everyone_mask: int = 0
    shape: PrimShape = field(default_factory=PrimShape)
    sound_id: Optional[UUID] = None
    collision_sound_id: Optional[UUID] = None
    inventory: List[TaskItem] = field(default_factory=list)


@dataclass(slots=True)
class SceneObject:
    """A linked set of parts; ``parts[0]`` is the root."""

    parts: List[ScenePart]
    position: Vector3 = field(default_factory=Vector3)
    rotation: Quaternion = field(default_factory=Quaternion)
    is_attachment: bool = False

    @property
    def root_part(self) -> ScenePart:
        return self.parts[0]

    @property
    def object_id(self) -> UUID:
        return self.parts[0].part_id

    @property
    def name(self) -> str:
        return self.parts[0].name

    @property
    def owner_id(self) -> UUID:
        return self.parts[0].owner_id

    def reset_ids(self) -> UUID:
        """Give every part and task item a fresh id; return the old object id."""
        old_id = self.object_id
        for part in self.parts:
            part.part_id = uuid4()
            for item in part.inventory:
                item.item_id = uuid4()
        return old_id

    def is_no_copy(self) -> bool:
        for part in self.parts:
            if not part.owner_mask & PERM_COPY:
                return True
            for item in part.inventory:
                if not item.owner_mask & PERM_COPY:
                    return True
        return False


@dataclass(slots=True)
class ItemPermissions:
    base_mask: int = PERM_ALL
    owner_mask: int = PERM_ALL
    next_owner_mask: int = PERM_ALL
    group_mask: int = 0
    everyone_mask: int = 0


@dataclass(slots=True)
class CoalescedObject:
    objects: List[SceneObject] = field(default_factory=list)
    permissions: List[ItemPermissions] = field(default_factory=list)
