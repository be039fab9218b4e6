"""Small factories shared by the tests."""

from __future__ import annotations

import io
from typing import Dict, Iterable, Optional, Tuple, Union
from uuid import UUID, uuid4

from regionarchiver.constants import AssetType
from regionarchiver.container import ArchiveWriter
from regionarchiver.model import (
    PERM_ALL,
    PERM_COPY,
    Asset,
    SceneObject,
    ScenePart,
    TaskItem,
    TextureFace,
    Vector3,
)
from regionarchiver.scene import RegionInfo, Scene
from regionarchiver.store import IdentityDirectory, MemoryAssetStore


def make_part(
    owner: UUID,
    creator: Optional[UUID] = None,
    *,
    name: str = "Box",
    face_textures: Iterable[UUID] = (),
    sound: Optional[UUID] = None,
    items: Iterable[TaskItem] = (),
) -> ScenePart:
    part = ScenePart(
        part_id=uuid4(),
        name=name,
        creator_id=creator or owner,
        owner_id=owner,
        last_owner_id=owner,
    )
    for index, texture in enumerate(face_textures):
        part.shape.texture_entry.faces[index] = TextureFace(texture)
    part.sound_id = sound
    part.inventory = list(items)
    return part


def make_object(
    owner: UUID,
    creator: Optional[UUID] = None,
    *,
    name: str = "Box",
    position: Tuple[float, float, float] = (128.0, 128.0, 25.0),
    face_textures: Iterable[UUID] = (),
    sound: Optional[UUID] = None,
    items: Iterable[TaskItem] = (),
    no_copy: bool = False,
) -> SceneObject:
    part = make_part(
        owner, creator, name=name, face_textures=face_textures, sound=sound, items=items
    )
    if no_copy:
        part.owner_mask = PERM_ALL & ~PERM_COPY
    return SceneObject(parts=[part], position=Vector3(*position))


def make_item(
    asset_id: UUID,
    asset_type: AssetType,
    owner: UUID,
    creator: Optional[UUID] = None,
    name: str = "item",
) -> TaskItem:
    return TaskItem(
        item_id=uuid4(),
        asset_id=asset_id,
        asset_type=asset_type,
        name=name,
        owner_id=owner,
        creator_id=creator or owner,
        last_owner_id=owner,
    )


def make_scene(
    name: str = "Test Region",
    users: Iterable[UUID] = (),
    estate_owner: Optional[UUID] = None,
    assets: Iterable[Asset] = (),
) -> Scene:
    region = RegionInfo(name=name)
    if estate_owner is not None:
        region.estate_owner = estate_owner
    return Scene(
        region,
        assets=MemoryAssetStore(assets),
        identities=IdentityDirectory(users=users),
    )


def build_archive(entries: Dict[str, Union[bytes, str]]) -> io.BytesIO:
    """Write ``entries`` in order into an in-memory gzip'd tar."""
    buf = io.BytesIO()
    with ArchiveWriter(buf) as writer:
        for path, data in entries.items():
            writer.write_file(path, data)
    buf.seek(0)
    return buf
