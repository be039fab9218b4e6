"""Entry path conventions: what each archive path means."""

from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple
from uuid import UUID

from ..constants import (
    ASSET_EXTENSION_SEPARATOR,
    ASSETS_PATH,
    CONTROL_FILE_PATH,
    INVENTORY_PATH,
    OBJECTS_PATH,
    SETTINGS_PATH,
    TERRAINS_PATH,
    USERLIST_FILE_PATH,
    USERS_PATH,
    AssetType,
    asset_type_for,
    extension_for,
)
from ..errors import decode_error
from ..model import SceneObject

__all__ = [
    "EntryCategory",
    "classify",
    "asset_entry_path",
    "parse_asset_entry_path",
    "object_entry_path",
    "settings_entry_path",
    "terrain_entry_path",
]


class EntryCategory(Enum):
    CONTROL = "control"
    ASSET = "asset"
    OBJECT = "object"
    TERRAIN = "terrain"
    SETTINGS = "settings"
    RESERVED = "reserved"
    UNKNOWN = "unknown"


def classify(path: str) -> EntryCategory:
    if path == CONTROL_FILE_PATH:
        return EntryCategory.CONTROL
    if path.startswith(OBJECTS_PATH):
        return EntryCategory.OBJECT
    if path.startswith(ASSETS_PATH):
        return EntryCategory.ASSET
    if path.startswith(TERRAINS_PATH):
        return EntryCategory.TERRAIN
    if path.startswith(SETTINGS_PATH):
        return EntryCategory.SETTINGS
    if path == USERLIST_FILE_PATH or path.startswith((USERS_PATH, INVENTORY_PATH)):
        return EntryCategory.RESERVED
    return EntryCategory.UNKNOWN


def asset_entry_path(asset_id: UUID, asset_type: int) -> Tuple[str, bool]:
    """Return ``(path, known_type)``; unknown types get no extension."""
    ext = extension_for(asset_type)
    return f"{ASSETS_PATH}{asset_id}{ext or ''}", ext is not None


def parse_asset_entry_path(path: str) -> Tuple[UUID, Optional[AssetType]]:
    """Split ``assets/<uuid>_<kind>.<ext>`` into id and type.

    The type is ``None`` when the extension is not in the table. A name
    without a separator or with a malformed id raises ``EntryDecodeError``.
    """
    filename = path[len(ASSETS_PATH):]
    i = filename.rfind(ASSET_EXTENSION_SEPARATOR)
    if i == -1:
        raise decode_error(
            f"Could not find extension information in asset path {path}",
            {"path": path},
        )
    extension = filename[i:]
    raw_id = filename[:i]
    try:
        asset_id = UUID(raw_id)
    except ValueError as e:
        raise decode_error(f"Invalid asset id in path {path}", {"path": path}) from e
    return asset_id, asset_type_for(extension)


def _coordinate(value: float) -> str:
    n = int(round(value))
    return f"-{abs(n):03d}" if n < 0 else f"{n:03d}"


def object_entry_path(obj: SceneObject) -> str:
    pos = obj.position
    name = obj.name.replace("/", "_")
    return (
        f"{OBJECTS_PATH}{name}_{_coordinate(pos.x)}-{_coordinate(pos.y)}-"
        f"{_coordinate(pos.z)}__{obj.object_id}.xml"
    )


def settings_entry_path(region_name: str) -> str:
    return f"{SETTINGS_PATH}{region_name}.xml"


def terrain_entry_path(region_name: str) -> str:
    return f"{TERRAINS_PATH}{region_name}.r32"
