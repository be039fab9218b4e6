"""Archive layout constants: entry prefixes, asset types and extensions.

The path prefixes and extension strings are part of the interchange format
and must match other archive producers byte for byte.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Dict, Optional
from uuid import UUID

__all__ = [
    "AssetType",
    "CONTROL_FILE_PATH",
    "USERLIST_FILE_PATH",
    "ASSETS_PATH",
    "INVENTORY_PATH",
    "OBJECTS_PATH",
    "TERRAINS_PATH",
    "SETTINGS_PATH",
    "USERS_PATH",
    "ASSET_EXTENSION_SEPARATOR",
    "INVENTORY_NODE_NAME_COMPONENT_SEPARATOR",
    "ASSET_TYPE_TO_EXTENSION",
    "EXTENSION_TO_ASSET_TYPE",
    "extension_for",
    "asset_type_for",
    "ARCHIVE_MAJOR_VERSION",
    "ARCHIVE_MINOR_VERSION",
    "REGION_SIZE",
    "ZERO_ID",
    "LIBRARY_OWNER_ID",
    "DEFAULT_TEXTURE_ID",
    "BLANK_TEXTURE_ID",
    "TRANSPARENT_TEXTURE_ID",
    "DEFAULT_MEDIA_TEXTURE_ID",
    "DEFAULT_SUBSTITUTE_TEXTURE_ID",
    "DEFAULT_COLLISION_SOUND_ID",
    "WELL_KNOWN_ASSET_IDS",
]


class AssetType(IntEnum):
    """Asset type tags, numbered as on the wire."""

    UNKNOWN = -1
    TEXTURE = 0
    SOUND = 1
    CALLING_CARD = 2
    LANDMARK = 3
    CLOTHING = 5
    OBJECT = 6
    NOTECARD = 7
    FOLDER = 8
    ROOT_FOLDER = 9
    LSL_TEXT = 10
    LSL_BYTECODE = 11
    TEXTURE_TGA = 12
    BODYPART = 13
    TRASH_FOLDER = 14
    SNAPSHOT_FOLDER = 15
    LOST_AND_FOUND_FOLDER = 16
    SOUND_WAV = 17
    IMAGE_TGA = 18
    IMAGE_JPEG = 19
    ANIMATION = 20
    GESTURE = 21
    SIMSTATE = 22
    MESH = 49

    @classmethod
    def coerce(cls, value: int) -> "AssetType":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


CONTROL_FILE_PATH = "archive.xml"
USERLIST_FILE_PATH = "userlist.txt"
ASSETS_PATH = "assets/"
INVENTORY_PATH = "inventory/"
OBJECTS_PATH = "objects/"
TERRAINS_PATH = "terrains/"
SETTINGS_PATH = "settings/"
USERS_PATH = "userprofiles/"

ASSET_EXTENSION_SEPARATOR = "_"
INVENTORY_NODE_NAME_COMPONENT_SEPARATOR = "__"

ARCHIVE_MAJOR_VERSION = 0
ARCHIVE_MINOR_VERSION = 8
REGION_SIZE = 256

_S = ASSET_EXTENSION_SEPARATOR

ASSET_TYPE_TO_EXTENSION: Dict[AssetType, str] = {
    AssetType.ANIMATION: _S + "animation.bvh",
    AssetType.BODYPART: _S + "bodypart.txt",
    AssetType.CALLING_CARD: _S + "callingcard.txt",
    AssetType.CLOTHING: _S + "clothing.txt",
    AssetType.FOLDER: _S + "folder.txt",
    AssetType.GESTURE: _S + "gesture.txt",
    AssetType.IMAGE_JPEG: _S + "image.jpg",
    AssetType.IMAGE_TGA: _S + "image.tga",
    AssetType.LANDMARK: _S + "landmark.txt",
    AssetType.LOST_AND_FOUND_FOLDER: _S + "lostandfoundfolder.txt",
    AssetType.LSL_BYTECODE: _S + "bytecode.lso",
    AssetType.LSL_TEXT: _S + "script.lsl",
    AssetType.MESH: _S + "mesh.llmesh",
    AssetType.NOTECARD: _S + "notecard.txt",
    AssetType.OBJECT: _S + "object.xml",
    AssetType.ROOT_FOLDER: _S + "rootfolder.txt",
    AssetType.SIMSTATE: _S + "simstate.bin",
    AssetType.SNAPSHOT_FOLDER: _S + "snapshotfolder.txt",
    AssetType.SOUND: _S + "sound.ogg",
    AssetType.SOUND_WAV: _S + "sound.wav",
    AssetType.TEXTURE: _S + "texture.jp2",
    AssetType.TEXTURE_TGA: _S + "texture.tga",
    AssetType.TRASH_FOLDER: _S + "trashfolder.txt",
}

EXTENSION_TO_ASSET_TYPE: Dict[str, AssetType] = {
    ext: atype for atype, ext in ASSET_TYPE_TO_EXTENSION.items()
}


def extension_for(asset_type: int) -> Optional[str]:
    return ASSET_TYPE_TO_EXTENSION.get(AssetType.coerce(asset_type))


def asset_type_for(extension: str) -> Optional[AssetType]:
    return EXTENSION_TO_ASSET_TYPE.get(extension)


ZERO_ID = UUID(int=0)

# Owner of the built-in content library; always treated as a valid identity.
LIBRARY_OWNER_ID = UUID("11111111-1111-0000-0000-000100bba000")

# Viewer-side defaults. These never travel in archives.
DEFAULT_TEXTURE_ID = UUID("89556747-24cb-43ed-920b-47caed15465f")
BLANK_TEXTURE_ID = UUID("5748decc-f629-461c-9a36-a35a221fe21f")
TRANSPARENT_TEXTURE_ID = UUID("8dcd4a48-2d37-4909-9f78-f7a9eb4ef903")
DEFAULT_MEDIA_TEXTURE_ID = UUID("8b5fec65-8d8d-9dc5-cda8-8fdf2716e361")
DEFAULT_COLLISION_SOUND_ID = UUID("6f1d7d5f-e7bd-4d5d-a8bc-3ef4ad0d5e18")

DEFAULT_SUBSTITUTE_TEXTURE_ID = DEFAULT_TEXTURE_ID

WELL_KNOWN_ASSET_IDS = frozenset(
    {
        DEFAULT_TEXTURE_ID,
        BLANK_TEXTURE_ID,
        TRANSPARENT_TEXTURE_ID,
        DEFAULT_MEDIA_TEXTURE_ID,
        DEFAULT_COLLISION_SOUND_ID,
    }
)
