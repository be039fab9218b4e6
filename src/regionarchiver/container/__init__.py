from .tar import (
    ArchiveEntry,
    ArchiveReader,
    ArchiveWriter,
    EntryKind,
    Source,
    open_destination,
    open_source,
)
from .layout import (
    EntryCategory,
    asset_entry_path,
    classify,
    object_entry_path,
    parse_asset_entry_path,
    settings_entry_path,
    terrain_entry_path,
)
from .objects import (
    decode_object_asset,
    deserialize_coalesced,
    deserialize_object,
    is_coalesced,
    member_objects,
    serialize_coalesced,
    serialize_object,
)
from .wearable import encode_wearable, wearable_textures
from .control import ControlInfo, create_control_file, parse_control_file

__all__ = [
    "ArchiveEntry",
    "ArchiveReader",
    "ArchiveWriter",
    "EntryKind",
    "Source",
    "open_destination",
    "open_source",
    "EntryCategory",
    "asset_entry_path",
    "classify",
    "object_entry_path",
    "parse_asset_entry_path",
    "settings_entry_path",
    "terrain_entry_path",
    "decode_object_asset",
    "deserialize_coalesced",
    "deserialize_object",
    "is_coalesced",
    "member_objects",
    "serialize_coalesced",
    "serialize_object",
    "encode_wearable",
    "wearable_textures",
    "ControlInfo",
    "create_control_file",
    "parse_control_file",
]
