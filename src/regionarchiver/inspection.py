"""Offline checks over an archive file: what is in it, and is it complete."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set
from uuid import UUID

from .constants import WELL_KNOWN_ASSET_IDS
from .container import (
    ArchiveReader,
    ControlInfo,
    EntryCategory,
    EntryKind,
    Source,
    classify,
    deserialize_object,
    open_source,
    parse_asset_entry_path,
    parse_control_file,
)
from .errors import EntryDecodeError, StreamFatalError
from .gatherer import AssetGatherer
from .model import Asset
from .store import MemoryAssetStore

__all__ = ["ArchiveInventory", "VerifyReport", "inspect_archive", "verify_archive"]


@dataclass
class ArchiveInventory:
    entries: int = 0
    counts: Counter = field(default_factory=Counter)
    asset_types: Counter = field(default_factory=Counter)
    unknown_extensions: List[str] = field(default_factory=list)
    bytes: int = 0
    control: Optional[ControlInfo] = None
    error_text: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "entries": self.entries,
            "counts": dict(sorted(self.counts.items())),
            "asset_types": dict(sorted(self.asset_types.items())),
            "unknown_extensions": list(self.unknown_extensions),
            "bytes": self.bytes,
            "control": self.control.to_dict() if self.control else None,
            "error": self.error_text,
        }

    def summary_line(self) -> str:
        c = self.counts
        return (
            f"Inspect summary: entries={self.entries} assets={c['asset']} "
            f"objects={c['object']} terrains={c['terrain']} settings={c['settings']} "
            f"unknown_ext={len(self.unknown_extensions)} bytes={self.bytes}"
        )


@dataclass
class VerifyReport:
    objects: int = 0
    assets: int = 0
    referenced: int = 0
    missing: Set[UUID] = field(default_factory=set)
    undecodable_objects: int = 0
    error_text: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.missing and self.error_text is None

    def summary_line(self) -> str:
        return (
            f"Verify summary: objects={self.objects} assets={self.assets} "
            f"referenced={self.referenced} missing={len(self.missing)} "
            f"undecodable={self.undecodable_objects}"
        )


def inspect_archive(source: Source) -> ArchiveInventory:
    inv = ArchiveInventory()
    try:
        with open_source(source) as fh:
            for entry in ArchiveReader(fh).entries():
                if entry.kind is EntryKind.DIRECTORY:
                    continue
                inv.entries += 1
                inv.bytes += len(entry.data)
                category = classify(entry.path)
                inv.counts[category.value] += 1
                if category is EntryCategory.ASSET:
                    try:
                        _, asset_type = parse_asset_entry_path(entry.path)
                    except EntryDecodeError:
                        asset_type = None
                    if asset_type is None:
                        inv.unknown_extensions.append(entry.path)
                    else:
                        inv.asset_types[asset_type.name.lower()] += 1
                elif category is EntryCategory.CONTROL:
                    try:
                        inv.control = parse_control_file(entry.data)
                    except EntryDecodeError as e:
                        inv.error_text = str(e)
    except StreamFatalError as e:
        inv.error_text = str(e)
    return inv


def verify_archive(source: Source, exempt: Iterable[UUID] = ()) -> VerifyReport:
    """Check that everything the objects reference is carried by the archive."""
    report = VerifyReport()
    store = MemoryAssetStore()
    texts: List[bytes] = []
    try:
        with open_source(source) as fh:
            for entry in ArchiveReader(fh).entries():
                if entry.kind is EntryKind.DIRECTORY:
                    continue
                category = classify(entry.path)
                if category is EntryCategory.OBJECT:
                    texts.append(entry.data)
                elif category is EntryCategory.ASSET:
                    try:
                        asset_id, asset_type = parse_asset_entry_path(entry.path)
                    except EntryDecodeError:
                        continue
                    if asset_type is not None:
                        store.put(Asset(asset_id, asset_type, entry.data))
    except StreamFatalError as e:
        report.error_text = str(e)

    report.assets = len(store)
    gatherer = AssetGatherer(store)
    closure: Dict[UUID, int] = {}
    for text in texts:
        try:
            obj = deserialize_object(text)
        except EntryDecodeError:
            report.undecodable_objects += 1
            continue
        report.objects += 1
        gatherer.gather_object(obj, closure)

    skip = WELL_KNOWN_ASSET_IDS | set(exempt)
    report.referenced = len(closure)
    report.missing = {a for a in closure if a not in skip and a not in store}
    return report
