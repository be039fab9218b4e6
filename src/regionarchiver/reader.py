"""Import pipeline: archive -> destination scene.

The import is a small state machine::

    STREAMING -> ASSETS_RESOLVED -> OBJECTS_FILTERED -> MERGED -> DONE
         \\______________\\__________________\\___________> FAILED

Assets, terrain and settings are applied while the container is streamed;
object entries are buffered and only restored once the whole stream has been
read, because they may reference assets that appear later in the archive.
A stream error or cancellation leaves whatever was already applied in place.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple, Union
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
from .errors import (
    E_CANCELLED,
    ArchiveError,
    EntryDecodeError,
    ImportCancelledError,
    StreamFatalError,
    asset_missing,
    identity_unresolved,
)
from .filtering import ObjectFilter
from .gatherer import direct_references
from .logging import get_logger, section
from .model import Asset, SceneObject, is_null_id
from .policy import FilterCounters, FilterPolicy
from .reporting import get_reporter, task
from .scene import Scene
from .store import AttributionStore

__all__ = [
    "ImportState",
    "ImportResult",
    "ImportPipeline",
    "ScanResult",
    "creator_pairs",
    "harvest_creators",
    "scan_archive",
]


class ImportState(Enum):
    STREAMING = "streaming"
    ASSETS_RESOLVED = "assets_resolved"
    OBJECTS_FILTERED = "objects_filtered"
    MERGED = "merged"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ImportResult:
    state: ImportState = ImportState.STREAMING
    objects_restored: int = 0
    # Object entries that failed to deserialize (tolerant mode).
    objects_skipped: int = 0
    # Dropped because the declared owner is not on the allow-list.
    objects_excluded: int = 0
    # Existing no-copy objects whose placement was updated instead.
    objects_reconciled: int = 0
    assets_restored: int = 0
    assets_failed: int = 0
    terrain_loaded: bool = False
    settings_loaded: bool = False
    error_text: Optional[str] = None
    error: Optional[ArchiveError] = None
    control: Optional[ControlInfo] = None
    # New object id -> id declared in the archive.
    id_map: Dict[UUID, UUID] = field(default_factory=dict)
    missing_references: Set[UUID] = field(default_factory=set)
    owners_reassigned: int = 0
    attribution_pairs: int = 0
    filter_counters: Optional[FilterCounters] = None
    # Non-fatal AssetMissingError and IdentityUnresolvedError records.
    issues: List[ArchiveError] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.state is ImportState.FAILED

    def summary_line(self) -> str:
        return (
            f"Import summary: state={self.state.name} objects={self.objects_restored} "
            f"skipped={self.objects_skipped} excluded={self.objects_excluded} "
            f"reconciled={self.objects_reconciled} assets={self.assets_restored} "
            f"failed={self.assets_failed} missing_refs={len(self.missing_references)}"
        )


@dataclass(slots=True)
class ScanResult:
    pairs: int = 0
    objects_scanned: int = 0
    objects_failed: int = 0
    error_text: Optional[str] = None

    def summary_line(self) -> str:
        return (
            f"Scan summary: pairs={self.pairs} objects={self.objects_scanned} "
            f"failed={self.objects_failed}"
        )


def creator_pairs(obj: SceneObject) -> Dict[UUID, UUID]:
    return {
        item.asset_id: item.creator_id
        for part in obj.parts
        for item in part.inventory
        if not is_null_id(item.asset_id)
    }


def harvest_creators(texts: Iterable[Union[bytes, str]]) -> Tuple[Dict[UUID, UUID], int, int]:
    """Collect task item asset -> creator pairs from serialized objects.

    Returns ``(pairs, scanned, failed)``. Objects that do not deserialize are
    logged and skipped.
    """
    pairs: Dict[UUID, UUID] = {}
    scanned = failed = 0
    for text in texts:
        try:
            obj = deserialize_object(text)
        except EntryDecodeError as e:
            failed += 1
            get_logger().info("Error while deserializing group during scan: %s", e.message)
            continue
        scanned += 1
        pairs.update(creator_pairs(obj))
    return pairs, scanned, failed


def scan_archive(source: Source, attribution: AttributionStore) -> ScanResult:
    """Read-only pass over ``objects/`` entries that persists attributions."""
    logger = get_logger()
    result = ScanResult()
    texts: List[bytes] = []
    try:
        with open_source(source) as fh:
            for entry in ArchiveReader(fh).entries():
                if entry.kind is EntryKind.FILE and classify(entry.path) is EntryCategory.OBJECT:
                    texts.append(entry.data)
    except StreamFatalError as e:
        result.error_text = str(e)
        logger.error("Aborting creator scan: %s", e.message)

    pairs, result.objects_scanned, result.objects_failed = harvest_creators(texts)
    if pairs:
        table = attribution.load()
        table.update(pairs)
        attribution.save(table)
    result.pairs = len(pairs)
    logger.info(result.summary_line())
    return result


class ImportPipeline:
    def __init__(
        self,
        scene: Scene,
        attribution: Optional[AttributionStore] = None,
        *,
        extra_exempt: Iterable[UUID] = (),
    ):
        self.scene = scene
        self.attribution = attribution
        self.extra_exempt = frozenset(extra_exempt)

    def run(
        self,
        source: Source,
        *,
        merge: bool = False,
        allow_user_reassignment: bool = False,
        skip_error_objects: bool = False,
        allowed_creators: Optional[Iterable[UUID]] = None,
        owner_override: Optional[UUID] = None,
        cancel: Optional[threading.Event] = None,
        on_complete: Optional[Callable[[ImportResult], None]] = None,
    ) -> ImportResult:
        logger = get_logger()
        result = ImportResult()
        filtered = allowed_creators is not None
        try:
            with section("Streaming archive"):
                texts = self._stream(source, result, merge=merge, cancel=cancel)
            self._enter(result, ImportState.ASSETS_RESOLVED)

            with section("Preparing objects"):
                prepared = self._prepare(
                    texts,
                    result,
                    skip_error_objects=skip_error_objects,
                    allowed_creators=allowed_creators,
                    owner_override=owner_override if filtered else None,
                )
            self._enter(result, ImportState.OBJECTS_FILTERED)

            with section("Restoring objects"):
                self._merge(
                    prepared,
                    result,
                    merge=merge,
                    filtered=filtered,
                    allow_user_reassignment=allow_user_reassignment,
                )
            self._enter(result, ImportState.MERGED)
        except (StreamFatalError, ImportCancelledError, EntryDecodeError) as e:
            result.error = e
            result.error_text = str(e)
            self._enter(result, ImportState.FAILED)
            logger.error("Aborting load: %s", e.message)
        else:
            self._enter(result, ImportState.DONE)

        logger.info(result.summary_line())
        if on_complete is not None:
            on_complete(result)
        return result

    @staticmethod
    def _enter(result: ImportResult, state: ImportState) -> None:
        get_logger().debug("Import state %s -> %s", result.state.name, state.name)
        result.state = state

    # STREAMING -----------------------------------------------------------------
    def _stream(
        self,
        source: Source,
        result: ImportResult,
        *,
        merge: bool,
        cancel: Optional[threading.Event],
    ) -> List[Tuple[str, bytes]]:
        logger = get_logger()
        texts: List[Tuple[str, bytes]] = []
        rep = get_reporter()
        with open_source(source) as fh, task("import.stream", "Archive entries") as final:
            for entry in ArchiveReader(fh).entries():
                if cancel is not None and cancel.is_set():
                    raise ImportCancelledError(
                        code=E_CANCELLED,
                        message="Import cancelled by caller",
                        context={"next_entry": entry.path},
                    )
                if entry.kind is EntryKind.DIRECTORY:
                    continue
                rep.advance("import.stream", current_item=entry.path)
                final["entries"] = final.get("entries", 0) + 1
                final["assets"] = result.assets_restored
                final["failed"] = result.assets_failed
                category = classify(entry.path)
                if category is EntryCategory.OBJECT:
                    texts.append((entry.path, entry.data))
                elif category is EntryCategory.ASSET:
                    self._load_asset(entry.path, entry.data, result)
                elif category is EntryCategory.TERRAIN and not merge:
                    self.scene.load_terrain(entry.path, entry.data)
                    result.terrain_loaded = True
                elif category is EntryCategory.SETTINGS and not merge:
                    self._load_settings(entry.path, entry.data, result)
                elif category is EntryCategory.CONTROL:
                    try:
                        result.control = parse_control_file(entry.data)
                    except EntryDecodeError as e:
                        logger.warning("Ignoring unreadable %s: %s", entry.path, e.message)
                else:
                    logger.debug("Ignoring entry %s", entry.path)
            final["assets"] = result.assets_restored
            final["failed"] = result.assets_failed
            final["objects"] = len(texts)

        logger.info("Restored %d assets", result.assets_restored)
        if result.assets_failed:
            logger.error("Failed to load %d assets", result.assets_failed)
        return texts

    def _load_asset(self, path: str, data: bytes, result: ImportResult) -> None:
        logger = get_logger()
        try:
            asset_id, asset_type = parse_asset_entry_path(path)
        except EntryDecodeError as e:
            logger.warning("%s", e.message)
            result.assets_failed += 1
            return
        if asset_type is None:
            logger.error("Tried to dearchive data with path %s with an unknown type extension", path)
            result.assets_failed += 1
            return
        self.scene.assets.put(Asset(asset_id=asset_id, asset_type=asset_type, data=data))
        result.assets_restored += 1

    def _load_settings(self, path: str, data: bytes, result: ImportResult) -> None:
        try:
            self.scene.apply_region_settings(data)
        except EntryDecodeError as e:
            get_logger().warning("Could not apply region settings %s: %s", path, e.message)
            return
        result.settings_loaded = True

    # ASSETS_RESOLVED -> OBJECTS_FILTERED ------------------------------------------
    def _prepare(
        self,
        texts: List[Tuple[str, bytes]],
        result: ImportResult,
        *,
        skip_error_objects: bool,
        allowed_creators: Optional[Iterable[UUID]],
        owner_override: Optional[UUID],
    ) -> List[Tuple[SceneObject, UUID]]:
        logger = get_logger()
        logger.info("Preparing %d scene objects", len(texts))

        decoded: List[SceneObject] = []
        for path, data in texts:
            try:
                decoded.append(deserialize_object(data))
            except EntryDecodeError as e:
                if not skip_error_objects:
                    e.context = {**(e.context or {}), "entry": path}
                    raise
                logger.info("Error while deserializing %s: %s", path, e.message)
                result.objects_skipped += 1

        policy: Optional[FilterPolicy] = None
        obj_filter: Optional[ObjectFilter] = None
        exempt = self.scene.library_asset_ids() | self.extra_exempt
        if allowed_creators is not None:
            # Harvest before any object is filtered or re-identified.
            table = self.attribution.load() if self.attribution is not None else {}
            pairs: Dict[UUID, UUID] = {}
            for obj in decoded:
                pairs.update(creator_pairs(obj))
            table.update(pairs)
            result.attribution_pairs = len(pairs)
            policy = FilterPolicy(allowed_creators, table, exempt=exempt)
            obj_filter = ObjectFilter(policy, self.scene.assets)

        prepared: List[Tuple[SceneObject, UUID]] = []
        for obj in decoded:
            if policy is not None and policy.must_exclude_by_owner(obj.owner_id):
                logger.debug("Excluding %s: owner %s not allowed", obj.name, obj.owner_id)
                result.objects_excluded += 1
                continue

            old_id = obj.reset_ids()
            result.id_map[obj.object_id] = old_id
            if obj_filter is not None:
                obj_filter.filter_object(obj)
            self._resolve_identities(obj, owner_override, result)
            self._record_missing(obj, exempt, result)
            prepared.append((obj, old_id))

        if policy is not None:
            if self.attribution is not None:
                self.attribution.save(policy.attribution)
            result.filter_counters = policy.counters
            logger.info(policy.counters.summary_line())
        return prepared

    def _resolve_identities(
        self, obj: SceneObject, owner_override: Optional[UUID], result: ImportResult
    ) -> None:
        logger = get_logger()
        identities = self.scene.identities
        fallback = self.scene.region.default_owner

        def unresolved(identity: UUID, what: str) -> bool:
            if identities.resolves(identity):
                return False
            issue = identity_unresolved(identity, what, obj.name)
            result.issues.append(issue)
            logger.warning("Could not resolve av/group ID: %s", issue.message)
            return True

        def resolve(identity: UUID, what: str) -> UUID:
            if not unresolved(identity, what):
                return identity
            result.owners_reassigned += 1
            return fallback

        for part in obj.parts:
            unresolved(part.creator_id, "part creator")
            if owner_override is not None:
                part.owner_id = owner_override
            else:
                part.owner_id = resolve(part.owner_id, "part owner")
            part.last_owner_id = resolve(part.last_owner_id, "part last owner")
            for item in part.inventory:
                if owner_override is not None:
                    item.owner_id = owner_override
                else:
                    item.owner_id = resolve(item.owner_id, "inventory item owner")

    def _record_missing(self, obj: SceneObject, exempt: Set[UUID], result: ImportResult) -> None:
        store = self.scene.assets
        for asset_id in direct_references(obj):
            if asset_id in exempt or asset_id in WELL_KNOWN_ASSET_IDS:
                continue
            if asset_id not in store and asset_id not in result.missing_references:
                result.missing_references.add(asset_id)
                result.issues.append(asset_missing(asset_id))

    # OBJECTS_FILTERED -> MERGED --------------------------------------------------
    @staticmethod
    def _no_copy(obj: SceneObject, allow_user_reassignment: bool) -> bool:
        if allow_user_reassignment:
            return False
        return obj.is_no_copy()

    def _merge(
        self,
        prepared: List[Tuple[SceneObject, UUID]],
        result: ImportResult,
        *,
        merge: bool,
        filtered: bool,
        allow_user_reassignment: bool,
    ) -> None:
        logger = get_logger()
        scene = self.scene
        retained: Dict[UUID, SceneObject] = {}

        def keep(existing: SceneObject) -> bool:
            if self._no_copy(existing, allow_user_reassignment) and not existing.is_attachment:
                retained[existing.object_id] = existing
                return True
            return False

        with scene.mutation_lock:
            if not merge:
                logger.info("Clearing all existing scene objects")
                scene.remove_objects_except(keep)

            logger.info("Loading %d scene objects", len(prepared))
            for obj, old_id in prepared:
                existing = retained.get(old_id)
                if (
                    not filtered
                    and existing is not None
                    and self._no_copy(obj, allow_user_reassignment)
                ):
                    existing.position = replace(obj.position)
                    existing.rotation = replace(obj.rotation)
                    result.objects_reconciled += 1
                    continue
                if scene.add_object(obj):
                    result.objects_restored += 1
                    scene.start_scripts(obj)

        logger.info("Restored %d scene objects to the scene", result.objects_restored)
        ignored = len(prepared) - result.objects_restored - result.objects_reconciled
        if ignored:
            logger.warning("Ignored %d scene objects that already existed in the scene", ignored)
