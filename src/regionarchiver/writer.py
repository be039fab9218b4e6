"""Export pipeline: scene objects + assets + terrain/settings -> archive.

Entry order in the container:

1. ``assets/`` (sorted by id)
2. ``settings/<region>.xml`` and ``terrains/<region>.r32``
3. ``objects/`` (one entry per top-level object)
4. ``archive.xml``
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Set, Tuple
from uuid import UUID

from .constants import CONTROL_FILE_PATH, WELL_KNOWN_ASSET_IDS
from .container import (
    ArchiveWriter,
    Source,
    asset_entry_path,
    create_control_file,
    object_entry_path,
    open_destination,
    serialize_object,
    settings_entry_path,
    terrain_entry_path,
)
from .errors import AssetMissingError, asset_missing
from .gatherer import AssetGatherer
from .logging import get_logger, section
from .model import Asset, SceneObject
from .reporting import TaskStatus, get_reporter
from .scene import RegionInfo
from .store import AssetStore

__all__ = ["ExportResult", "ExportPipeline", "whitelisted"]

FETCH_BATCH_PER_WORKER = 16


@dataclass(slots=True)
class ExportResult:
    objects_written: int = 0
    assets_written: int = 0
    assets_missing: int = 0
    missing_ids: List[UUID] = field(default_factory=list)
    # Written without an extension; a reader cannot restore them.
    unknown_type_ids: List[UUID] = field(default_factory=list)
    objects_skipped: int = 0
    bytes_written: int = 0
    issues: List[AssetMissingError] = field(default_factory=list)

    def summary_line(self) -> str:
        return (
            f"Export summary: objects={self.objects_written} "
            f"skipped={self.objects_skipped} assets={self.assets_written} "
            f"missing={self.assets_missing} unknown_types={len(self.unknown_type_ids)} "
            f"bytes={self.bytes_written}"
        )


def whitelisted(obj: SceneObject, creators: Set[UUID]) -> bool:
    return all(part.creator_id in creators for part in obj.parts)


class ExportPipeline:
    def __init__(
        self,
        store: AssetStore,
        region: RegionInfo,
        *,
        region_name: Optional[str] = None,
        exempt: Iterable[UUID] = (),
        workers: int = 4,
        progress_interval: int = 50,
    ):
        self.store = store
        self.region = region
        self.region_name = region_name or region.name
        self.exempt = frozenset(exempt) | WELL_KNOWN_ASSET_IDS
        self.workers = workers
        self.progress_interval = progress_interval

    def run(
        self,
        objects: Iterable[SceneObject],
        settings: bytes,
        terrain: bytes,
        destination: Source,
        *,
        include_assets: bool = True,
        creator_whitelist: Optional[Iterable[UUID]] = None,
    ) -> ExportResult:
        logger = get_logger()
        result = ExportResult()
        objects = list(objects)
        if creator_whitelist is not None:
            allowed = set(creator_whitelist)
            kept = [o for o in objects if whitelisted(o, allowed)]
            result.objects_skipped = len(objects) - len(kept)
            if result.objects_skipped:
                logger.info(
                    "Skipping %d object(s) with parts by creators outside the whitelist",
                    result.objects_skipped,
                )
            objects = kept

        with open_destination(destination) as fh, ArchiveWriter(fh) as writer:
            if include_assets:
                with section("Assets"):
                    self._write_assets(writer, objects, result)
            with section("Region"):
                writer.write_file(settings_entry_path(self.region_name), settings)
                writer.write_file(terrain_entry_path(self.region_name), terrain)
            with section("Objects"):
                self._write_objects(writer, objects, result)
            writer.write_file(
                CONTROL_FILE_PATH, create_control_file(self.region, include_assets)
            )
            result.bytes_written = writer.bytes_written

        logger.info(result.summary_line())
        return result

    def _fetch(self, ids: List[UUID]) -> Iterator[Tuple[UUID, Optional[Asset]]]:
        """Yield ``(id, asset)`` in order, holding at most one batch in memory."""
        batch = self.workers * FETCH_BATCH_PER_WORKER
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            for start in range(0, len(ids), batch):
                chunk = ids[start : start + batch]
                yield from zip(chunk, pool.map(self.store.get, chunk))

    def _write_assets(
        self, writer: ArchiveWriter, objects: List[SceneObject], result: ExportResult
    ) -> None:
        logger = get_logger()
        rep = get_reporter()
        gatherer = AssetGatherer(self.store)
        closure = gatherer.gather_objects(objects)
        ids = sorted(closure, key=str)
        logger.debug("Gathered %d asset id(s) from %d object(s)", len(ids), len(objects))

        rep.start_task("export.assets", "Assets", total=len(ids))
        try:
            for asset_id, asset in self._fetch(ids):
                rep.advance("export.assets", current_item=str(asset_id))
                if asset is None:
                    if asset_id not in self.exempt:
                        result.assets_missing += 1
                        result.missing_ids.append(asset_id)
                        result.issues.append(asset_missing(asset_id))
                        logger.debug("Asset %s not found in store", asset_id)
                    continue
                path, known = asset_entry_path(asset.asset_id, asset.asset_type)
                if not known:
                    result.unknown_type_ids.append(asset.asset_id)
                    logger.error(
                        "Unrecognized asset type %s for %s; it will not be recoverable on reload",
                        int(asset.asset_type),
                        asset.asset_id,
                    )
                writer.write_file(path, asset.data)
                result.assets_written += 1
                if result.assets_written % self.progress_interval == 0:
                    logger.info("Added %d assets to archive", result.assets_written)
        except Exception:
            rep.end_task("export.assets", TaskStatus.FAILED)
            raise
        rep.end_task(
            "export.assets",
            assets=result.assets_written,
            missing=result.assets_missing,
        )

    def _write_objects(
        self, writer: ArchiveWriter, objects: List[SceneObject], result: ExportResult
    ) -> None:
        rep = get_reporter()
        rep.start_task("export.objects", "Objects", total=len(objects))
        try:
            for obj in objects:
                writer.write_file(object_entry_path(obj), serialize_object(obj))
                result.objects_written += 1
                rep.advance("export.objects", current_item=obj.name)
        except Exception:
            rep.end_task("export.objects", TaskStatus.FAILED)
            raise
        rep.end_task("export.objects", objects=result.objects_written)
