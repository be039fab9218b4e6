"""Entry point that binds the export/import pipelines to one scene."""

from __future__ import annotations

import threading
from typing import Callable, Iterable, Optional
from uuid import UUID

from .config import ArchiverConfig
from .container import Source
from .logging import get_logger
from .reader import ImportPipeline, ImportResult, scan_archive
from .scene import Scene
from .store import AttributionStore, MemoryAttributionStore, SqliteAttributionStore
from .writer import ExportPipeline, ExportResult

__all__ = ["RegionArchiver"]


class RegionArchiver:
    """Archive and restore the content of ``scene``.

    The attribution store defaults to the SQLite file named in the config,
    or to an in-memory table when none is configured.
    """

    def __init__(
        self,
        scene: Scene,
        config: Optional[ArchiverConfig] = None,
        attribution: Optional[AttributionStore] = None,
    ):
        self.scene = scene
        self.config = config or ArchiverConfig()
        if attribution is None:
            if self.config.attribution_db is not None:
                attribution = SqliteAttributionStore(self.config.attribution_db)
            else:
                attribution = MemoryAttributionStore()
        self.attribution = attribution

    @property
    def region_name(self) -> str:
        return self.config.region_name or self.scene.region.name

    def archive_region(
        self,
        destination: Source,
        include_assets: bool = True,
        creator_whitelist: Optional[Iterable[UUID]] = None,
    ) -> ExportResult:
        get_logger().info("Writing archive for region %s", self.region_name)
        pipeline = ExportPipeline(
            self.scene.assets,
            self.scene.region,
            region_name=self.region_name,
            exempt=self.scene.library_asset_ids() | set(self.config.extra_exempt_assets),
            workers=self.config.asset_fetch_workers,
            progress_interval=self.config.asset_progress_interval,
        )
        return pipeline.run(
            self.scene.objects(),
            self.scene.region_settings(),
            self.scene.save_terrain(),
            destination,
            include_assets=include_assets,
            creator_whitelist=creator_whitelist,
        )

    def dearchive_region(
        self,
        source: Source,
        merge: bool = False,
        allow_user_reassignment: bool = False,
        skip_error_objects: Optional[bool] = None,
        allowed_creators: Optional[Iterable[UUID]] = None,
        owner_override: Optional[UUID] = None,
        cancel: Optional[threading.Event] = None,
        on_complete: Optional[Callable[[ImportResult], None]] = None,
    ) -> ImportResult:
        if skip_error_objects is None:
            skip_error_objects = self.config.skip_error_objects
        pipeline = ImportPipeline(
            self.scene,
            self.attribution,
            extra_exempt=self.config.extra_exempt_assets,
        )
        return pipeline.run(
            source,
            merge=merge,
            allow_user_reassignment=allow_user_reassignment,
            skip_error_objects=skip_error_objects,
            allowed_creators=allowed_creators,
            owner_override=owner_override,
            cancel=cancel,
            on_complete=on_complete,
        )

    def scan_for_asset_creators(self, source: Source) -> int:
        return scan_archive(source, self.attribution).pairs
