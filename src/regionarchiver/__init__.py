"""Region content archiving: export a region to a portable archive and restore it."""

from .archiver import RegionArchiver
from .config import ArchiverConfig, load_config
from .reader import ImportResult, ImportState
from .scene import RegionInfo, Scene
from .writer import ExportResult

__all__ = [
    "RegionArchiver",
    "ArchiverConfig",
    "load_config",
    "ImportResult",
    "ImportState",
    "ExportResult",
    "RegionInfo",
    "Scene",
]
