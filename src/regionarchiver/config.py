"""Archiver configuration (YAML or JSON)."""

from __future__ import annotations
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, List, Optional
from uuid import UUID
import json

import yaml

from .errors import config_error

__all__ = ["ArchiverConfig", "load_config", "config_from_dict"]


@dataclass(slots=True)
class ArchiverConfig:
    # Used for settings/terrain entry names when the scene does not name itself.
    region_name: Optional[str] = None
    asset_fetch_workers: int = 4
    skip_error_objects: bool = False
    # SQLite file holding the asset -> creator attribution table.
    attribution_db: Optional[Path] = None
    extra_exempt_assets: List[UUID] = field(default_factory=list)
    asset_progress_interval: int = 50


def load_config(path: str | Path) -> ArchiverConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in {".yaml", ".yml"}:
        data: Any = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise config_error("Root of configuration must be a mapping", {"path": str(p)})
    return config_from_dict(data, base_dir=p.parent)


def config_from_dict(
    data: dict[str, Any], base_dir: Path | None = None
) -> ArchiverConfig:
    known = {f.name for f in fields(ArchiverConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise config_error(f"Unknown configuration keys: {', '.join(unknown)}")

    cfg = ArchiverConfig()
    if "region_name" in data:
        cfg.region_name = None if data["region_name"] is None else str(data["region_name"])
    if "asset_fetch_workers" in data:
        cfg.asset_fetch_workers = _positive_int(data, "asset_fetch_workers")
    if "asset_progress_interval" in data:
        cfg.asset_progress_interval = _positive_int(data, "asset_progress_interval")
    if "skip_error_objects" in data:
        cfg.skip_error_objects = bool(data["skip_error_objects"])
    if data.get("attribution_db") is not None:
        db = Path(str(data["attribution_db"]))
        if not db.is_absolute() and base_dir is not None:
            db = base_dir / db
        cfg.attribution_db = db
    raw_ids = data.get("extra_exempt_assets") or []
    if not isinstance(raw_ids, list):
        raise config_error("extra_exempt_assets must be a list of UUIDs")
    try:
        cfg.extra_exempt_assets = [UUID(str(v)) for v in raw_ids]
    except ValueError as e:
        raise config_error(f"Invalid UUID in extra_exempt_assets: {e}") from e
    return cfg


def _positive_int(data: dict[str, Any], key: str) -> int:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise config_error(f"{key} must be a positive integer", {key: value})
    return value
