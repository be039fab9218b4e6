"""The ``archive.xml`` control file."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union
from uuid import UUID

from ..constants import ARCHIVE_MAJOR_VERSION, ARCHIVE_MINOR_VERSION, REGION_SIZE
from ..errors import decode_error
from ..scene import RegionInfo

__all__ = ["ControlInfo", "create_control_file", "parse_control_file"]


@dataclass(slots=True)
class ControlInfo:
    major_version: int
    minor_version: int
    created: Optional[int] = None
    archive_id: Optional[UUID] = None
    assets_included: bool = True
    is_megaregion: bool = False
    size_x: int = REGION_SIZE
    size_y: int = REGION_SIZE

    def to_dict(self) -> dict:
        return {
            "version": f"{self.major_version}.{self.minor_version}",
            "created": self.created,
            "id": str(self.archive_id) if self.archive_id else None,
            "assets_included": self.assets_included,
            "is_megaregion": self.is_megaregion,
            "size_in_meters": f"{self.size_x},{self.size_y}",
        }


def create_control_file(
    region: RegionInfo,
    assets_included: bool,
    *,
    now: Optional[datetime] = None,
    archive_id: Optional[UUID] = None,
) -> str:
    now = now or datetime.now(timezone.utc)
    root = ET.Element(
        "archive",
        major_version=str(ARCHIVE_MAJOR_VERSION),
        minor_version=str(ARCHIVE_MINOR_VERSION),
    )
    info = ET.SubElement(root, "creation_info")
    ET.SubElement(info, "datetime").text = str(int(now.timestamp()))
    ET.SubElement(info, "id").text = str(archive_id or region.region_id)
    ET.SubElement(root, "assets_included").text = "True" if assets_included else "False"
    region_el = ET.SubElement(root, "region_info")
    ET.SubElement(region_el, "is_megaregion").text = (
        "True" if region.is_megaregion else "False"
    )
    ET.SubElement(region_el, "size_in_meters").text = f"{region.size_x},{region.size_y}"
    return '<?xml version="1.0" encoding="utf-8"?>' + ET.tostring(root, encoding="unicode")


def parse_control_file(data: Union[bytes, str]) -> ControlInfo:
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise decode_error(f"Malformed archive.xml: {e}") from e
    if root.tag != "archive":
        raise decode_error(f"archive.xml root is <{root.tag}>, expected <archive>")
    try:
        info = ControlInfo(
            major_version=int(root.get("major_version", "0")),
            minor_version=int(root.get("minor_version", "0")),
        )
        created = root.findtext("creation_info/datetime")
        if created:
            info.created = int(created)
        archive_id = root.findtext("creation_info/id")
        if archive_id:
            info.archive_id = UUID(archive_id)
        info.assets_included = root.findtext("assets_included", "True") == "True"
        info.is_megaregion = root.findtext("region_info/is_megaregion", "False") == "True"
        size = root.findtext("region_info/size_in_meters")
        if size:
            w, h = size.split(",")
            info.size_x, info.size_y = int(w), int(h)
    except ValueError as e:
        raise decode_error(f"Invalid archive.xml field: {e}") from e
    return info
