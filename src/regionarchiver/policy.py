"""Allow-list decisions for filtered imports.

``FilterPolicy`` answers three questions (exclude an object by owner,
substitute by creator, substitute a referenced asset). An allow-list of
``None`` disables all of them. Counters record what the filter kept and
replaced so the import can report an audit summary.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Dict, Iterable, Optional
from uuid import UUID

from .constants import LIBRARY_OWNER_ID, WELL_KNOWN_ASSET_IDS
from .model import is_null_id

__all__ = ["Tally", "FilterCounters", "FilterPolicy"]


@dataclass(slots=True)
class Tally:
    kept: int = 0
    replaced: int = 0

    def count(self, replaced: bool) -> None:
        if replaced:
            self.replaced += 1
        else:
            self.kept += 1


@dataclass(slots=True)
class FilterCounters:
    objects: Tally = field(default_factory=Tally)
    parts: Tally = field(default_factory=Tally)
    textures: Tally = field(default_factory=Tally)
    materials: Tally = field(default_factory=Tally)
    sounds: Tally = field(default_factory=Tally)
    items: Tally = field(default_factory=Tally)
    nested: Tally = field(default_factory=Tally)
    # Nested object assets that were missing or undecodable.
    nested_missing: int = 0
    nested_undecodable: int = 0

    def to_dict(self) -> Dict[str, int]:
        out: Dict[str, int] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Tally):
                out[f"{f.name}_kept"] = value.kept
                out[f"{f.name}_replaced"] = value.replaced
            else:
                out[f.name] = value
        return out

    def summary_line(self) -> str:
        return "Filter summary: " + " ".join(f"{k}={v}" for k, v in self.to_dict().items())


class FilterPolicy:
    def __init__(
        self,
        allowed: Optional[Iterable[UUID]],
        attribution: Optional[Dict[UUID, UUID]] = None,
        exempt: Iterable[UUID] = (),
    ):
        self.allowed = None if allowed is None else frozenset(allowed)
        self.attribution: Dict[UUID, UUID] = attribution if attribution is not None else {}
        self.exempt = frozenset(exempt) | WELL_KNOWN_ASSET_IDS
        self.counters = FilterCounters()

    @property
    def enabled(self) -> bool:
        return self.allowed is not None

    def is_exempt(self, asset_id: UUID) -> bool:
        return asset_id in self.exempt

    def must_exclude_by_owner(self, owner_id: UUID) -> bool:
        if self.allowed is None:
            return False
        return owner_id not in self.allowed

    def must_substitute_by_creator(self, creator_id: UUID) -> bool:
        if self.allowed is None:
            return False
        if creator_id == LIBRARY_OWNER_ID:
            return False
        return creator_id not in self.allowed

    def must_substitute_by_asset(
        self, asset_id: Optional[UUID], owner_id: UUID, creator_id: Optional[UUID] = None
    ) -> bool:
        """Decide whether a referenced asset must be replaced.

        Null ids and exempt ids are always kept. Anything owned by an
        excluded owner is replaced. Otherwise the creator (given, or looked
        up in the attribution table) decides; an asset whose creator is
        unknown is kept.
        """
        if self.allowed is None or is_null_id(asset_id) or self.is_exempt(asset_id):
            return False
        if self.must_exclude_by_owner(owner_id):
            return True
        if is_null_id(creator_id):
            creator_id = self.attribution.get(asset_id)
            if creator_id is None:
                return False
        return self.must_substitute_by_creator(creator_id)
