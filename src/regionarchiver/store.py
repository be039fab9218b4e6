"""Adapters for the external stores the pipelines talk to.

- ``AssetStore``: content-addressed asset get/put.
- ``IdentityDirectory``: which user and group ids exist on this grid.
- ``AttributionStore``: persisted asset id -> creator id table.
"""

from __future__ import annotations

import sqlite3
import threading
from contextlib import closing
from pathlib import Path
from typing import Dict, Iterable, Optional
from uuid import UUID

from .constants import LIBRARY_OWNER_ID, ZERO_ID
from .logging import get_logger
from .model import Asset

__all__ = [
    "AssetStore",
    "MemoryAssetStore",
    "IdentityDirectory",
    "AttributionStore",
    "MemoryAttributionStore",
    "SqliteAttributionStore",
]


class AssetStore:
    def get(self, asset_id: UUID) -> Optional[Asset]:
        raise NotImplementedError

    def put(self, asset: Asset) -> None:
        raise NotImplementedError

    def __contains__(self, asset_id: object) -> bool:
        return isinstance(asset_id, UUID) and self.get(asset_id) is not None


class MemoryAssetStore(AssetStore):
    """Thread-safe in-process store, used for scratch work and tests."""

    def __init__(self, assets: Iterable[Asset] = ()):
        self._lock = threading.Lock()
        self._assets: Dict[UUID, Asset] = {}
        for asset in assets:
            self.put(asset)

    def get(self, asset_id: UUID) -> Optional[Asset]:
        with self._lock:
            return self._assets.get(asset_id)

    def put(self, asset: Asset) -> None:
        with self._lock:
            self._assets[asset.asset_id] = asset

    def ids(self) -> set[UUID]:
        with self._lock:
            return set(self._assets)

    def __len__(self) -> int:
        with self._lock:
            return len(self._assets)


class IdentityDirectory:
    """Users and groups known to the destination grid.

    Lookups are cached per instance. The zero id and the library owner always
    resolve.
    """

    def __init__(self, users: Iterable[UUID] = (), groups: Iterable[UUID] = ()):
        self.users = set(users)
        self.groups = set(groups)
        self._cache: Dict[UUID, bool] = {ZERO_ID: True, LIBRARY_OWNER_ID: True}

    def add_user(self, user_id: UUID) -> None:
        self.users.add(user_id)
        self._cache.pop(user_id, None)

    def add_group(self, group_id: UUID) -> None:
        self.groups.add(group_id)
        self._cache.pop(group_id, None)

    def lookup_user(self, user_id: UUID) -> bool:
        return user_id in self.users

    def lookup_group(self, group_id: UUID) -> bool:
        return group_id in self.groups

    def resolves(self, identity: UUID) -> bool:
        cached = self._cache.get(identity)
        if cached is None:
            cached = self.lookup_user(identity) or self.lookup_group(identity)
            self._cache[identity] = cached
        return cached


class AttributionStore:
    def load(self) -> Dict[UUID, UUID]:
        raise NotImplementedError

    def save(self, table: Dict[UUID, UUID]) -> None:
        raise NotImplementedError


class MemoryAttributionStore(AttributionStore):
    def __init__(self, table: Optional[Dict[UUID, UUID]] = None):
        self.table: Dict[UUID, UUID] = dict(table or {})
        self.saves = 0

    def load(self) -> Dict[UUID, UUID]:
        return dict(self.table)

    def save(self, table: Dict[UUID, UUID]) -> None:
        self.table.update(table)
        self.saves += 1


class SqliteAttributionStore(AttributionStore):
    """``asset_creators`` table in a SQLite file.

    Database errors are logged; a failed load yields the rows read so far and
    a failed save leaves the previous rows in place.
    """

    TABLE = "asset_creators"

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._init_table()

    def _connect(self) -> sqlite3.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(self.path)

    def _init_table(self) -> None:
        with closing(self._connect()) as conn, conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.TABLE} (
                    asset_id TEXT PRIMARY KEY,
                    creator_id TEXT NOT NULL
                )
                """
            )

    def load(self) -> Dict[UUID, UUID]:
        table: Dict[UUID, UUID] = {}
        try:
            with closing(self._connect()) as conn:
                rows = conn.execute(f"SELECT asset_id, creator_id FROM {self.TABLE}")
                for asset_id, creator_id in rows:
                    table[UUID(asset_id)] = UUID(creator_id)
        except (sqlite3.Error, ValueError) as e:
            get_logger().error("Reading %s from %s failed: %s", self.TABLE, self.path, e)
        return table

    def save(self, table: Dict[UUID, UUID]) -> None:
        rows = [(str(a), str(c)) for a, c in table.items()]
        try:
            with closing(self._connect()) as conn, conn:
                conn.executemany(
                    f"""
                    INSERT INTO {self.TABLE} (asset_id, creator_id) VALUES (?, ?)
                    ON CONFLICT(asset_id) DO UPDATE SET creator_id = excluded.creator_id
                    """,
                    rows,
                )
        except sqlite3.Error as e:
            get_logger().error("Writing %s to %s failed: %s", self.TABLE, self.path, e)
