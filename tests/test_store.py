import sqlite3
from uuid import uuid4

from regionarchiver.constants import LIBRARY_OWNER_ID, ZERO_ID, AssetType
from regionarchiver.model import Asset
from regionarchiver.store import (
    IdentityDirectory,
    MemoryAssetStore,
    MemoryAttributionStore,
    SqliteAttributionStore,
)


def test_memory_asset_store():
    a = Asset(uuid4(), AssetType.TEXTURE, b"x")
    store = MemoryAssetStore([a])
    assert store.get(a.asset_id) is a
    assert a.asset_id in store
    assert uuid4() not in store
    assert "not-a-uuid" not in store
    assert len(store) == 1


def test_identity_directory_caches_and_always_resolves_builtins():
    user, group = uuid4(), uuid4()
    directory = IdentityDirectory(users=[user], groups=[group])
    assert directory.resolves(user)
    assert directory.resolves(group)
    assert directory.resolves(ZERO_ID)
    assert directory.resolves(LIBRARY_OWNER_ID)
    late = uuid4()
    assert not directory.resolves(late)
    directory.add_user(late)
    assert directory.resolves(late)


def test_sqlite_attribution_round_trip(tmp_path):
    db = tmp_path / "nested" / "attr.db"
    a1, a2, c1, c2 = uuid4(), uuid4(), uuid4(), uuid4()
    SqliteAttributionStore(db).save({a1: c1})
    SqliteAttributionStore(db).save({a1: c2, a2: c1})
    assert SqliteAttributionStore(db).load() == {a1: c2, a2: c1}


def test_sqlite_load_tolerates_bad_rows(tmp_path):
    db = tmp_path / "attr.db"
    store = SqliteAttributionStore(db)
    good_asset, good_creator = uuid4(), uuid4()
    store.save({good_asset: good_creator})
    with sqlite3.connect(db) as conn:
        conn.execute("INSERT INTO asset_creators VALUES ('zzz', 'yyy')")
    assert store.load() == {good_asset: good_creator}


def test_memory_attribution_merges():
    a, c = uuid4(), uuid4()
    store = MemoryAttributionStore()
    store.save({a: c})
    assert store.load() == {a: c}
    assert store.saves == 1
