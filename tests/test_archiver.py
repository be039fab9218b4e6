import io
from uuid import UUID, uuid4

from regionarchiver import ImportState, RegionArchiver
from regionarchiver.config import ArchiverConfig
from regionarchiver.constants import AssetType
from regionarchiver.container import ArchiveReader, deserialize_object, serialize_object
from regionarchiver.errors import E_ASSET_MISSING, E_IDENTITY_UNRESOLVED, AssetMissingError
from regionarchiver.model import Asset, Vector3
from regionarchiver.store import MemoryAssetStore, MemoryAttributionStore, SqliteAttributionStore
from regionarchiver.writer import FETCH_BATCH_PER_WORKER, ExportPipeline

from builders import make_item, make_object, make_scene

U1 = UUID("00000000-0000-0000-0000-0000000000a1")
U2 = UUID("00000000-0000-0000-0000-0000000000a2")
ESTATE = UUID("00000000-0000-0000-0000-0000000000e0")


def _export(scene, **kwargs) -> io.BytesIO:
    buf = io.BytesIO()
    RegionArchiver(scene).archive_region(buf, **kwargs)
    buf.seek(0)
    return buf


def test_round_trip(tmp_path):
    tex, script = uuid4(), uuid4()
    src = make_scene(
        users=[U1],
        assets=[
            Asset(tex, AssetType.TEXTURE, b"jp2 bytes"),
            Asset(script, AssetType.LSL_TEXT, b"default { state_entry() { } }"),
        ],
    )
    obj = make_object(
        U1,
        name="Lamp",
        position=(10.5, 20.25, 30.0),
        face_textures=[tex],
        items=[make_item(script, AssetType.LSL_TEXT, U1, name="glow")],
    )
    src.add_object(obj)
    src.load_terrain("generated", b"\x00\x01terrain")
    src.apply_region_settings(b"<RegionSettings/>")
    out = tmp_path / "backup" / "region.oar"

    export = RegionArchiver(src).archive_region(out)

    assert export.objects_written == 1
    assert export.assets_written == 2
    assert export.assets_missing == 0
    with out.open("rb") as fh:
        paths = [e.path for e in ArchiveReader(fh).entries()]
    assert paths[-1] == "archive.xml"
    assert f"settings/{src.region.name}.xml" in paths

    dst = make_scene(users=[U1])
    completed = []
    result = RegionArchiver(dst).dearchive_region(out, on_complete=completed.append)

    assert result.state is ImportState.DONE
    assert completed == [result]
    assert result.objects_restored == 1
    assert result.assets_restored == 2
    assert result.control is not None and result.control.assets_included
    assert result.control.archive_id == src.region.region_id
    assert not result.missing_references

    (restored,) = dst.objects()
    assert restored.object_id != obj.object_id
    assert result.id_map[restored.object_id] == obj.object_id
    assert restored.name == "Lamp"
    assert restored.position == Vector3(10.5, 20.25, 30.0)
    assert restored.root_part.shape == obj.root_part.shape
    assert [i.asset_id for i in restored.root_part.inventory] == [script]
    assert restored.root_part.inventory[0].item_id != obj.root_part.inventory[0].item_id
    assert dst.assets.get(tex).data == b"jp2 bytes"
    assert dst.terrain == b"\x00\x01terrain"
    assert dst.settings == b"<RegionSettings/>"
    assert dst.started_scripts == [restored.root_part.inventory[0].item_id]


def test_export_without_assets_and_with_whitelist():
    tex = uuid4()
    src = make_scene(assets=[Asset(tex, AssetType.TEXTURE, b"t")])
    src.add_object(make_object(U1, name="Mine", face_textures=[tex]))
    src.add_object(make_object(U1, creator=U2, name="Theirs"))
    buf = io.BytesIO()

    export = RegionArchiver(src).archive_region(buf, include_assets=False, creator_whitelist={U1})

    assert export.objects_written == 1
    assert export.objects_skipped == 1
    assert export.assets_written == 0
    buf.seek(0)
    paths = [e.path for e in ArchiveReader(buf).entries()]
    assert not any(p.startswith("assets/") for p in paths)
    assert sum(p.startswith("objects/Mine_") for p in paths) == 1


def test_missing_assets_are_reported_on_both_sides():
    gone = uuid4()
    src = make_scene(users=[U1])
    src.add_object(make_object(U1, face_textures=[gone]))
    buf = io.BytesIO()
    export = RegionArchiver(src).archive_region(buf)
    assert export.assets_missing == 1
    assert export.missing_ids == [gone]
    assert [i.code for i in export.issues] == [E_ASSET_MISSING]

    buf.seek(0)
    dst = make_scene(users=[U1])
    result = RegionArchiver(dst).dearchive_region(buf)
    assert result.state is ImportState.DONE
    assert result.objects_restored == 1
    assert result.missing_references == {gone}
    (issue,) = result.issues
    assert isinstance(issue, AssetMissingError)
    assert issue.context == {"asset_id": str(gone)}


def test_merge_keeps_existing_objects_and_region_data():
    src = make_scene(users=[U1])
    src.add_object(make_object(U1, name="Incoming"))
    src.load_terrain("t", b"new terrain")
    archive = _export(src)

    dst = make_scene(users=[U1])
    dst.add_object(make_object(U1, name="Existing"))
    dst.load_terrain("old", b"old terrain")

    result = RegionArchiver(dst).dearchive_region(archive, merge=True)

    assert result.state is ImportState.DONE
    assert sorted(o.name for o in dst.objects()) == ["Existing", "Incoming"]
    assert dst.terrain == b"old terrain"
    assert not result.terrain_loaded


def test_replace_clears_copyable_objects():
    src = make_scene(users=[U1])
    src.add_object(make_object(U1, name="Incoming"))
    archive = _export(src)
    dst = make_scene(users=[U1])
    dst.add_object(make_object(U1, name="Old"))

    RegionArchiver(dst).dearchive_region(archive)

    assert [o.name for o in dst.objects()] == ["Incoming"]


def _no_copy_setup():
    x = make_object(U1, name="Statue", position=(10.0, 10.0, 10.0), no_copy=True)
    archived = deserialize_object(serialize_object(x))
    archived.position = Vector3(50.0, 60.0, 70.0)
    src = make_scene(users=[U1])
    src.add_object(archived)
    dst = make_scene(users=[U1])
    dst.add_object(x)
    return x, _export(src), dst


def test_no_copy_object_is_moved_not_duplicated():
    x, archive, dst = _no_copy_setup()

    result = RegionArchiver(dst).dearchive_region(archive)

    assert result.state is ImportState.DONE
    assert result.objects_reconciled == 1
    assert result.objects_restored == 0
    assert dst.objects() == [x]
    assert dst.get_object(x.object_id).position == Vector3(50.0, 60.0, 70.0)


def test_no_copy_ignored_when_user_reassignment_allowed():
    x, archive, dst = _no_copy_setup()

    result = RegionArchiver(dst).dearchive_region(archive, allow_user_reassignment=True)

    (restored,) = dst.objects()
    assert restored.object_id != x.object_id
    assert result.objects_restored == 1
    assert restored.position == Vector3(50.0, 60.0, 70.0)


def test_no_copy_attachment_is_not_retained():
    x, archive, dst = _no_copy_setup()
    x.is_attachment = True

    RegionArchiver(dst).dearchive_region(archive)

    assert dst.get_object(x.object_id) is None
    assert len(dst.objects()) == 1


def test_unresolved_owner_falls_back_to_estate_owner():
    stranger = uuid4()
    src = make_scene()
    src.add_object(make_object(stranger, items=[make_item(uuid4(), AssetType.NOTECARD, stranger)]))
    archive = _export(src)
    dst = make_scene(users=[U1], estate_owner=ESTATE)

    result = RegionArchiver(dst).dearchive_region(archive)

    (restored,) = dst.objects()
    assert restored.owner_id == ESTATE
    assert restored.root_part.last_owner_id == ESTATE
    assert restored.root_part.inventory[0].owner_id == ESTATE
    # Creators are kept as declared.
    assert restored.root_part.creator_id == stranger
    assert result.owners_reassigned == 3
    roles = sorted(i.context["role"] for i in result.issues if i.code == E_IDENTITY_UNRESOLVED)
    assert roles == ["inventory item owner", "part creator", "part last owner", "part owner"]


def test_filtered_import_scenario():
    texture, script = uuid4(), uuid4()
    src = make_scene(
        assets=[
            Asset(texture, AssetType.TEXTURE, b"t"),
            Asset(script, AssetType.LSL_TEXT, b"default {}"),
        ]
    )
    src.add_object(
        make_object(
            U1,
            creator=U2,
            name="Kept",
            face_textures=[texture],
            items=[make_item(script, AssetType.LSL_TEXT, U1, creator=U1)],
        )
    )
    src.add_object(make_object(U2, name="Foreign"))
    archive = _export(src)
    dst = make_scene(users=[U1, U2])
    attribution = MemoryAttributionStore()

    result = RegionArchiver(dst, attribution=attribution).dearchive_region(
        archive, allowed_creators={U1}
    )

    assert result.state is ImportState.DONE
    assert result.objects_excluded == 1
    assert result.objects_restored == 1
    counters = result.filter_counters
    assert counters.parts.replaced == 1
    assert counters.items.kept == 1
    (restored,) = dst.objects()
    assert restored.name == "Kept"
    assert restored.root_part.shape.texture_entry.faces == {}
    assert [i.asset_id for i in restored.root_part.inventory] == [script]
    assert attribution.saves == 1
    assert attribution.table[script] == U1


def test_owner_override_applies_to_filtered_import():
    src = make_scene()
    src.add_object(make_object(U1))
    archive = _export(src)
    dst = make_scene(users=[U1, U2])

    RegionArchiver(dst).dearchive_region(archive, allowed_creators={U1}, owner_override=U2)

    (restored,) = dst.objects()
    assert restored.owner_id == U2


def test_scan_persists_attributions(tmp_path):
    asset = uuid4()
    src = make_scene()
    src.add_object(make_object(U1, items=[make_item(asset, AssetType.NOTECARD, U1, creator=U2)]))
    path = tmp_path / "region.oar"
    RegionArchiver(src).archive_region(path)
    db = tmp_path / "attr" / "creators.db"
    archiver = RegionArchiver(make_scene(), ArchiverConfig(attribution_db=db))

    assert archiver.scan_for_asset_creators(path) == 1
    assert SqliteAttributionStore(db).load() == {asset: U2}


class _CountingStore(MemoryAssetStore):
    def __init__(self, assets):
        super().__init__(assets)
        self.calls = 0

    def get(self, asset_id):
        self.calls += 1
        return super().get(asset_id)


def test_asset_fetches_are_batched():
    assets = [Asset(uuid4(), AssetType.TEXTURE, b"t") for _ in range(3 * FETCH_BATCH_PER_WORKER)]
    store = _CountingStore(assets)
    src = make_scene()
    pipeline = ExportPipeline(store, src.region, workers=1)
    ids = sorted((a.asset_id for a in assets), key=str)

    fetched = pipeline._fetch(ids)
    first_id, first = next(fetched)
    assert first_id == ids[0] and first is store.get(ids[0])
    assert store.calls <= FETCH_BATCH_PER_WORKER + 1
    assert [i for i, _ in fetched] == ids[1:]
    fetched.close()


def test_export_writes_every_asset_across_batches():
    textures = [uuid4() for _ in range(2 * FETCH_BATCH_PER_WORKER + 3)]
    src = make_scene(users=[U1], assets=[Asset(t, AssetType.TEXTURE, b"t") for t in textures])
    src.add_object(make_object(U1, face_textures=textures))
    export = RegionArchiver(src, ArchiverConfig(asset_fetch_workers=1)).archive_region(io.BytesIO())
    assert export.assets_written == len(textures)
    assert export.assets_missing == 0
