import io
import os
import threading
from uuid import UUID, uuid4

from regionarchiver.constants import AssetType
from regionarchiver.container import serialize_object
from regionarchiver.errors import E_CANCELLED, E_ENTRY_DECODE, E_STREAM_FATAL
from regionarchiver import reader
from regionarchiver.reader import ImportPipeline, ImportState, harvest_creators
from regionarchiver.store import MemoryAttributionStore

from builders import build_archive, make_item, make_object, make_scene

U1 = UUID("00000000-0000-0000-0000-0000000000a1")


def _object_entry(obj) -> tuple:
    return f"objects/{obj.name}__{obj.object_id}.xml", serialize_object(obj)


def test_truncated_stream_fails_but_keeps_earlier_assets():
    first = uuid4()
    entries = {
        f"assets/{first}_texture.jp2": b"early",
        f"assets/{uuid4()}_texture.jp2": os.urandom(300_000),
    }
    entries.update([_object_entry(make_object(U1))])
    data = build_archive(entries).getvalue()
    truncated = io.BytesIO(data[: len(data) // 2])
    scene = make_scene(users=[U1])
    scene.add_object(make_object(U1, name="Untouched"))
    completed = []

    result = ImportPipeline(scene).run(truncated, on_complete=completed.append)

    assert result.state is ImportState.FAILED
    assert result.error.code == E_STREAM_FATAL
    assert result.error_text
    assert completed == [result]
    assert result.assets_restored == 1
    assert scene.assets.get(first).data == b"early"
    assert [o.name for o in scene.objects()] == ["Untouched"]


def _mixed_archive():
    good = make_object(U1, name="Good")
    return build_archive(
        dict([_object_entry(good), ("objects/broken.xml", "<SceneObjectGroup><Part>")])
    )


def test_strict_mode_fails_without_touching_scene():
    scene = make_scene(users=[U1])
    scene.add_object(make_object(U1, name="Existing"))

    result = ImportPipeline(scene).run(_mixed_archive(), skip_error_objects=False)

    assert result.state is ImportState.FAILED
    assert result.error.code == E_ENTRY_DECODE
    assert result.error.context["entry"] == "objects/broken.xml"
    assert [o.name for o in scene.objects()] == ["Existing"]


def test_tolerant_mode_skips_bad_objects():
    scene = make_scene(users=[U1])

    result = ImportPipeline(scene).run(_mixed_archive(), skip_error_objects=True)

    assert result.state is ImportState.DONE
    assert result.objects_skipped == 1
    assert result.objects_restored == 1
    assert [o.name for o in scene.objects()] == ["Good"]


def test_cancel_between_entries():
    cancel = threading.Event()
    cancel.set()
    archive = build_archive({f"assets/{uuid4()}_texture.jp2": b"x", "terrains/r.r32": b"t"})
    scene = make_scene()

    result = ImportPipeline(scene).run(archive, cancel=cancel)

    assert result.state is ImportState.FAILED
    assert result.error.code == E_CANCELLED
    assert result.assets_restored == 0
    assert scene.terrain == b""


def test_bad_asset_entries_are_counted():
    good = uuid4()
    archive = build_archive(
        {
            f"assets/{good}_notecard.txt": b"hi",
            f"assets/{uuid4()}_mystery.bin": b"?",
            "assets/not-a-uuid_texture.jp2": b"?",
            "readme.txt": b"ignored",
            "archive.xml": "<broken",
        }
    )
    scene = make_scene()

    result = ImportPipeline(scene).run(archive)

    assert result.state is ImportState.DONE
    assert result.assets_restored == 1
    assert result.assets_failed == 2
    assert result.control is None
    assert scene.assets.get(good).asset_type is AssetType.NOTECARD


def test_harvest_creators_skips_broken_objects():
    asset, creator = uuid4(), uuid4()
    obj = make_object(U1, items=[make_item(asset, AssetType.NOTECARD, U1, creator=creator)])
    pairs, scanned, failed = harvest_creators([serialize_object(obj), b"<nope"])
    assert pairs == {asset: creator}
    assert (scanned, failed) == (1, 1)


def test_summary_line_mentions_state():
    scene = make_scene()
    result = ImportPipeline(scene).run(build_archive({"terrains/r.r32": b"t"}))
    assert result.summary_line().startswith("Import summary: state=DONE")
    assert result.terrain_loaded


def test_filtered_import_decodes_each_object_once(monkeypatch):
    asset, creator = uuid4(), uuid4()
    objs = [
        make_object(U1, name="A", items=[make_item(asset, AssetType.NOTECARD, U1, creator=creator)]),
        make_object(U1, name="B"),
    ]
    calls = []
    original = reader.deserialize_object

    def counting(data):
        calls.append(data)
        return original(data)

    monkeypatch.setattr(reader, "deserialize_object", counting)
    attribution = MemoryAttributionStore()
    result = ImportPipeline(make_scene(users=[U1]), attribution).run(
        build_archive(dict(_object_entry(o) for o in objs)), allowed_creators={U1}
    )

    assert result.state is ImportState.DONE
    assert len(calls) == 2
    assert result.attribution_pairs == 1
    assert attribution.load()[asset] == creator
