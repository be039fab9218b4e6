import json
from uuid import UUID, uuid4

import pytest

from regionarchiver import RegionArchiver
from regionarchiver.cli import main
from regionarchiver.constants import AssetType
from regionarchiver.container import serialize_object
from regionarchiver.model import Asset
from regionarchiver.reporting import get_reporter, set_reporter, set_verbosity
from regionarchiver.store import SqliteAttributionStore

from builders import build_archive, make_item, make_object, make_scene

U1 = UUID("00000000-0000-0000-0000-0000000000a1")


@pytest.fixture(autouse=True)
def _restore_reporter():
    previous = get_reporter()
    yield
    set_reporter(previous)
    set_verbosity(0)


def _write_region(path, missing: bool = False):
    tex, note = uuid4(), uuid4()
    assets = [Asset(note, AssetType.NOTECARD, b"n")]
    if not missing:
        assets.append(Asset(tex, AssetType.TEXTURE, b"t"))
    scene = make_scene(assets=assets)
    scene.add_object(
        make_object(U1, face_textures=[tex], items=[make_item(note, AssetType.NOTECARD, U1, creator=U1)])
    )
    RegionArchiver(scene).archive_region(path)
    return note


def test_inspect_json(tmp_path, capsys):
    path = tmp_path / "r.oar"
    _write_region(path)
    assert main(["-r", "silent", "inspect", str(path), "--json"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["counts"]["asset"] == 2
    assert data["counts"]["object"] == 1
    assert data["asset_types"] == {"notecard": 1, "texture": 1}
    assert data["control"]["version"] == "0.8"
    assert data["error"] is None


def test_inspect_summary_event(tmp_path, capsys):
    path = tmp_path / "r.oar"
    _write_region(path)
    assert main(["-r", "json", "inspect", str(path)]) == 0
    events = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    (summary,) = [e for e in events if e["event"] == "summary"]
    assert summary["summary_type"] == "inspect"
    assert summary["objects"] == "1"


def test_inspect_reports_unreadable_archive(tmp_path):
    path = tmp_path / "junk.oar"
    path.write_bytes(b"junk" * 300)
    assert main(["-r", "silent", "inspect", str(path)]) == 1


def test_verify_exit_codes(tmp_path):
    good, bad = tmp_path / "good.oar", tmp_path / "bad.oar"
    _write_region(good)
    _write_region(bad, missing=True)
    assert main(["-r", "silent", "verify", str(good)]) == 0
    assert main(["-r", "silent", "verify", str(bad)]) == 1


def test_verify_honours_configured_exemptions(tmp_path):
    exempt = uuid4()
    path = tmp_path / "r.oar"
    obj = make_object(U1, face_textures=[exempt])
    path.write_bytes(build_archive({"objects/o.xml": serialize_object(obj)}).getvalue())
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text(f"extra_exempt_assets: ['{exempt}']\n")
    assert main(["-r", "silent", "verify", str(path)]) == 1
    assert main(["-r", "silent", "-c", str(cfg), "verify", str(path)]) == 0


def test_scan_writes_database(tmp_path):
    path = tmp_path / "r.oar"
    note = _write_region(path)
    db = tmp_path / "creators.db"
    assert main(["-r", "silent", "scan", str(path), "--db", str(db)]) == 0
    assert SqliteAttributionStore(db).load() == {note: U1}


def test_scan_needs_database(tmp_path):
    path = tmp_path / "r.oar"
    _write_region(path)
    assert main(["-r", "silent", "scan", str(path)]) == 2


def test_bad_config_exits_2(tmp_path):
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text("unknown_key: 1\n")
    assert main(["-r", "silent", "-c", str(cfg), "inspect", str(tmp_path / "x.oar")]) == 2
