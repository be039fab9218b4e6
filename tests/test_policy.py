from uuid import UUID, uuid4

from regionarchiver.constants import DEFAULT_TEXTURE_ID, LIBRARY_OWNER_ID, ZERO_ID
from regionarchiver.policy import FilterCounters, FilterPolicy

U1 = UUID("00000000-0000-0000-0000-0000000000a1")
U2 = UUID("00000000-0000-0000-0000-0000000000a2")


def test_no_allow_list_disables_every_rule():
    policy = FilterPolicy(None, {uuid4(): U2})
    assert not policy.enabled
    assert not policy.must_exclude_by_owner(U2)
    assert not policy.must_substitute_by_creator(U2)
    assert not policy.must_substitute_by_asset(uuid4(), U2, U2)


def test_owner_and_creator_checks():
    policy = FilterPolicy({U1})
    assert not policy.must_exclude_by_owner(U1)
    assert policy.must_exclude_by_owner(U2)
    assert not policy.must_substitute_by_creator(U1)
    assert policy.must_substitute_by_creator(U2)
    assert not policy.must_substitute_by_creator(LIBRARY_OWNER_ID)


def test_exempt_ids_are_never_substituted():
    library_tex = uuid4()
    policy = FilterPolicy({U1}, {library_tex: U2}, exempt={library_tex})
    for owner in (U1, U2):
        assert not policy.must_substitute_by_asset(library_tex, owner, U2)
        assert not policy.must_substitute_by_asset(DEFAULT_TEXTURE_ID, owner, U2)
    assert not policy.must_substitute_by_asset(ZERO_ID, U2)
    assert not policy.must_substitute_by_asset(None, U2)


def test_unknown_creator_fails_open():
    policy = FilterPolicy({U1}, {})
    assert not policy.must_substitute_by_asset(uuid4(), U1)


def test_attribution_table_decides_when_creator_not_given():
    asset_ok, asset_bad = uuid4(), uuid4()
    policy = FilterPolicy({U1}, {asset_ok: U1, asset_bad: U2})
    assert not policy.must_substitute_by_asset(asset_ok, U1)
    assert policy.must_substitute_by_asset(asset_bad, U1)
    # An explicit creator wins over the table.
    assert not policy.must_substitute_by_asset(asset_bad, U1, U1)


def test_excluded_owner_substitutes_everything_not_exempt():
    policy = FilterPolicy({U1}, {})
    assert policy.must_substitute_by_asset(uuid4(), U2, U1)


def test_counters_summary():
    counters = FilterCounters()
    counters.parts.count(True)
    counters.textures.count(False)
    counters.textures.count(False)
    line = counters.summary_line()
    assert line.startswith("Filter summary: ")
    assert "parts_replaced=1" in line
    assert "textures_kept=2" in line
    assert counters.to_dict()["nested_missing"] == 0
