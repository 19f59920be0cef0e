import pytest

from grouproster.errors import AllocationFailure
from grouproster.models import ResolveStatus, Role, Status
from grouproster.roster import PeerRoster


def _key(n: int) -> bytes:
    return bytes([n]) * 32


def _join(r: PeerRoster, peer_id: int, name: str, role: Role = Role.USER) -> None:
    r.join(peer_id, name, _key(peer_id), Status.NONE, role, now=0.0)


def test_sort_orders_by_role_then_case_insensitive_name() -> None:
    r = PeerRoster()
    _join(r, 1, "Alice", Role.FOUNDER)
    _join(r, 2, "bob", Role.USER)
    _join(r, 3, "Carol", Role.MODERATOR)

    assert r.names == ("Alice", "Carol", "bob")


def test_sort_is_stable_for_equal_keys() -> None:
    r = PeerRoster()
    _join(r, 1, "dup")
    _join(r, 2, "dup")
    r.rebuild_name_cache()

    assert [p.peer_id for p in r.active_peers()] == [1, 2]


def test_peer_count_tracks_active_slots() -> None:
    r = PeerRoster()
    for i in range(1, 6):
        _join(r, i, f"p{i}")
    r.remove(2)
    r.remove(4)
    _join(r, 9, "late")

    assert r.peer_count == 4
    assert r.peer_count == sum(1 for p in r.slots() if p.active)
    assert len(r.names) == r.peer_count


def test_remove_compacts_trailing_slots() -> None:
    r = PeerRoster()
    _join(r, 1, "a")
    _join(r, 2, "b")
    _join(r, 3, "c")

    removed = r.remove(3)

    assert removed is not None and removed.name == "c"
    assert r.capacity == 2
    assert r.names == ("a", "b")


def test_remove_middle_slot_reorders_tombstone_to_tail() -> None:
    r = PeerRoster()
    _join(r, 1, "a")
    _join(r, 2, "b")
    _join(r, 3, "c")

    r.remove(2)

    assert r.capacity == r.peer_count == 2
    assert r.names == ("a", "c")


def test_remove_unknown_peer_is_noop() -> None:
    r = PeerRoster()
    _join(r, 1, "a")

    assert r.remove(42) is None
    assert r.peer_count == 1


def test_freed_slot_is_reused_by_next_join() -> None:
    r = PeerRoster(max_slots=2)
    _join(r, 1, "a")
    _join(r, 2, "b")
    r.remove(1)

    _join(r, 3, "c")

    assert r.capacity == 2
    assert r.peer_count == 2
    assert all(p.active for p in r.slots())


def test_join_for_active_peer_refreshes_record() -> None:
    r = PeerRoster()
    _join(r, 1, "a")
    _join(r, 1, "renamed")

    assert r.peer_count == 1
    assert r.names == ("renamed",)


def test_allocation_failure_leaves_roster_unchanged() -> None:
    r = PeerRoster(max_slots=2)
    _join(r, 1, "a")
    _join(r, 2, "b")

    with pytest.raises(AllocationFailure):
        _join(r, 3, "c")

    assert r.peer_count == 2
    assert r.names == ("a", "b")


def test_rename_rebuilds_name_cache_and_keeps_previous() -> None:
    r = PeerRoster()
    _join(r, 1, "zed")
    _join(r, 2, "mid")

    assert r.rename(1, "abe", now=5.0) == ("zed", "abe")
    assert r.names == ("abe", "mid")
    peer = r.find_by_peer_id(1)
    assert peer is not None
    assert peer.previous_name == "zed"
    assert peer.last_active == 5.0


def test_set_role_resorts() -> None:
    r = PeerRoster()
    _join(r, 1, "a")
    _join(r, 2, "b")

    r.set_role(2, Role.FOUNDER)

    assert r.names == ("b", "a")


def test_find_by_nick_reports_ambiguity() -> None:
    r = PeerRoster()
    _join(r, 1, "twin")
    _join(r, 2, "twin")
    _join(r, 3, "solo")

    assert r.find_by_nick("twin").status is ResolveStatus.AMBIGUOUS
    assert r.find_by_nick("solo").peer_id == 3
    assert r.find_by_nick("Solo").status is ResolveStatus.NOT_FOUND


def test_join_cleans_control_characters_in_names() -> None:
    r = PeerRoster()
    _join(r, 1, "bad\nname\x00")

    assert r.names == ("bad name",)
