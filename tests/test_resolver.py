import pytest

from grouproster.errors import Ambiguous, NotFound
from grouproster.models import ResolveStatus, Role, Status
from grouproster.resolver import resolve, resolve_public_key
from grouproster.roster import PeerRoster

KEY_A = bytes([0xAA]) * 32


def _roster() -> PeerRoster:
    r = PeerRoster()
    r.join(1, "alice", KEY_A, Status.NONE, Role.USER, now=0.0)
    return r


def test_resolve_by_nick() -> None:
    res = resolve(_roster(), "alice")

    assert res.ok
    assert res.peer_id == 1


def test_public_key_wins_over_matching_nick() -> None:
    r = _roster()
    # a second peer whose nickname is alice's key in hex
    r.join(2, KEY_A.hex(), bytes([0xBB]) * 32, Status.NONE, Role.USER, now=0.0)

    res = resolve(r, KEY_A.hex())

    assert res.ok
    assert res.peer_id == 1


def test_public_key_is_case_insensitive() -> None:
    res = resolve_public_key(_roster(), KEY_A.hex().upper())

    assert res.peer_id == 1


def test_public_key_must_be_exact_length() -> None:
    r = _roster()

    assert not resolve_public_key(r, " " + KEY_A.hex() + " ").ok
    assert not resolve_public_key(r, KEY_A.hex() + "\n").ok
    assert resolve(r, " " + KEY_A.hex()).status is ResolveStatus.NOT_FOUND


def test_ambiguous_nick_carries_guidance() -> None:
    r = _roster()
    r.join(2, "alice", bytes([0xBB]) * 32, Status.NONE, Role.USER, now=0.0)

    res = resolve(r, "alice")

    assert res.status is ResolveStatus.AMBIGUOUS
    assert res.peer_id is None
    assert len(res.messages) == 2


def test_unknown_and_empty_identifiers() -> None:
    r = _roster()

    assert resolve(r, "nobody").status is ResolveStatus.NOT_FOUND
    assert resolve(r, "").status is ResolveStatus.NOT_FOUND
    assert resolve(r, None).status is ResolveStatus.NOT_FOUND
    assert resolve(r, "nobody").messages == ("Invalid peer name or public key.",)


def test_require_raises_for_unresolved_identifiers() -> None:
    r = _roster()
    r.join(2, "twin", bytes([0xBB]) * 32, Status.NONE, Role.USER, now=0.0)
    r.join(3, "twin", bytes([0xCC]) * 32, Status.NONE, Role.USER, now=0.0)

    assert resolve(r, "alice").require() == 1
    with pytest.raises(Ambiguous):
        resolve(r, "twin").require()
    with pytest.raises(NotFound):
        resolve(r, "nobody").require()
