import pytest

from grouproster.codec import decode, encode, encode_stream, iter_decode
from grouproster.constants import (
    B_EXIT_TYPE,
    B_NAME,
    B_PART_MESSAGE,
    B_PEER_ID,
    B_PUBLIC_KEY,
    EVENT_VERSION,
    K_BODY,
    K_GROUP,
    K_T,
    K_TS,
    K_V,
    T_PEER_EXIT,
    T_PEER_JOIN,
    T_SELF_JOIN,
)
from grouproster.events import (
    PeerExit,
    PeerJoin,
    SelfJoin,
    event_from_envelope,
    event_to_envelope,
    make_envelope,
    validate_envelope,
)
from grouproster.models import ExitType, Role, Status


def test_validate_accepts_make_envelope() -> None:
    env = make_envelope(T_SELF_JOIN, group_id=3)
    validate_envelope(env)
    assert env[K_V] == EVENT_VERSION
    assert K_BODY not in env


def test_validate_rejects_missing_required_key() -> None:
    env = make_envelope(T_SELF_JOIN, group_id=3)
    env.pop(K_GROUP)
    with pytest.raises(ValueError):
        validate_envelope(env)


def test_validate_rejects_wrong_version() -> None:
    env = make_envelope(T_SELF_JOIN, group_id=3)
    env[K_V] = EVENT_VERSION + 1
    with pytest.raises(ValueError):
        validate_envelope(env)


def test_validate_rejects_unknown_type() -> None:
    env = make_envelope(T_SELF_JOIN, group_id=3)
    env[K_T] = 250
    with pytest.raises(ValueError):
        validate_envelope(env)


def test_validate_rejects_non_integer_keys() -> None:
    env = make_envelope(T_SELF_JOIN, group_id=3)
    env["1"] = env.pop(K_T)
    with pytest.raises(TypeError):
        validate_envelope(env)


def test_validate_rejects_non_map_body() -> None:
    env = make_envelope(T_SELF_JOIN, group_id=3)
    env[K_BODY] = "nope"
    with pytest.raises(TypeError):
        validate_envelope(env)


def test_peer_join_from_envelope() -> None:
    k = bytes([9]) * 32
    env = {
        K_V: EVENT_VERSION,
        K_T: T_PEER_JOIN,
        K_TS: 1700000000000,
        K_GROUP: 4,
        K_BODY: {B_PEER_ID: 12, B_NAME: "alice", B_PUBLIC_KEY: k},
    }

    ev = event_from_envelope(env)

    assert ev == PeerJoin(4, 12, "alice", k, Status.NONE, Role.USER)


def test_exit_type_is_converted_to_enum() -> None:
    env = make_envelope(
        T_PEER_EXIT,
        group_id=4,
        body={B_PEER_ID: 12, B_EXIT_TYPE: 4, B_PART_MESSAGE: "later"},
    )

    ev = event_from_envelope(env)

    assert isinstance(ev, PeerExit)
    assert ev.exit_type is ExitType.KICK
    assert ev.part_message == "later"


def test_missing_required_body_field() -> None:
    env = make_envelope(T_PEER_JOIN, group_id=4, body={B_PEER_ID: 12})
    with pytest.raises(ValueError):
        event_from_envelope(env)


def test_wrong_body_field_type() -> None:
    env = make_envelope(
        T_PEER_JOIN,
        group_id=4,
        body={B_PEER_ID: "12", B_NAME: "alice", B_PUBLIC_KEY: b"k"},
    )
    with pytest.raises(TypeError):
        event_from_envelope(env)


def test_event_survives_cbor_stream() -> None:
    events = [
        SelfJoin(1),
        PeerJoin(1, 2, "bob", bytes([2]) * 32, Status.AWAY, Role.MODERATOR),
        PeerExit(1, 2, ExitType.QUIT, part_message="bye"),
    ]
    data = encode_stream(event_to_envelope(e, ts=1) for e in events)

    decoded = [event_from_envelope(env) for env in iter_decode(data)]

    assert decoded == events


def test_codec_single_item() -> None:
    env = make_envelope(T_SELF_JOIN, group_id=1, ts=5)
    assert decode(encode(env)) == env
