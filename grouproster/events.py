"""Inbound protocol events and their compact wire envelope.

Events form a closed set; the dispatcher handles each type in one place. The
envelope is a CBOR map with small integer keys so a protocol adapter can hand
events across a process boundary or record them for replay.
"""

from __future__ import annotations

import time
from dataclasses import MISSING, dataclass, fields
from typing import Any, Callable, Union

from .constants import (
    B_EXIT_TYPE,
    B_MESSAGE_TYPE,
    B_MOD_EVENT,
    B_NAME,
    B_OLD_NAME,
    B_PART_MESSAGE,
    B_PEER_ID,
    B_PUBLIC_KEY,
    B_REASON,
    B_ROLE,
    B_SOURCE_PEER_ID,
    B_STATUS,
    B_TARGET_PEER_ID,
    B_TEXT,
    B_VALUE,
    EVENT_VERSION,
    K_BODY,
    K_GROUP,
    K_T,
    K_TS,
    K_V,
    T_JOIN_REJECTED,
    T_MESSAGE,
    T_MODERATION,
    T_NICK_CHANGE,
    T_PASSWORD,
    T_PEER_EXIT,
    T_PEER_JOIN,
    T_PEER_LIMIT,
    T_PRIVACY_STATE,
    T_PRIVATE_MESSAGE,
    T_SELF_JOIN,
    T_SELF_NICK_CHANGE,
    T_STATUS_CHANGE,
    T_TOPIC_CHANGE,
    T_TOPIC_LOCK,
    T_VOICE_STATE,
)
from .models import (
    ExitType,
    JoinFail,
    MessageType,
    ModEvent,
    PrivacyState,
    Role,
    Status,
    TopicLock,
    VoiceState,
)


@dataclass(frozen=True)
class PeerJoin:
    group_id: int
    peer_id: int
    name: str
    public_key: bytes
    status: Status = Status.NONE
    role: Role = Role.USER


@dataclass(frozen=True)
class PeerExit:
    group_id: int
    peer_id: int
    exit_type: ExitType
    name: str = ""
    part_message: str = ""


@dataclass(frozen=True)
class NickChange:
    group_id: int
    peer_id: int
    new_name: str


@dataclass(frozen=True)
class SelfNickChange:
    group_id: int
    old_name: str
    new_name: str


@dataclass(frozen=True)
class StatusChange:
    group_id: int
    peer_id: int
    status: Status


@dataclass(frozen=True)
class Moderation:
    group_id: int
    source_peer_id: int
    target_peer_id: int
    event: ModEvent


@dataclass(frozen=True)
class SelfJoin:
    group_id: int


@dataclass(frozen=True)
class JoinRejected:
    group_id: int
    reason: JoinFail


@dataclass(frozen=True)
class MessageReceived:
    group_id: int
    peer_id: int
    text: str
    message_type: MessageType = MessageType.NORMAL


@dataclass(frozen=True)
class PrivateMessageReceived:
    group_id: int
    peer_id: int
    text: str


@dataclass(frozen=True)
class TopicChange:
    group_id: int
    peer_id: int
    topic: str


@dataclass(frozen=True)
class PeerLimitChange:
    group_id: int
    peer_limit: int


@dataclass(frozen=True)
class PrivacyStateChange:
    group_id: int
    privacy_state: PrivacyState


@dataclass(frozen=True)
class VoiceStateChange:
    group_id: int
    voice_state: VoiceState


@dataclass(frozen=True)
class TopicLockChange:
    group_id: int
    topic_lock: TopicLock


@dataclass(frozen=True)
class PasswordChange:
    group_id: int
    password: str


GroupEvent = Union[
    PeerJoin,
    PeerExit,
    NickChange,
    SelfNickChange,
    StatusChange,
    Moderation,
    SelfJoin,
    JoinRejected,
    MessageReceived,
    PrivateMessageReceived,
    TopicChange,
    PeerLimitChange,
    PrivacyStateChange,
    VoiceStateChange,
    TopicLockChange,
    PasswordChange,
]

EVENT_TYPES: dict[int, type] = {
    T_PEER_JOIN: PeerJoin,
    T_PEER_EXIT: PeerExit,
    T_NICK_CHANGE: NickChange,
    T_SELF_NICK_CHANGE: SelfNickChange,
    T_STATUS_CHANGE: StatusChange,
    T_MODERATION: Moderation,
    T_SELF_JOIN: SelfJoin,
    T_JOIN_REJECTED: JoinRejected,
    T_MESSAGE: MessageReceived,
    T_PRIVATE_MESSAGE: PrivateMessageReceived,
    T_TOPIC_CHANGE: TopicChange,
    T_PEER_LIMIT: PeerLimitChange,
    T_PRIVACY_STATE: PrivacyStateChange,
    T_VOICE_STATE: VoiceStateChange,
    T_TOPIC_LOCK: TopicLockChange,
    T_PASSWORD: PasswordChange,
}

_TYPE_CODES: dict[type, int] = {cls: code for code, cls in EVENT_TYPES.items()}


def _as_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError("expected an integer")
    if value < 0:
        raise ValueError("expected an unsigned integer")
    return value


def _as_str(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError("expected a string")
    return value


def _as_bytes(value: Any) -> bytes:
    if not isinstance(value, (bytes, bytearray)):
        raise TypeError("expected bytes")
    return bytes(value)


def _enum(cls) -> Callable[[Any], Any]:
    def convert(value: Any):
        return cls(_as_int(value))

    return convert


# field name -> (body key, converter)
_BODY_FIELDS: dict[str, tuple[int, Callable[[Any], Any]]] = {
    "peer_id": (B_PEER_ID, _as_int),
    "name": (B_NAME, _as_str),
    "new_name": (B_NAME, _as_str),
    "public_key": (B_PUBLIC_KEY, _as_bytes),
    "status": (B_STATUS, _enum(Status)),
    "role": (B_ROLE, _enum(Role)),
    "exit_type": (B_EXIT_TYPE, _enum(ExitType)),
    "part_message": (B_PART_MESSAGE, _as_str),
    "old_name": (B_OLD_NAME, _as_str),
    "source_peer_id": (B_SOURCE_PEER_ID, _as_int),
    "target_peer_id": (B_TARGET_PEER_ID, _as_int),
    "event": (B_MOD_EVENT, _enum(ModEvent)),
    "text": (B_TEXT, _as_str),
    "topic": (B_TEXT, _as_str),
    "password": (B_TEXT, _as_str),
    "message_type": (B_MESSAGE_TYPE, _enum(MessageType)),
    "peer_limit": (B_VALUE, _as_int),
    "privacy_state": (B_VALUE, _enum(PrivacyState)),
    "voice_state": (B_VALUE, _enum(VoiceState)),
    "topic_lock": (B_VALUE, _enum(TopicLock)),
    "reason": (B_REASON, _enum(JoinFail)),
}


def now_ms() -> int:
    return int(time.time() * 1000)


def make_envelope(
    event_type: int,
    *,
    group_id: int,
    body: dict | None = None,
    ts: int | None = None,
) -> dict:
    env: dict[int, object] = {
        K_V: EVENT_VERSION,
        K_T: int(event_type),
        K_TS: ts or now_ms(),
        K_GROUP: int(group_id),
    }
    if body:
        env[K_BODY] = body
    return env


def validate_envelope(env: dict) -> None:
    if not isinstance(env, dict):
        raise TypeError("envelope must be a CBOR map (dict)")

    for k in env.keys():
        if not isinstance(k, int):
            raise TypeError("envelope keys must be integers")
        if k < 0:
            raise ValueError("envelope keys must be unsigned integers")

    for k in (K_V, K_T, K_TS, K_GROUP):
        if k not in env:
            raise ValueError(f"missing envelope key {k}")

    v = env[K_V]
    if not isinstance(v, int):
        raise TypeError("envelope version must be an integer")
    if v != EVENT_VERSION:
        raise ValueError(f"unsupported version {v}")

    t = env[K_T]
    if not isinstance(t, int):
        raise TypeError("event type must be an integer")
    if t not in EVENT_TYPES:
        raise ValueError(f"unknown event type {t}")

    ts = env[K_TS]
    if not isinstance(ts, int):
        raise TypeError("timestamp must be an integer")
    if ts < 0:
        raise ValueError("timestamp must be unsigned")

    group = env[K_GROUP]
    if not isinstance(group, int) or isinstance(group, bool):
        raise TypeError("group id must be an integer")

    if K_BODY in env and not isinstance(env[K_BODY], dict):
        raise TypeError("event body must be a map")


def event_to_envelope(event: GroupEvent, *, ts: int | None = None) -> dict:
    code = _TYPE_CODES.get(type(event))
    if code is None:
        raise TypeError(f"not a group event: {type(event).__name__}")

    body: dict[int, object] = {}
    for f in fields(event):
        if f.name == "group_id":
            continue
        key, _ = _BODY_FIELDS[f.name]
        value = getattr(event, f.name)
        body[key] = int(value) if isinstance(value, int) else value

    return make_envelope(code, group_id=event.group_id, body=body, ts=ts)


def event_from_envelope(env: dict) -> GroupEvent:
    """Build an event from a validated envelope.

    Raises TypeError or ValueError when the body is missing required fields or
    carries values of the wrong type.
    """
    validate_envelope(env)
    cls = EVENT_TYPES[env[K_T]]
    body = env.get(K_BODY) or {}

    kwargs: dict[str, Any] = {"group_id": int(env[K_GROUP])}
    for f in fields(cls):
        if f.name == "group_id":
            continue
        key, convert = _BODY_FIELDS[f.name]
        if key not in body:
            if f.default is MISSING:
                raise ValueError(f"{cls.__name__}: missing body key {key} ({f.name})")
            continue
        try:
            kwargs[f.name] = convert(body[key])
        except (TypeError, ValueError) as e:
            raise type(e)(f"{cls.__name__}.{f.name}: {e}") from e

    return cls(**kwargs)
