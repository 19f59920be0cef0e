"""Caller-visible records produced while handling events and commands.

The core never renders anything. Each handler appends `Notice` objects to an
outgoing list that the UI layer draws, logs or turns into alerts.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .models import ExitType, JoinFail, ModEvent, PrivacyState, TopicLock, VoiceState


class NoticeKind(Enum):
    CONNECTION = "connection"
    DISCONNECTION = "disconnection"
    NAME_CHANGE = "name_change"
    MOD_EVENT = "mod_event"
    TOPIC = "topic"
    FOUNDER = "founder"
    SYSTEM = "system"
    ERROR = "error"
    IN_MSG = "in_msg"
    IN_ACTION = "in_action"
    IN_PRIVATE = "in_private"
    OUT_MSG = "out_msg"
    OUT_ACTION = "out_action"
    OUT_PRIVATE = "out_private"


@dataclass(frozen=True)
class Notice:
    kind: NoticeKind
    group_id: int
    text: str
    nick: str | None = None
    new_nick: str | None = None
    mention: bool = False


_EXIT_STRINGS: dict[ExitType, str] = {
    ExitType.QUIT: "Quit",
    ExitType.TIMEOUT: "Connection timed out",
    ExitType.DISCONNECTED: "Disconnected",
    ExitType.KICK: "Kicked",
    ExitType.SYNC_ERROR: "Sync error",
}

_ROLE_WORDS: dict[ModEvent, str] = {
    ModEvent.OBSERVER: "observer",
    ModEvent.USER: "user",
    ModEvent.MODERATOR: "moderator",
}

_REJECT_STRINGS: dict[JoinFail, str] = {
    JoinFail.PEER_LIMIT: "Group is full. Try again with the '/rejoin' command.",
    JoinFail.INVALID_PASSWORD: "Invalid password.",
    JoinFail.UNKNOWN: "Failed to join group. Try again with the '/rejoin' command.",
}


def exit_string(exit_type: ExitType | int) -> str:
    try:
        return _EXIT_STRINGS.get(ExitType(exit_type), "Unknown error")
    except ValueError:
        return "Unknown error"


def peer_joined(group_id: int, nick: str) -> Notice:
    return Notice(NoticeKind.CONNECTION, group_id, "has joined the room", nick=nick)


def peer_exited(group_id: int, nick: str, exit_type: ExitType, part_message: str) -> Notice:
    if part_message:
        text = f"[Quit]: {part_message}"
    else:
        text = f"[{exit_string(exit_type)}]"
    return Notice(NoticeKind.DISCONNECTION, group_id, text, nick=nick)


def nick_changed(group_id: int, old: str, new: str) -> Notice:
    return Notice(
        NoticeKind.NAME_CHANGE, group_id, f"{old} is now known as {new}", nick=old, new_nick=new
    )


def moderation(group_id: int, event: ModEvent, src_name: str, tgt_name: str) -> Notice:
    if event == ModEvent.KICK:
        text = f"-!- {tgt_name} has been kicked by {src_name}"
    else:
        text = f"-!- {src_name} has set {tgt_name}'s role to {_ROLE_WORDS[event]}"
    return Notice(NoticeKind.MOD_EVENT, group_id, text)


def topic_changed(group_id: int, nick: str, topic: str) -> Notice:
    return Notice(NoticeKind.TOPIC, group_id, f"-!- {nick} set the topic to: {topic}", nick=nick)


def peer_limit_changed(group_id: int, limit: int) -> Notice:
    return Notice(
        NoticeKind.FOUNDER, group_id, f"-!- The founder has set the peer limit to {limit}"
    )


def privacy_changed(group_id: int, state: PrivacyState) -> Notice:
    word = "public" if state == PrivacyState.PUBLIC else "private"
    return Notice(NoticeKind.FOUNDER, group_id, f"-!- The founder has set the group to {word}.")


def voice_changed(group_id: int, state: VoiceState) -> Notice:
    return Notice(
        NoticeKind.FOUNDER,
        group_id,
        f"-!- The founder set the voice state to {VoiceState(state).name}.",
    )


def topic_lock_changed(group_id: int, lock: TopicLock) -> Notice:
    word = "locked" if lock == TopicLock.ENABLED else "unlocked"
    return Notice(NoticeKind.FOUNDER, group_id, f"-!- The founder has {word} the topic.")


def password_changed(group_id: int, protected: bool) -> Notice:
    if protected:
        text = "-!- The founder has password protected the group."
    else:
        text = "-!- The founder has removed password protection from the group."
    return Notice(NoticeKind.FOUNDER, group_id, text)


def join_rejected(group_id: int, reason: JoinFail) -> Notice:
    return Notice(NoticeKind.ERROR, group_id, f"-!- {_REJECT_STRINGS[JoinFail(reason)]}")


def system(group_id: int, text: str) -> Notice:
    return Notice(NoticeKind.SYSTEM, group_id, text)


def error(group_id: int, text: str) -> Notice:
    return Notice(NoticeKind.ERROR, group_id, text)
