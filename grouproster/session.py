from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from .constants import CHAT_ID_SIZE, DEFAULT_MAX_IGNORED_KEYS, DEFAULT_MAX_SESSIONS, MAX_NAME_BYTES
from .errors import AlreadyActive, NotFound, OutOfSlots
from .ignore import IgnoreList
from .models import PrivacyState, TopicLock, VoiceState
from .roster import PeerRoster
from .util import fmt_key, parse_chat_id


class GroupSession:
    """Client-local state for one joined group conversation."""

    def __init__(
        self,
        group_id: int,
        *,
        chat_id: bytes = b"",
        group_name: str = "",
        connected_since: float = 0.0,
        max_roster_slots: int = 0,
        max_ignored_keys: int = DEFAULT_MAX_IGNORED_KEYS,
        max_name_bytes: int = MAX_NAME_BYTES,
    ) -> None:
        self.group_id = int(group_id)
        self.active = True
        self.chat_id = bytes(chat_id)
        self.group_name = group_name
        self.connected_since = float(connected_since)

        self.roster = PeerRoster(max_slots=max_roster_slots, max_name_bytes=max_name_bytes)
        self.ignored = IgnoreList(max_entries=max_ignored_keys)

        self.topic = ""
        self.peer_limit: int | None = None
        self.privacy_state: PrivacyState | None = None
        self.voice_state: VoiceState | None = None
        self.topic_lock: TopicLock | None = None
        self.password_protected = False

    @property
    def peer_count(self) -> int:
        return self.roster.peer_count

    @property
    def roster_capacity(self) -> int:
        return self.roster.capacity

    def release(self) -> None:
        """Drop roster and ignore list storage and mark the session closed."""
        self.roster.clear()
        self.ignored.clear()
        self.active = False

    def get_stats(self) -> dict[str, Any]:
        return {
            "group_id": self.group_id,
            "chat_id": fmt_key(self.chat_id),
            "peers": self.peer_count,
            "capacity": self.roster_capacity,
            "ignored": len(self.ignored),
        }


class SessionRegistry:
    """
    Fixed-capacity table of active group sessions.

    Closed slots are set to None and reused by the next create. `scan_bound`
    is one past the highest occupied slot; lookups never look beyond it.
    """

    def __init__(
        self,
        *,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
        max_roster_slots: int = 0,
        max_ignored_keys: int = DEFAULT_MAX_IGNORED_KEYS,
        max_name_bytes: int = MAX_NAME_BYTES,
    ) -> None:
        self.log = logging.getLogger("grouproster.session")
        self._slots: list[GroupSession | None] = [None] * max(1, int(max_sessions))
        self.scan_bound = 0

        self._max_roster_slots = int(max_roster_slots)
        self._max_ignored_keys = int(max_ignored_keys)
        self._max_name_bytes = int(max_name_bytes)

    @property
    def capacity(self) -> int:
        return len(self._slots)

    def __len__(self) -> int:
        return sum(1 for s in self._slots[: self.scan_bound] if s is not None)

    def __iter__(self) -> Iterator[GroupSession]:
        return iter([s for s in self._slots[: self.scan_bound] if s is not None])

    def get(self, group_id: int) -> GroupSession | None:
        for s in self._slots[: self.scan_bound]:
            if s is not None and s.active and s.group_id == group_id:
                return s
        return None

    def lookup(self, group_id: int) -> GroupSession:
        sess = self.get(group_id)
        if sess is None:
            raise NotFound(f"no session for group {group_id}")
        return sess

    def lookup_by_chat_id(self, chat_id: bytes | str) -> GroupSession:
        """Find a session by its chat id, given as bytes or hex."""
        key = parse_chat_id(chat_id)
        if key is None:
            raise NotFound("invalid chat id")
        for s in self._slots[: self.scan_bound]:
            if s is not None and s.active and s.chat_id == key:
                return s
        raise NotFound(f"no session for chat id {fmt_key(key)}")

    def create(
        self,
        group_id: int,
        *,
        now: float,
        chat_id: bytes = b"",
        group_name: str = "",
    ) -> GroupSession:
        if self.get(group_id) is not None:
            raise AlreadyActive(f"group {group_id} already has a session")

        if chat_id and len(chat_id) != CHAT_ID_SIZE:
            raise ValueError(f"chat id must be {CHAT_ID_SIZE} bytes")

        for i, slot in enumerate(self._slots):
            if slot is not None:
                continue

            sess = GroupSession(
                group_id,
                chat_id=chat_id,
                group_name=group_name,
                connected_since=now,
                max_roster_slots=self._max_roster_slots,
                max_ignored_keys=self._max_ignored_keys,
                max_name_bytes=self._max_name_bytes,
            )
            self._slots[i] = sess
            if i >= self.scan_bound:
                self.scan_bound = i + 1

            self.log.info(
                "Session created group=%s chat_id=%s slot=%s", group_id, fmt_key(chat_id), i
            )
            return sess

        raise OutOfSlots(f"all {len(self._slots)} session slots are in use")

    def close(self, session: GroupSession) -> None:
        """Release a session's storage and shrink the scan bound."""
        for i, s in enumerate(self._slots[: self.scan_bound]):
            if s is session:
                self._slots[i] = None
                break
        else:
            return

        session.release()

        bound = self.scan_bound
        while bound > 0 and self._slots[bound - 1] is None:
            bound -= 1
        self.scan_bound = bound

        self.log.info("Session closed group=%s", session.group_id)

    def clear_all(self) -> list[GroupSession]:
        closed = list(self)
        for s in closed:
            self.close(s)
        return closed
