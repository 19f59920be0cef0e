"""Value types shared by the roster, registry and dispatcher."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum

from .errors import Ambiguous, NotFound


class Role(IntEnum):
    """Permission tier. Lower values rank higher in the roster."""

    FOUNDER = 0
    MODERATOR = 1
    USER = 2
    OBSERVER = 3

    @property
    def rank(self) -> int:
        return int(self)


class Status(IntEnum):
    NONE = 0
    AWAY = 1
    BUSY = 2


class ExitType(IntEnum):
    QUIT = 0
    TIMEOUT = 1
    DISCONNECTED = 2
    SELF_DISCONNECTED = 3
    KICK = 4
    SYNC_ERROR = 5


class ModEvent(IntEnum):
    KICK = 0
    OBSERVER = 1
    USER = 2
    MODERATOR = 3


class JoinFail(IntEnum):
    PEER_LIMIT = 0
    INVALID_PASSWORD = 1
    UNKNOWN = 2


class VoiceState(IntEnum):
    ALL = 0
    MODERATOR = 1
    FOUNDER = 2


class PrivacyState(IntEnum):
    PUBLIC = 0
    PRIVATE = 1


class TopicLock(IntEnum):
    ENABLED = 0
    DISABLED = 1


class MessageType(IntEnum):
    NORMAL = 0
    ACTION = 1


class JoinType(IntEnum):
    CREATE = 0
    JOIN = 1
    LOAD = 2


@dataclass
class Peer:
    """One roster slot. Inactive slots are tombstones awaiting reuse."""

    peer_id: int = 0
    public_key: bytes = b""
    name: str = ""
    previous_name: str = ""
    status: Status = Status.NONE
    role: Role = Role.USER
    active: bool = False
    is_ignored: bool = False
    last_active: float = 0.0

    def sort_key(self) -> tuple[int, int, str]:
        return (0 if self.active else 1, Role(self.role).rank, self.name.lower())


@dataclass(frozen=True)
class PeerInfo:
    """Peer details as reported by the protocol layer."""

    peer_id: int
    name: str
    public_key: bytes
    status: Status = Status.NONE
    role: Role = Role.USER


class ResolveStatus(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"


_RESOLVE_MESSAGES: dict[ResolveStatus, tuple[str, ...]] = {
    ResolveStatus.FOUND: (),
    ResolveStatus.NOT_FOUND: ("Invalid peer name or public key.",),
    ResolveStatus.AMBIGUOUS: (
        "More than one peer is using this name; specify the target's public key.",
        "Use the /whois or /list command to determine the key.",
    ),
}


@dataclass(frozen=True)
class Resolution:
    """Outcome of a nickname or identifier lookup."""

    status: ResolveStatus
    peer_id: int | None = None

    @classmethod
    def found(cls, peer_id: int) -> Resolution:
        return cls(ResolveStatus.FOUND, int(peer_id))

    @classmethod
    def not_found(cls) -> Resolution:
        return cls(ResolveStatus.NOT_FOUND)

    @classmethod
    def ambiguous(cls) -> Resolution:
        return cls(ResolveStatus.AMBIGUOUS)

    @property
    def ok(self) -> bool:
        return self.status is ResolveStatus.FOUND

    @property
    def messages(self) -> tuple[str, ...]:
        return _RESOLVE_MESSAGES[self.status]

    def require(self) -> int:
        """Return the peer id, raising NotFound or Ambiguous otherwise."""
        if self.status is ResolveStatus.AMBIGUOUS:
            raise Ambiguous(self.messages[0])
        if self.peer_id is None:
            raise NotFound(self.messages[0])
        return self.peer_id


@dataclass(frozen=True)
class RosterSnapshot:
    """Consistent read of one session's roster for rendering and completion."""

    group_id: int
    peer_count: int
    names: tuple[str, ...] = field(default_factory=tuple)
