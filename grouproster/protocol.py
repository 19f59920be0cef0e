"""Interface to the external group-messaging layer.

The roster core issues commands and queries through a `GroupProtocol`. Every
method raises `ProtocolError` on failure; send commands set `code` so the
dispatcher can tell a permission problem from anything else.
"""

from __future__ import annotations

from typing import Protocol

from .errors import ProtocolError, SendFailure
from .models import MessageType, PeerInfo, Role, Status


class GroupProtocol(Protocol):
    def self_info(self, group_id: int) -> PeerInfo: ...

    def self_peer_id(self, group_id: int) -> int: ...

    def self_role(self, group_id: int) -> Role: ...

    def peer_role(self, group_id: int, peer_id: int) -> Role: ...

    def group_name(self, group_id: int) -> str: ...

    def topic(self, group_id: int) -> str: ...

    def set_ignore(self, group_id: int, peer_id: int, ignore: bool) -> None: ...

    def set_self_name(self, group_id: int, name: str) -> None: ...

    def set_self_status(self, group_id: int, status: Status) -> None: ...

    def send_message(self, group_id: int, text: str, message_type: MessageType) -> None: ...

    def send_private_message(self, group_id: int, peer_id: int, text: str) -> None: ...

    def leave(self, group_id: int, part_message: str) -> None: ...


class NullGroupProtocol:
    """Offline stand-in used when replaying recorded events.

    Queries about the local user answer from `self_peers`; role queries fail,
    which leaves local roles as they are; all sends fail as disconnected.
    """

    def __init__(self, self_peers: dict[int, PeerInfo] | None = None) -> None:
        self.self_peers: dict[int, PeerInfo] = dict(self_peers or {})
        self.ignored: set[tuple[int, int]] = set()

    def self_info(self, group_id: int) -> PeerInfo:
        info = self.self_peers.get(group_id)
        if info is None:
            raise ProtocolError("self peer unknown", SendFailure.GROUP_NOT_FOUND)
        return info

    def self_peer_id(self, group_id: int) -> int:
        return self.self_info(group_id).peer_id

    def self_role(self, group_id: int) -> Role:
        return self.self_info(group_id).role

    def peer_role(self, group_id: int, peer_id: int) -> Role:
        raise ProtocolError("offline", SendFailure.DISCONNECTED)

    def group_name(self, group_id: int) -> str:
        return ""

    def topic(self, group_id: int) -> str:
        return ""

    def set_ignore(self, group_id: int, peer_id: int, ignore: bool) -> None:
        if ignore:
            self.ignored.add((group_id, peer_id))
        else:
            self.ignored.discard((group_id, peer_id))

    def set_self_name(self, group_id: int, name: str) -> None:
        raise ProtocolError("offline", SendFailure.DISCONNECTED)

    def set_self_status(self, group_id: int, status: Status) -> None:
        raise ProtocolError("offline", SendFailure.DISCONNECTED)

    def send_message(self, group_id: int, text: str, message_type: MessageType) -> None:
        raise ProtocolError("offline", SendFailure.DISCONNECTED)

    def send_private_message(self, group_id: int, peer_id: int, text: str) -> None:
        raise ProtocolError("offline", SendFailure.DISCONNECTED)

    def leave(self, group_id: int, part_message: str) -> None:
        return None
