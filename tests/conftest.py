from __future__ import annotations

import pytest

from grouproster.config import ClientRuntimeConfig
from grouproster.dispatcher import GroupEventDispatcher
from grouproster.errors import ProtocolError, SendFailure
from grouproster.models import JoinType, MessageType, PeerInfo, Role, Status

GROUP = 7
SELF_ID = 1
SELF_KEY = bytes([0x01]) * 32


def key(n: int) -> bytes:
    return bytes([n]) * 32


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProtocol:
    """Records commands; answers queries from plain attributes."""

    def __init__(self) -> None:
        self.self_peers: dict[int, PeerInfo] = {}
        self.roles: dict[tuple[int, int], Role] = {}
        self.self_roles: dict[int, Role] = {}
        self.topics: dict[int, str] = {}
        self.names: dict[int, str] = {}
        self.send_error: ProtocolError | None = None
        self.ignore_error: ProtocolError | None = None

        self.ignore_calls: list[tuple[int, int, bool]] = []
        self.sent: list[tuple[int, str, MessageType]] = []
        self.private_sent: list[tuple[int, int, str]] = []
        self.left: list[tuple[int, str]] = []
        self.self_names: list[tuple[int, str]] = []
        self.statuses: list[tuple[int, Status]] = []

    def _require(self, group_id: int) -> PeerInfo:
        info = self.self_peers.get(group_id)
        if info is None:
            raise ProtocolError("no such group", SendFailure.GROUP_NOT_FOUND)
        return info

    def self_info(self, group_id: int) -> PeerInfo:
        return self._require(group_id)

    def self_peer_id(self, group_id: int) -> int:
        return self._require(group_id).peer_id

    def self_role(self, group_id: int) -> Role:
        return self.self_roles.get(group_id, self._require(group_id).role)

    def peer_role(self, group_id: int, peer_id: int) -> Role:
        try:
            return self.roles[(group_id, peer_id)]
        except KeyError:
            raise ProtocolError("unknown peer", SendFailure.PEER_NOT_FOUND) from None

    def group_name(self, group_id: int) -> str:
        return self.names.get(group_id, "")

    def topic(self, group_id: int) -> str:
        return self.topics.get(group_id, "")

    def set_ignore(self, group_id: int, peer_id: int, ignore: bool) -> None:
        self.ignore_calls.append((group_id, peer_id, ignore))
        if self.ignore_error is not None:
            raise self.ignore_error

    def set_self_name(self, group_id: int, name: str) -> None:
        self._require(group_id)
        self.self_names.append((group_id, name))

    def set_self_status(self, group_id: int, status: Status) -> None:
        self._require(group_id)
        self.statuses.append((group_id, status))

    def send_message(self, group_id: int, text: str, message_type: MessageType) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((group_id, text, message_type))

    def send_private_message(self, group_id: int, peer_id: int, text: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.private_sent.append((group_id, peer_id, text))

    def leave(self, group_id: int, part_message: str) -> None:
        self.left.append((group_id, part_message))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def protocol() -> FakeProtocol:
    p = FakeProtocol()
    p.self_peers[GROUP] = PeerInfo(peer_id=SELF_ID, name="me", public_key=SELF_KEY)
    return p


@pytest.fixture
def dispatcher(protocol: FakeProtocol, clock: FakeClock) -> GroupEventDispatcher:
    d = GroupEventDispatcher(ClientRuntimeConfig(), protocol, clock=clock)
    d.open_session(GROUP, join_type=JoinType.JOIN)
    return d
