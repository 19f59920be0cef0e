import pytest

from grouproster.errors import AlreadyActive, NotFound, OutOfSlots
from grouproster.models import Role, Status
from grouproster.session import SessionRegistry

CHAT = bytes([0x42]) * 32


def test_create_and_lookup() -> None:
    reg = SessionRegistry(max_sessions=4)
    sess = reg.create(10, now=1.0, chat_id=CHAT, group_name="lobby")

    assert reg.lookup(10) is sess
    assert sess.connected_since == 1.0
    assert len(reg) == 1


def test_duplicate_group_is_rejected() -> None:
    reg = SessionRegistry()
    reg.create(10, now=0.0)

    with pytest.raises(AlreadyActive):
        reg.create(10, now=0.0)


def test_registry_full() -> None:
    reg = SessionRegistry(max_sessions=2)
    reg.create(1, now=0.0)
    reg.create(2, now=0.0)

    with pytest.raises(OutOfSlots):
        reg.create(3, now=0.0)


def test_bad_chat_id_length() -> None:
    reg = SessionRegistry()
    with pytest.raises(ValueError):
        reg.create(1, now=0.0, chat_id=b"short")


def test_lookup_unknown_group() -> None:
    reg = SessionRegistry()
    assert reg.get(5) is None
    with pytest.raises(NotFound):
        reg.lookup(5)


def test_lookup_by_chat_id_bytes_and_hex() -> None:
    reg = SessionRegistry()
    sess = reg.create(10, now=0.0, chat_id=CHAT)

    assert reg.lookup_by_chat_id(CHAT) is sess
    assert reg.lookup_by_chat_id(CHAT.hex()) is sess
    with pytest.raises(NotFound):
        reg.lookup_by_chat_id(bytes(32))
    with pytest.raises(NotFound):
        reg.lookup_by_chat_id("not-hex")


def test_close_reuses_slot_and_shrinks_scan_bound() -> None:
    reg = SessionRegistry(max_sessions=4)
    a = reg.create(1, now=0.0)
    b = reg.create(2, now=0.0)
    c = reg.create(3, now=0.0)
    assert reg.scan_bound == 3

    reg.close(c)
    assert reg.scan_bound == 2

    reg.close(a)
    assert reg.scan_bound == 2

    d = reg.create(4, now=0.0)
    assert reg._slots[0] is d
    assert list(reg) == [d, b]

    reg.close(b)
    reg.close(d)
    assert reg.scan_bound == 0
    assert len(reg) == 0


def test_close_releases_roster_and_ignore_list() -> None:
    reg = SessionRegistry()
    sess = reg.create(1, now=0.0)
    sess.roster.join(5, "x", bytes([5]) * 32, Status.NONE, Role.USER, now=0.0)
    sess.ignored.add(bytes([5]) * 32)

    reg.close(sess)

    assert sess.active is False
    assert sess.peer_count == 0
    assert len(sess.ignored) == 0
    assert reg.get(1) is None


def test_clear_all() -> None:
    reg = SessionRegistry()
    reg.create(1, now=0.0)
    reg.create(2, now=0.0)

    closed = reg.clear_all()

    assert [s.group_id for s in closed] == [1, 2]
    assert len(reg) == 0
