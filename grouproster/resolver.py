"""Map user-supplied identifiers to roster peer ids."""

from __future__ import annotations

from .models import Resolution
from .roster import PeerRoster
from .util import parse_public_key_hex


def resolve_public_key(roster: PeerRoster, identifier: str | None) -> Resolution:
    key = parse_public_key_hex(identifier)
    if key is None:
        return Resolution.not_found()
    peer = roster.find_by_public_key(key)
    return Resolution.found(peer.peer_id) if peer is not None else Resolution.not_found()


def resolve(roster: PeerRoster, identifier: str | None) -> Resolution:
    """Resolve a nickname or a hex public key.

    Keys are tried first: they cannot collide, while a nickname may happen to
    look like somebody's key.
    """
    if not identifier:
        return Resolution.not_found()

    by_key = resolve_public_key(roster, identifier)
    if by_key.ok:
        return by_key

    return roster.find_by_nick(identifier)
