"""Peer roster for one group session.

The roster is a list of slots. An exit clears the slot in place, re-sorts
(tombstones sort last) and then trims inactive slots from the tail, so capacity
is one past the highest active index right after an exit. No tombstone survives
a public call, so a join either refreshes the active slot for its peer id or
grows the list by exactly one; freed slots are reused through that compaction.
Every mutation re-sorts the slots and rebuilds the name cache before returning.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from .constants import MAX_NAME_BYTES
from .errors import AllocationFailure
from .models import Peer, Resolution, Role, Status
from .util import clean_name, fmt_key


class PeerRoster:
    """Growable collection of peer records with a derived, sorted name cache."""

    def __init__(self, *, max_slots: int = 0, max_name_bytes: int = MAX_NAME_BYTES) -> None:
        self.log = logging.getLogger("grouproster.roster")
        self.max_slots = int(max_slots)
        self.max_name_bytes = int(max_name_bytes)
        self.peer_count = 0
        self._slots: list[Peer] = []
        self._names: tuple[str, ...] = ()

    @property
    def capacity(self) -> int:
        return len(self._slots)

    @property
    def names(self) -> tuple[str, ...]:
        """Display names of active peers in roster order."""
        return self._names

    def slots(self) -> tuple[Peer, ...]:
        """Copies of every slot, tombstones included."""
        return tuple(replace(p) for p in self._slots)

    def active_peers(self) -> list[Peer]:
        return [p for p in self._slots if p.active]

    def _find_index(self, peer_id: int) -> int:
        for i, p in enumerate(self._slots):
            if p.active and p.peer_id == peer_id:
                return i
        return -1

    def find_by_peer_id(self, peer_id: int) -> Peer | None:
        idx = self._find_index(peer_id)
        return self._slots[idx] if idx >= 0 else None

    def find_by_public_key(self, public_key: bytes) -> Peer | None:
        for p in self._slots:
            if p.active and p.public_key == public_key:
                return p
        return None

    def find_by_nick(self, nick: str | None) -> Resolution:
        """Exact, case-sensitive nickname lookup over active peers."""
        if not nick:
            return Resolution.not_found()

        match: int | None = None
        for p in self._slots:
            if not p.active or p.name != nick:
                continue
            if match is not None:
                return Resolution.ambiguous()
            match = p.peer_id

        return Resolution.found(match) if match is not None else Resolution.not_found()

    def join(
        self,
        peer_id: int,
        name: str,
        public_key: bytes,
        status: Status,
        role: Role,
        *,
        now: float,
        is_ignored: bool = False,
    ) -> Peer:
        """Add or refresh an active peer and return its live record.

        Raises AllocationFailure if a new slot is needed and cannot be had; the
        roster is left untouched in that case.
        """
        clean = clean_name(name, self.max_name_bytes)
        record = Peer(
            peer_id=int(peer_id),
            public_key=bytes(public_key),
            name=clean,
            previous_name=clean,
            status=Status(status),
            role=Role(role),
            active=True,
            is_ignored=bool(is_ignored),
            last_active=float(now),
        )

        idx = self._find_index(record.peer_id)
        if idx >= 0:
            self.log.debug("Join for active peer_id=%s; refreshing record", record.peer_id)
            self._slots[idx] = record
        else:
            if self.max_slots > 0 and len(self._slots) >= self.max_slots:
                raise AllocationFailure(f"roster is full ({len(self._slots)} slots)")
            try:
                self._slots.append(record)
            except MemoryError as e:
                raise AllocationFailure("out of memory growing roster") from e

        self._recount()
        self.rebuild_name_cache()
        self.log.debug(
            "Peer joined peer_id=%s key=%s count=%s capacity=%s",
            record.peer_id,
            fmt_key(record.public_key),
            self.peer_count,
            self.capacity,
        )
        return record

    def remove(self, peer_id: int) -> Peer | None:
        """Tombstone a peer and compact from the tail. Returns the removed record."""
        idx = self._find_index(peer_id)
        if idx < 0:
            return None

        removed = self._slots[idx]
        self._slots[idx] = Peer()
        self.rebuild_name_cache()

        while self._slots and not self._slots[-1].active:
            self._slots.pop()

        self._recount()
        return removed

    def rename(self, peer_id: int, new_name: str, *, now: float) -> tuple[str, str] | None:
        """Set a new display name. Returns (old, new) or None for unknown peers."""
        peer = self.find_by_peer_id(peer_id)
        if peer is None:
            return None

        old = peer.name
        peer.previous_name = old
        peer.name = clean_name(new_name, self.max_name_bytes)
        peer.last_active = float(now)
        self.rebuild_name_cache()
        return old, peer.name

    def set_role(self, peer_id: int, role: Role) -> bool:
        peer = self.find_by_peer_id(peer_id)
        if peer is None:
            return False
        peer.role = Role(role)
        self.rebuild_name_cache()
        return True

    def set_status(self, peer_id: int, status: Status, *, now: float) -> bool:
        peer = self.find_by_peer_id(peer_id)
        if peer is None:
            return False
        peer.status = Status(status)
        peer.last_active = float(now)
        return True

    def set_ignored(self, peer_id: int, ignored: bool) -> Peer | None:
        peer = self.find_by_peer_id(peer_id)
        if peer is not None:
            peer.is_ignored = bool(ignored)
        return peer

    def touch(self, peer_id: int, *, now: float) -> bool:
        peer = self.find_by_peer_id(peer_id)
        if peer is None:
            return False
        peer.last_active = float(now)
        return True

    def sort(self) -> None:
        """Order by role (founder first), then case-insensitive name. Stable."""
        self._slots.sort(key=Peer.sort_key)

    def rebuild_name_cache(self) -> None:
        self.sort()
        self._names = tuple(p.name for p in self._slots if p.active)

    def clear(self) -> None:
        self._slots.clear()
        self.peer_count = 0
        self._names = ()

    def _recount(self) -> None:
        self.peer_count = sum(1 for p in self._slots if p.active)
