"""Per-session set of ignored public keys."""

from __future__ import annotations

import logging
from collections.abc import Iterator

from .constants import DEFAULT_MAX_IGNORED_KEYS
from .util import fmt_key


class IgnoreList:
    """
    Ordered collection of public keys whose traffic the user suppresses.

    Entries are independent of roster membership: a key stays ignored while its
    peer is offline and is re-applied when the same key joins again. Order has
    no meaning, so removal swaps the last entry into the freed position.
    """

    def __init__(self, *, max_entries: int = DEFAULT_MAX_IGNORED_KEYS) -> None:
        self.log = logging.getLogger("grouproster.ignore")
        self.max_entries = int(max_entries)
        self._keys: list[bytes] = []

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[bytes]:
        return iter(list(self._keys))

    def __contains__(self, key: object) -> bool:
        return isinstance(key, (bytes, bytearray)) and self.is_ignored(bytes(key))

    def is_ignored(self, public_key: bytes) -> bool:
        for k in self._keys:
            if k == public_key:
                return True
        return False

    def add(self, public_key: bytes) -> bool:
        """Add a key if absent. Returns False only when the list cannot grow."""
        key = bytes(public_key)
        if self.is_ignored(key):
            return True

        if self.max_entries > 0 and len(self._keys) >= self.max_entries:
            self.log.warning(
                "Ignore list full (%s entries); cannot add key=%s",
                len(self._keys),
                fmt_key(key),
            )
            return False

        try:
            self._keys.append(key)
        except MemoryError:
            return False
        return True

    def remove(self, public_key: bytes) -> bool:
        """Remove a key. Returns False if it was not present."""
        key = bytes(public_key)
        idx = -1
        for i, k in enumerate(self._keys):
            if k == key:
                idx = i
                break

        if idx == -1:
            self.log.debug("Key not found in ignore list key=%s", fmt_key(key))
            return False

        last = self._keys.pop()
        if idx < len(self._keys):
            self._keys[idx] = last
        return True

    def clear(self) -> None:
        self._keys.clear()
