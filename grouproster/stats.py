"""Event counters for the roster dispatcher."""

from __future__ import annotations

import threading
import time


class StatsManager:
    """
    Counts what the dispatcher has seen and done.

    Tracks counters for:
    - Events received and events dropped as stale
    - Joins, exits, renames and moderation events applied
    - Role resyncs triggered by unknown moderation targets
    - Ignore list changes
    - Allocation and send failures
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.started_wall_time = time.time()
        self.started_monotonic = time.monotonic()

        self._counters: dict[str, int] = {
            "events_in": 0,
            "events_stale": 0,
            "events_bad": 0,
            "joins": 0,
            "exits": 0,
            "renames": 0,
            "mod_events": 0,
            "role_resyncs": 0,
            "ignores_added": 0,
            "ignores_removed": 0,
            "alloc_failures": 0,
            "protocol_failures": 0,
            "send_failures": 0,
            "msgs_in": 0,
            "msgs_out": 0,
        }

    def inc(self, key: str, delta: int = 1) -> None:
        with self._lock:
            self._counters[key] = int(self._counters.get(key, 0)) + int(delta)

    def get(self, key: str) -> int:
        with self._lock:
            return int(self._counters.get(key, 0))

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counters)

    def format_stats(self, sessions: list[dict] | None = None) -> str:
        """Format current statistics as a human-readable string."""
        from . import __version__

        uptime_s = time.monotonic() - self.started_monotonic
        c = self.snapshot()

        lines: list[str] = []
        lines.append(f"grouproster {__version__} stats")
        lines.append(f"uptime_s={uptime_s:.1f}")
        if sessions is not None:
            lines.append(
                f"sessions={len(sessions)} peers={sum(s.get('peers', 0) for s in sessions)}"
            )
            for s in sessions:
                lines.append(
                    "  group={group_id} chat_id={chat_id} peers={peers} "
                    "capacity={capacity} ignored={ignored}".format(**s)
                )
        lines.append(
            "events: in={} stale={} bad={}".format(
                c.get("events_in", 0), c.get("events_stale", 0), c.get("events_bad", 0)
            )
        )
        lines.append(
            "roster: joins={} exits={} renames={} mod_events={} role_resyncs={}".format(
                c.get("joins", 0),
                c.get("exits", 0),
                c.get("renames", 0),
                c.get("mod_events", 0),
                c.get("role_resyncs", 0),
            )
        )
        lines.append(
            "ignore: added={} removed={}".format(
                c.get("ignores_added", 0), c.get("ignores_removed", 0)
            )
        )
        lines.append(
            "messages: in={} out={}".format(c.get("msgs_in", 0), c.get("msgs_out", 0))
        )
        lines.append(
            "failures: alloc={} protocol={} send={}".format(
                c.get("alloc_failures", 0),
                c.get("protocol_failures", 0),
                c.get("send_failures", 0),
            )
        )

        return "\n".join(lines)
