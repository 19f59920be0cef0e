from __future__ import annotations

import argparse
import os
import sys
from dataclasses import replace

from .codec import iter_decode
from .config import ClientRuntimeConfig, load_config, write_default_config
from .constants import K_GROUP, K_TS, PUBLIC_KEY_SIZE
from .dispatcher import GroupEventDispatcher
from .errors import RosterError
from .logging_config import REPLAY_CONSOLE_FORMAT, configure_logging
from .models import JoinType, PeerInfo, Role
from .notices import Notice, NoticeKind
from .paths import default_config_path
from .protocol import NullGroupProtocol
from .util import expand_path, parse_public_key_hex


class _ReplayClock:
    """Clock driven by the timestamps of the events being replayed."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance_to_ms(self, ts_ms: object) -> None:
        if isinstance(ts_ms, int) and not isinstance(ts_ms, bool):
            self.now = max(self.now, ts_ms / 1000.0)


def format_notice(n: Notice) -> str:
    prefix = f"[{n.group_id}]"
    if n.kind in (NoticeKind.IN_MSG, NoticeKind.OUT_MSG):
        line = f"{prefix} <{n.nick}> {n.text}"
    elif n.kind in (NoticeKind.IN_ACTION, NoticeKind.OUT_ACTION):
        line = f"{prefix} * {n.nick} {n.text}"
    elif n.kind in (NoticeKind.IN_PRIVATE, NoticeKind.OUT_PRIVATE):
        line = f"{prefix} {n.nick} {n.text}"
    elif n.kind in (NoticeKind.CONNECTION, NoticeKind.DISCONNECTION):
        line = f"{prefix} * {n.nick} {n.text}"
    elif n.kind == NoticeKind.NAME_CHANGE:
        line = f"{prefix} * {n.text}"
    else:
        line = f"{prefix} {n.text}"
    if n.mention:
        line += " (!)"
    return line


def _load_runtime_config(args: argparse.Namespace) -> ClientRuntimeConfig:
    config_path = expand_path(str(args.config))
    cfg = load_config(config_path)

    if args.log_level is not None:
        cfg = replace(cfg, log_level=str(args.log_level))
    if args.log_file is not None:
        cfg = replace(cfg, log_file=str(args.log_file) if str(args.log_file) else None)
    return cfg


def _cmd_init_config(args: argparse.Namespace) -> int:
    config_path = expand_path(str(args.config))
    if os.path.exists(config_path) and not args.force:
        print(f"Config already exists: {config_path}", file=sys.stderr)
        return 1
    write_default_config(config_path)
    print(f"Wrote default config to {config_path}", file=sys.stderr)
    return 0


def _cmd_replay(args: argparse.Namespace, cfg: ClientRuntimeConfig) -> int:
    if args.grace is not None:
        cfg = replace(cfg, join_grace_period_s=float(args.grace))

    self_key = bytes(PUBLIC_KEY_SIZE)
    if args.self_key:
        parsed = parse_public_key_hex(args.self_key)
        if parsed is None:
            print("--self-key must be a 64 character hex public key", file=sys.stderr)
            return 2
        self_key = parsed

    try:
        with open(args.events, "rb") as f:
            data = f.read()
    except OSError as e:
        print(f"Cannot read {args.events}: {e}", file=sys.stderr)
        return 1

    clock = _ReplayClock()
    protocol = NullGroupProtocol()
    dispatcher = GroupEventDispatcher(cfg, protocol, clock=clock)

    def ensure_session(group_id: int) -> None:
        if dispatcher.registry.get(group_id) is not None:
            return
        protocol.self_peers[group_id] = PeerInfo(
            peer_id=int(args.self_peer_id),
            name=str(args.self_name),
            public_key=self_key,
            role=Role[args.self_role.upper()],
        )
        for n in dispatcher.open_session(group_id, join_type=JoinType.JOIN):
            print(format_notice(n))

    count = 0
    try:
        for item in iter_decode(data):
            count += 1
            if isinstance(item, dict):
                clock.advance_to_ms(item.get(K_TS))
                group = item.get(K_GROUP)
                if isinstance(group, int) and not isinstance(group, bool):
                    try:
                        ensure_session(group)
                    except RosterError as e:
                        print(f"Cannot open session for group {group}: {e}", file=sys.stderr)
            for n in dispatcher.dispatch_envelope(item):
                print(format_notice(n))
    except (ValueError, EOFError) as e:
        # cbor2 decode errors derive from ValueError
        print(f"Event stream truncated after {count} item(s): {e}", file=sys.stderr)

    for sess in dispatcher.registry:
        snap = dispatcher.roster_snapshot(sess.group_id)
        title = sess.group_name or "-"
        print(f"group {snap.group_id} ({title}) topic={sess.topic!r} peers={snap.peer_count}")
        for name in snap.names:
            print(f"  {name}")

    if args.stats:
        print(dispatcher.format_stats())
    return 0


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="grouproster", description="Group chat roster and event tooling"
    )

    p.add_argument(
        "--config",
        default=str(default_config_path()),
        help="Path to a TOML config file",
    )
    p.add_argument(
        "--log-level",
        default=None,
        help="Logging level override (DEBUG, INFO, WARNING, ERROR). Default comes from config.",
    )
    p.add_argument(
        "--log-file",
        default=None,
        help="Log file path override (empty disables file logging). Default comes from config.",
    )

    sub = p.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init-config", help="Write a default config file")
    init.add_argument("--force", action="store_true", help="Overwrite an existing file")

    replay = sub.add_parser("replay", help="Replay a recorded CBOR event stream")
    replay.add_argument("events", help="File holding concatenated CBOR event envelopes")
    replay.add_argument("--self-peer-id", type=int, default=0, help="Local peer id")
    replay.add_argument("--self-name", default="me", help="Local nickname")
    replay.add_argument("--self-key", default=None, help="Local public key (hex)")
    replay.add_argument(
        "--self-role",
        default="user",
        choices=[r.name.lower() for r in Role],
        help="Local role",
    )
    replay.add_argument(
        "--grace",
        type=float,
        default=None,
        help="Join notice grace period seconds (default comes from config)",
    )
    replay.add_argument("--stats", action="store_true", help="Print counters at the end")

    return p


def main(argv: list[str] | None = None) -> None:
    args = _build_arg_parser().parse_args(sys.argv[1:] if argv is None else argv)

    if args.command == "init-config":
        raise SystemExit(_cmd_init_config(args))

    cfg = _load_runtime_config(args)
    configure_logging(cfg, console_format=REPLAY_CONSOLE_FORMAT)

    raise SystemExit(_cmd_replay(args, cfg))


if __name__ == "__main__":
    main()
