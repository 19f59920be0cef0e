from __future__ import annotations

import os
import tomllib
from dataclasses import asdict, dataclass, replace
from pathlib import Path

from .constants import (
    DEFAULT_MAX_IGNORED_KEYS,
    DEFAULT_MAX_SESSIONS,
    JOIN_GRACE_PERIOD_S,
    MAX_NAME_BYTES,
    MAX_PART_BYTES,
)
from .paths import ensure_private_dir


@dataclass(frozen=True)
class ClientRuntimeConfig:
    config_path: str | None = None
    max_sessions: int = DEFAULT_MAX_SESSIONS
    join_grace_period_s: float = JOIN_GRACE_PERIOD_S
    show_connection_msgs: bool = True
    max_roster_slots: int = 0
    max_ignored_keys: int = DEFAULT_MAX_IGNORED_KEYS
    max_name_bytes: int = MAX_NAME_BYTES
    max_part_bytes: int = MAX_PART_BYTES
    log_level: str = "INFO"
    log_console: bool = True
    log_file: str | None = None
    log_format: str = "%(asctime)s %(levelname)s %(name)s[%(threadName)s]: %(message)s"
    log_datefmt: str | None = None


_LOGGING_KEYS = {
    "level": "log_level",
    "console": "log_console",
    "file": "log_file",
    "format": "log_format",
    "datefmt": "log_datefmt",
}


def load_toml(path: str) -> dict:
    with open(path, "rb") as f:
        data = tomllib.load(f)
    return data if isinstance(data, dict) else {}


def apply_config_data(base: ClientRuntimeConfig, data: dict) -> ClientRuntimeConfig:
    """Overlay a parsed TOML document on `base`.

    Keys may sit at top level or under [client]; [logging] uses short names
    (level, file, ...) for the log_* fields. Unknown keys are ignored.
    """
    client = data.get("client") if isinstance(data, dict) else None
    if isinstance(client, dict):
        data = {**data, **client}

    log_table = data.get("logging") if isinstance(data, dict) else None
    if isinstance(log_table, dict):
        mapped = {_LOGGING_KEYS[k]: v for k, v in log_table.items() if k in _LOGGING_KEYS}
        data = {**data, **mapped}

    allowed = set(asdict(base).keys())
    # This identifies where the config came from; do not let the file override it.
    allowed.discard("config_path")
    updates = {k: v for k, v in data.items() if k in allowed}

    for key in ("log_file", "log_datefmt"):
        if key in updates and updates[key] == "":
            updates[key] = None

    return replace(base, **updates) if updates else base


def load_config(path: str | None, base: ClientRuntimeConfig | None = None) -> ClientRuntimeConfig:
    cfg = base or ClientRuntimeConfig()
    if not path:
        return cfg
    cfg = replace(cfg, config_path=str(path))
    if not os.path.exists(path):
        return cfg
    return apply_config_data(cfg, load_toml(path))


def write_default_config(path: str, cfg: ClientRuntimeConfig | None = None) -> None:
    """Write a commented TOML config holding the values of `cfg`."""
    from tomlkit import comment, document, nl, table

    cfg = cfg or ClientRuntimeConfig()

    doc = document()
    doc.add(comment("grouproster configuration (TOML)"))
    doc.add(nl())

    client = table()
    client.add(comment("Maximum number of group sessions open at once."))
    client.add("max_sessions", cfg.max_sessions)
    client.add(comment("Join notices are suppressed for this long after connecting."))
    client.add("join_grace_period_s", cfg.join_grace_period_s)
    client.add("show_connection_msgs", cfg.show_connection_msgs)
    client.add(comment("Roster slot limit per session (0 = unlimited)."))
    client.add("max_roster_slots", cfg.max_roster_slots)
    client.add("max_ignored_keys", cfg.max_ignored_keys)
    client.add("max_name_bytes", cfg.max_name_bytes)
    client.add("max_part_bytes", cfg.max_part_bytes)
    doc.add("client", client)

    logging_tbl = table()
    logging_tbl.add("level", cfg.log_level)
    logging_tbl.add("console", cfg.log_console)
    logging_tbl.add(comment("Optional log file path (leave empty to disable)."))
    logging_tbl.add("file", cfg.log_file or "")
    logging_tbl.add("format", cfg.log_format)
    logging_tbl.add("datefmt", cfg.log_datefmt or "")
    doc.add("logging", logging_tbl)

    parent = Path(path).parent
    if str(parent):
        ensure_private_dir(parent)

    with open(path, "w", encoding="utf-8") as f:
        f.write(doc.as_string())
