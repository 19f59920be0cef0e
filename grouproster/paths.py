from __future__ import annotations

import os
from pathlib import Path


def default_home_dir() -> Path:
    override = os.environ.get("GROUPROSTER_HOME")
    if override:
        return Path(override)
    return Path.home() / ".grouproster"


def default_config_path() -> Path:
    return default_home_dir() / "grouproster.toml"


def ensure_private_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)
    try:
        # Best-effort tightening; may fail on some filesystems.
        os.chmod(path, 0o700)
    except OSError:
        pass
