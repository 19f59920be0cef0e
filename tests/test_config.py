from grouproster.config import (
    ClientRuntimeConfig,
    apply_config_data,
    load_config,
    write_default_config,
)


def test_apply_config_data_reads_client_and_logging_tables() -> None:
    data = {
        "client": {"max_sessions": 8, "show_connection_msgs": False},
        "logging": {"level": "DEBUG", "file": ""},
        "unknown_key": 1,
    }

    cfg = apply_config_data(ClientRuntimeConfig(), data)

    assert cfg.max_sessions == 8
    assert cfg.show_connection_msgs is False
    assert cfg.log_level == "DEBUG"
    assert cfg.log_file is None


def test_config_path_cannot_be_overridden() -> None:
    base = ClientRuntimeConfig(config_path="/a.toml")

    cfg = apply_config_data(base, {"config_path": "/b.toml"})

    assert cfg.config_path == "/a.toml"


def test_load_config_missing_file_keeps_defaults(tmp_path) -> None:
    path = tmp_path / "missing.toml"

    cfg = load_config(str(path))

    assert cfg.config_path == str(path)
    assert cfg.max_sessions == ClientRuntimeConfig().max_sessions


def test_default_config_round_trips_through_loader(tmp_path) -> None:
    path = tmp_path / "nested" / "grouproster.toml"
    written = ClientRuntimeConfig(max_sessions=5, join_grace_period_s=10.0, log_level="WARNING")

    write_default_config(str(path), written)
    cfg = load_config(str(path))

    assert path.exists()
    assert cfg.max_sessions == 5
    assert cfg.join_grace_period_s == 10.0
    assert cfg.log_level == "WARNING"
    assert cfg.log_file is None
    assert cfg.log_datefmt is None
