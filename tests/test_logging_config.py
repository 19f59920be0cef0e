import logging

from grouproster.config import ClientRuntimeConfig
from grouproster.logging_config import PACKAGE_LOGGER, configure_logging, level_from_name


def _reset() -> None:
    logger = logging.getLogger(PACKAGE_LOGGER)
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


def test_level_from_name() -> None:
    assert level_from_name("DEBUG") == logging.DEBUG
    assert level_from_name("warning") == logging.WARNING
    assert level_from_name("10") == 10
    assert level_from_name("bogus") == logging.INFO
    assert level_from_name(None) == logging.INFO
    assert level_from_name(logging.ERROR) == logging.ERROR


def test_file_handler_receives_package_loggers(tmp_path) -> None:
    log_path = tmp_path / "logs" / "roster.log"
    cfg = ClientRuntimeConfig(log_console=False, log_file=str(log_path))
    try:
        logger = configure_logging(cfg, override_level="DEBUG")
        logging.getLogger("grouproster.dispatch").debug("peer joined %s", 7)
        for h in logger.handlers:
            h.flush()

        assert logger.level == logging.DEBUG
        assert logger.propagate is False
        assert logger is not logging.getLogger()
        assert "peer joined 7" in log_path.read_text(encoding="utf-8")
    finally:
        _reset()


def test_empty_override_file_disables_file_logging(tmp_path) -> None:
    cfg = ClientRuntimeConfig(log_console=True, log_file=str(tmp_path / "x.log"))
    try:
        logger = configure_logging(cfg, override_file="")

        assert len(logger.handlers) == 1
        assert not any(isinstance(h, logging.FileHandler) for h in logger.handlers)
        assert not (tmp_path / "x.log").exists()
    finally:
        _reset()


def test_second_call_replaces_handlers() -> None:
    cfg = ClientRuntimeConfig(log_console=True, log_level="WARNING")
    try:
        first = configure_logging(cfg)
        old = list(first.handlers)
        second = configure_logging(cfg, console_format="%(message)s")

        assert second is first
        assert len(second.handlers) == 1
        assert second.handlers[0] not in old
        assert second.handlers[0].formatter._fmt == "%(message)s"
        assert second.level == logging.WARNING
    finally:
        _reset()


def test_no_handlers_falls_back_to_propagation() -> None:
    cfg = ClientRuntimeConfig(log_console=False, log_file=None)
    try:
        logger = configure_logging(cfg)

        assert logger.handlers == []
        assert logger.propagate is True
    finally:
        _reset()
