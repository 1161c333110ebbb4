import logging
from pathlib import Path

from helpers.errors import (
    CollectionError,
    CollectionInProgressError,
    ConfigurationError,
    PersistenceError,
    SnapshotFetchError,
    TransientCollectionError,
)
from helpers.logger import setup_logger


def test_setup_logger(tmp_path: Path):
    log_file = tmp_path / "logs" / "collector.log"
    logger = setup_logger("structure_orders_test", logging.DEBUG, log_file)
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2

    logger.debug("hello %s", "there")
    for handler in logger.handlers:
        handler.flush()
    assert "DEBUG - hello there" in log_file.read_text()

    # Calling again doesn't stack handlers
    assert setup_logger("structure_orders_test") is logger
    assert len(logger.handlers) == 2

    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_error_hierarchy():
    assert issubclass(ConfigurationError, CollectionError)
    # Invalid settings are value errors too
    assert issubclass(ConfigurationError, ValueError)
    for error in (SnapshotFetchError, PersistenceError, CollectionInProgressError):
        assert issubclass(error, TransientCollectionError)
        assert not issubclass(error, ConfigurationError)

    assert SnapshotFetchError("boom").status_code is None
    assert SnapshotFetchError("boom", 502).status_code == 502
