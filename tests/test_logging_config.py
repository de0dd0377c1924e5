import logging

from routercam.logging_config import LOGGER_NAME, setup_logging


def test_setup_is_idempotent():
    setup_logging(logging.INFO)
    setup_logging(logging.INFO)
    logger = logging.getLogger(LOGGER_NAME)
    assert len(logger.handlers) == 1
    assert logger.level == logging.INFO


def test_log_file_receives_records(tmp_path):
    path = tmp_path / "routercam.log"
    setup_logging(logging.DEBUG, str(path))
    logging.getLogger(f"{LOGGER_NAME}.core.job").info("pipeline started")
    for handler in logging.getLogger(LOGGER_NAME).handlers:
        handler.flush()
    text = path.read_text()
    assert "Logging initialized" in text
    assert "routercam.core.job - INFO - pipeline started" in text
