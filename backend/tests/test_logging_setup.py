import io
import logging

from live_transcriber.logging_setup import setup_logger


def test_setup_logger_is_idempotent():
    stream = io.StringIO()
    logger = setup_logger("live_transcriber.test_idempotent", stream=stream)
    setup_logger("live_transcriber.test_idempotent", level=logging.DEBUG, stream=stream)

    assert len(logger.handlers) == 1
    assert logger.level == logging.DEBUG

    logger.debug("window decoded")
    assert "live_transcriber.test_idempotent - DEBUG - window decoded" in stream.getvalue()
