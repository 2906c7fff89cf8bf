import logging
import logging.handlers
import os
import sys

from modbus_sweep.constants import APP_NAME, LOG_BACKUP_COUNT, LOG_FORMAT, LOG_ROTATION_MINUTES

# Receives the rendered report, written to the log file only
TRANSCRIPT_LOGGER = f"{APP_NAME}.transcript"


def setup_logging(level: int = logging.INFO, log_file: str | None = None) -> logging.Logger:
    """Log to stderr and, if given, to a file rotated every 10 minutes.

    stdout is left to the report itself.
    """
    logger = logging.getLogger(APP_NAME)
    logger.setLevel(level)
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    logger.addHandler(console)

    transcript = logging.getLogger(TRANSCRIPT_LOGGER)
    transcript.handlers.clear()
    transcript.propagate = False
    transcript.setLevel(logging.INFO)

    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)

        handler = logging.handlers.TimedRotatingFileHandler(
            log_file,
            when="M",
            interval=LOG_ROTATION_MINUTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        transcript.addHandler(handler)
    else:
        transcript.addHandler(logging.NullHandler())

    # pymodbus is chatty about every failed transaction
    logging.getLogger("pymodbus").setLevel(logging.DEBUG if level <= logging.DEBUG else logging.WARNING)

    return logger


def write_transcript(text: str):
    """Copy a rendered report to the log file, if one is configured."""
    logging.getLogger(TRANSCRIPT_LOGGER).info("Scan report\n%s", text)
