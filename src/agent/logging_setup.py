"""
Logging setup shared by the fleet entry points
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)-8s] %(message)s"

# Rotating log: max 5 MB per file, keep 3 backups
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 3


def configure_logging(debug=False, log_file=None):
    """
    Configure the root logger.
    Console output goes to stderr so the fleet agent captures it with the
    script result; the file log is optional.
    """
    handlers = []

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
    handlers.append(console)

    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                str(log_file), maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
            )
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
            handlers.append(file_handler)
        except OSError as e:
            print(f"Could not open log file {log_file}: {e}", file=sys.stderr)

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        handlers=handlers,
        force=True,
    )
    return logging.getLogger("fleet")
