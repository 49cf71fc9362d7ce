"""
Handles configuration of logging for the main process and for
batch conversion workers.
"""
import logging
import sys
import os
import io
from pathlib import Path
from datetime import datetime

LOGGER_NAME = "lexhtml"
# Define a consistent log directory
LOG_DIR = Path("./logs")
MAX_LOG_FILES = 20
CONSOLE_LOG_FORMAT = "%(levelname)s: %(message)s"
FILE_LOG_FORMAT = (
    "%(asctime)s [%(process)d] %(levelname)s - [%(module)s:%(lineno)d] - %(message)s"
)


def _rotate_logs(log_dir: Path, keep: int):
    """Removes the oldest log files so that at most `keep` - 1 remain."""
    logs = sorted(
        [p for p in log_dir.glob("lexhtml_*.log") if p.is_file()],
        key=os.path.getmtime,
    )
    files_to_remove = len(logs) - (keep - 1)
    if files_to_remove > 0:
        for log_file in logs[:files_to_remove]:
            try:
                log_file.unlink()
            except OSError:
                pass  # file may be locked by another run


def setup_main_logger(console_level=logging.ERROR, log_dir: Path | None = None):
    """
    Configures the package logger for the main application process.

    Console output goes to stdout at the specified level, and every record
    (DEBUG and up) goes to a new, unique log file. Old log files are rotated.
    """
    log_dir = log_dir or LOG_DIR
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Avoid adding duplicate handlers
    if logger.hasHandlers():
        logger.handlers.clear()

    # --- Console Handler ---
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_LOG_FORMAT))
    logger.addHandler(console_handler)

    # --- File Handler (Rotation and New File) ---
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        _rotate_logs(log_dir, MAX_LOG_FILES)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        new_log_path = log_dir / f"lexhtml_{timestamp}.log"

        file_handler = logging.FileHandler(new_log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(file_handler)

        logger.info(
            "Main logger initialized. Console level: %s, File level: DEBUG. Logging to: %s",
            logging.getLevelName(console_level),
            new_log_path,
        )
    except OSError:
        logger.error("Failed to set up file logging.", exc_info=True)


def setup_worker_logger():
    """
    Configures a temporary, in-memory logger for a worker process.

    Returns:
        tuple[io.StringIO, logging.Handler]:
            - The string buffer that will capture logs.
            - The handler attached to the logger.
    (Both must be closed by the caller)
    """
    log_stream = io.StringIO()

    handler = logging.StreamHandler(log_stream)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, datefmt="%H:%M:%S"))

    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()  # Remove any handlers inherited from parent
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)

    return log_stream, handler
