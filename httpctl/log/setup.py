import sys
import logging
from typing import Optional

from httpctl.local.config import effective_settings as config

LOG_FORMAT = '%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s'


class MainFormatter(logging.Formatter):
    """Formats application records normally and passes child process output through raw."""

    def __init__(self) -> None:
        super().__init__(LOG_FORMAT)

    def format(self, record):
        # Lines pumped from a child process already carry their own formatting.
        if record.name.startswith('proc.'):
            return record.getMessage()
        return super().format(record)


def get_console_handler() -> Optional[logging.Handler]:
    """Returns the root logger's stdout handler, or None if logging is not set up."""
    for handler in logging.getLogger().handlers:
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            return handler
    return None


def setup_logging(console_level: int = logging.INFO) -> None:
    """
    Configures the root logger with a console handler and a file handler,
    clearing any previously configured handlers to prevent duplication.

    If the log file cannot be opened the application keeps running with
    console logging only.

    :param console_level: The logging level for the console output (e.g., logging.INFO).
    """
    root_logger = logging.getLogger()
    # Set root level to lowest to capture all messages for handler filtering
    root_logger.setLevel(logging.DEBUG)

    if root_logger.hasHandlers():
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()

    # --- Console Handler ---
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(MainFormatter())
    root_logger.addHandler(console_handler)

    # --- File Handler ---
    try:
        config.LOG_FILE_PATH.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(config.LOG_FILE_PATH, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(file_handler)
    except OSError as e:
        root_logger.error(f"Failed to initialize file logging handler: {e}. Logging to file will be disabled.")
