"""
Logging configuration for cloudapi.

The library itself only obtains loggers via get_logger(); it never installs
handlers. Applications (and the cloudapi CLI) call setup_logging() once to
get:
    - Console: colored, tqdm-compatible output (INFO by default)
    - Optional log file: complete log with timestamps (DEBUG and above)

Usage:
    from cloudapi.core.logger import setup_logging, get_logger

    setup_logging("DEBUG", log_file=Path("cloudapi.log"))
    logger = get_logger(__name__)

    logger.info("Logged in")
"""

import logging
import sys
from pathlib import Path
from typing import TextIO

import colorama
from colorama import Fore, Style
from tqdm import tqdm


# Name of the package logger all module loggers hang off
ROOT_LOGGER_NAME = "cloudapi"

# Log format for file output (detailed with timestamp)
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that adds colors to console output.

    Colors:
        - DEBUG: Blue
        - INFO: Green
        - WARNING: Yellow
        - ERROR: Red
        - CRITICAL: Bold Red
    """

    LEVEL_COLORS = {
        logging.DEBUG: Fore.BLUE,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Style.BRIGHT + Fore.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Fore.WHITE)
        message = f"{color}{record.levelname}{Style.RESET_ALL}: {record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


class TqdmLoggingHandler(logging.Handler):
    """
    Logging handler that writes to console without breaking tqdm progress bars.

    Upload progress is drawn with tqdm, which redraws its bar in place on
    stderr. Plain stream handlers would tear the bar apart; tqdm.write()
    prints the message above any active bar instead.

    Attributes:
        stream: The output stream (defaults to sys.stderr).
    """

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            tqdm.write(msg, file=self.stream)
        except Exception:
            self.handleError(record)


def setup_logging(level: str | int = "INFO", log_file: Path | None = None) -> None:
    """
    Configure the cloudapi logger.

    Should be called once at application startup. Calling it again
    replaces the handlers installed by the previous call.

    Args:
        level: Console level, as a name ("DEBUG") or a logging constant.
        log_file: Optional path of a log file that receives everything at
                  DEBUG and above. Parent directories are created.

    Raises:
        ValueError: If level is not a known logging level name.
    """
    if isinstance(level, str):
        numeric_level = logging.getLevelName(level.upper())
        if not isinstance(numeric_level, int):
            raise ValueError(f"Unknown log level: {level}")
    else:
        numeric_level = level

    colorama.just_fix_windows_console()

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    shutdown_logging()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(ColoredConsoleFormatter())
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
        logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: The logger name, typically __name__ of the calling module.
              This creates a hierarchy like 'cloudapi.api.client'.

    Returns:
        logging.Logger: A logger that inherits the handlers installed by setup_logging().

    Note:
        Loggers obtained before setup_logging() is called still work; their
        records simply go wherever the host application routes them.
    """
    return logging.getLogger(name)


def shutdown_logging() -> None:
    """
    Flush, close and remove all handlers of the cloudapi logger.

    Safe to call multiple times.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.flush()
        handler.close()
        logger.removeHandler(handler)
