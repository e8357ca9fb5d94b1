import logging
import os
from logging.handlers import RotatingFileHandler, SysLogHandler
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler  # Keep Rich for console

from releasemirror.constants import (
    DEBUG_LOG_FORMAT,
    DEFAULT_SYSLOG_ADDRESS,
    INFO_LOG_FORMAT,
    LOG_DATE_FORMAT,
    LOG_FILE_BACKUP_COUNT,
    LOG_FILE_MAX_BYTES,
    LOG_FILE_NAME,
    LOG_LEVEL_ENV_VAR,
    LOGGER_NAME,
    SYSLOG_FORMAT,
)

logger = logging.getLogger(LOGGER_NAME)

# Kept module-level so reconfiguration can replace the previous handler
_file_handler: Optional[RotatingFileHandler] = None
_syslog_handler: Optional[SysLogHandler] = None


def _resolve_level(level_name: str) -> Optional[int]:
    level = getattr(logging, str(level_name).upper(), None)
    return level if isinstance(level, int) else None


def set_log_level(level_name: str) -> None:
    """
    Set the log level for the releasemirror logger and reconfigure all attached handlers.

    If `level_name` is not a valid logging level name (e.g., "DEBUG", "INFO"), the function logs a warning and leaves the current configuration unchanged.

    Console (Rich) handlers always use a message-only formatter. File handlers use
    INFO_LOG_FORMAT for INFO and above and DEBUG_LOG_FORMAT below INFO. The syslog
    handler keeps its own format.

    Parameters:
        level_name (str): Case-insensitive name of the desired logging level (e.g., "debug", "INFO").
    """
    level = _resolve_level(level_name)
    if level is None:
        logger.warning(f"Invalid log level name: {level_name}. Using current level.")
        return

    logger.setLevel(level)

    for handler in logger.handlers:
        handler.setLevel(level)

        if isinstance(handler, RichHandler):
            formatter = logging.Formatter("%(message)s")
        elif isinstance(handler, SysLogHandler):
            continue
        elif level >= logging.INFO:
            formatter = logging.Formatter(INFO_LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
        else:
            formatter = logging.Formatter(DEBUG_LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

        handler.setFormatter(formatter)

    logger.log(level, f"Log level set to {logging.getLevelName(level)}")


def add_file_logging(log_dir_path: Union[str, Path], level_name: str = "INFO") -> None:
    """
    Enable rotating file logging for the releasemirror logger.

    Creates the directory if necessary and attaches a RotatingFileHandler writing to
    `releasemirror.log` inside the provided directory. Invalid level names fall back
    to INFO. Existing file logging configured by this module is removed and closed
    before reconfiguring.
    """
    global _file_handler
    if _file_handler and _file_handler in logger.handlers:
        logger.removeHandler(_file_handler)
        _file_handler.close()

    log_dir = Path(log_dir_path)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    file_log_level = _resolve_level(level_name)
    if file_log_level is None:
        logger.warning(
            f"Invalid file log level name: {level_name}. Defaulting to INFO."
        )
        file_log_level = logging.INFO
    if file_log_level >= logging.INFO:
        file_formatter = logging.Formatter(INFO_LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    else:
        file_formatter = logging.Formatter(DEBUG_LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    _file_handler = RotatingFileHandler(
        log_file,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUP_COUNT,
        encoding="utf-8",
    )
    _file_handler.setFormatter(file_formatter)
    _file_handler.setLevel(file_log_level)

    logger.addHandler(_file_handler)
    logger.info(
        f"File logging enabled at {log_file} with level {logging.getLevelName(file_log_level)}"
    )


def add_syslog_logging(
    address: Union[str, tuple] = DEFAULT_SYSLOG_ADDRESS,
    facility: int = SysLogHandler.LOG_USER,
    level_name: str = "INFO",
) -> bool:
    """
    Attach a syslog handler so unattended mirror runs land in the system log.

    Parameters:
        address: Unix socket path (default `/dev/log`) or `(host, port)` tuple.
        facility: Syslog facility, USER by default.
        level_name: Minimum level forwarded to syslog.

    Returns:
        bool: `True` if the handler was attached, `False` if the syslog socket is unavailable.
    """
    global _syslog_handler
    if _syslog_handler and _syslog_handler in logger.handlers:
        logger.removeHandler(_syslog_handler)
        _syslog_handler.close()
        _syslog_handler = None

    try:
        handler = SysLogHandler(address=address, facility=facility)
    except OSError as e:
        logger.warning(f"Syslog unavailable at {address}: {e}")
        return False

    handler.setFormatter(logging.Formatter(SYSLOG_FORMAT))
    handler.setLevel(_resolve_level(level_name) or logging.INFO)
    logger.addHandler(handler)
    _syslog_handler = handler
    logger.debug(f"Syslog logging enabled at {address}")
    return True


def shutdown_logging() -> None:
    """Flush and close the file and syslog handlers, leaving the console handler in place."""
    global _file_handler, _syslog_handler
    for handler in (_file_handler, _syslog_handler):
        if handler is None:
            continue
        handler.flush()
        if handler in logger.handlers:
            logger.removeHandler(handler)
        handler.close()
    _file_handler = None
    _syslog_handler = None


def _initialize_logger() -> None:
    """
    Initialize the releasemirror logger with a console RichHandler and an initial log level.

    This removes any existing handlers, disables propagation to the root logger, and attaches a RichHandler configured for console output. The initial log level is read from the environment variable named by LOG_LEVEL_ENV_VAR (defaults to "INFO" if unset or invalid).
    """
    logger.propagate = False

    # Remove pre-existing handlers from previous imports (interactive sessions, tests)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    # stderr keeps stdout clean for JSON output
    console_handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        show_time=True,
        show_level=True,
        show_path=False,
        markup=False,
        log_time_format=LOG_DATE_FORMAT,
    )

    default_log_level = os.environ.get(LOG_LEVEL_ENV_VAR, "INFO").upper()
    initial_level = _resolve_level(default_log_level)
    if initial_level is None:
        logger.warning(
            f"Invalid {LOG_LEVEL_ENV_VAR}={default_log_level}; defaulting to INFO."
        )
        initial_level = logging.INFO

    console_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console_handler)

    logger.setLevel(initial_level)
    console_handler.setLevel(initial_level)


# Initialize the logger when the module is imported
_initialize_logger()
