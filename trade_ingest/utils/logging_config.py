"""
Logging configuration for the trade ingester.
Provides consistent logging across all modules.

Every module logger lives under the "trade_ingest" hierarchy, writes to
stdout itself and does not propagate, so records are emitted once even when
the host application configures the root logger. File logging is attached
to each of these loggers directly for the same reason.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
ROOT_NAME = "trade_ingest"

_file_handlers: List[logging.Handler] = []


def _formatter() -> logging.Formatter:
    return logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)


def _attach(logger: logging.Logger, handler: logging.Handler) -> None:
    if handler not in logger.handlers:
        logger.addHandler(handler)
    if handler.level < logger.level:
        logger.setLevel(handler.level)


def _module_loggers() -> List[logging.Logger]:
    return [
        logger
        for name, logger in logging.Logger.manager.loggerDict.items()
        if name.startswith(f"{ROOT_NAME}.") and isinstance(logger, logging.Logger)
    ]


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (usually module name)
        level: Console logging level (default INFO)

    Returns:
        Logger named "trade_ingest.<name>"
    """
    logger = logging.getLogger(f"{ROOT_NAME}.{name}")

    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(_formatter())

        logger.addHandler(console_handler)
        logger.setLevel(level)
        logger.propagate = False

        for handler in _file_handlers:
            _attach(logger, handler)

    return logger


def setup_file_logging(log_dir: Optional[Path] = None, level: int = logging.DEBUG) -> Path:
    """
    Also write every trade_ingest logger to logs/trade_ingest.log.

    Loggers created later pick the file handler up as well.

    Args:
        log_dir: Directory for log files. If None, uses ./logs
        level: File logging level (default DEBUG)

    Returns:
        Path of the log file
    """
    if log_dir is None:
        log_dir = Path.cwd() / "logs"

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "trade_ingest.log"

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(level)
    file_handler.setFormatter(_formatter())
    _file_handlers.append(file_handler)

    for logger in _module_loggers():
        _attach(logger, file_handler)

    return log_file


def close_file_logging() -> None:
    """Detach and close every handler added by setup_file_logging."""
    for handler in _file_handlers:
        for logger in _module_loggers():
            logger.removeHandler(handler)
        handler.close()
    _file_handlers.clear()
