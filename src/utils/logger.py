"""
Logging Module for the NFT Market-Making Bot

Provides structured logging with:
- Rotating file handlers for unattended operation
- JSON formatting for log aggregation
- Plain text console output for the operator
- Helpers for order decisions and errors with context

Usage:
    logger = get_logger(__name__)
    logger.info("Listing created", extra={'token_id': '42', 'price_eth': '0.5'})
"""

import logging
import logging.handlers
import os
import sys
import json
from datetime import datetime, timezone
from typing import Optional

from config.constants import (
    LOG_LEVEL,
    LOG_FILE_PATH,
    MAX_LOG_FILE_SIZE,
    LOG_BACKUP_COUNT,
    STRUCTURED_LOGGING,
)


# Attributes every LogRecord carries; anything else came in through `extra`
_RESERVED_RECORD_FIELDS = frozenset({
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'message', 'pathname', 'process', 'processName', 'relativeCreated',
    'thread', 'threadName', 'exc_info', 'exc_text', 'stack_info',
    'getMessage', 'taskName', 'asctime',
})


class JSONFormatter(logging.Formatter):
    """Formatter that outputs one JSON document per record"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line_number': record.lineno,
            'process_id': record.process,
        }

        if record.exc_info and record.exc_info[0] is not None:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': self.formatException(record.exc_info),
            }

        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_FIELDS:
                continue
            if isinstance(value, (str, int, float, bool, type(None), dict, list)):
                log_data[key] = value

        return json.dumps(log_data, default=str)


class PlainTextFormatter(logging.Formatter):
    """Readable single-line formatter for the console"""

    def format(self, record: logging.LogRecord) -> str:
        record.asctime = self.formatTime(record, self.datefmt)
        line = (
            f"{record.asctime} | {record.levelname:8} | "
            f"{record.name}:{record.funcName}:{record.lineno} | "
            f"{record.getMessage()}"
        )
        if record.exc_info:
            return f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    structured: Optional[bool] = None
) -> None:
    """
    Configure logging for the bot.

    Sets up:
    - Console handler: plain text for operator visibility
    - File handler: rotating files so long runs do not fill the disk
    - JSON formatting on the file handler when structured logging is on

    Args:
        log_level: Level override (DEBUG, INFO, WARNING, ERROR, CRITICAL).
                   If None, uses LOG_LEVEL from constants
        log_file: Log file path override. If None, uses LOG_FILE_PATH
        structured: Use JSON formatting. If None, uses STRUCTURED_LOGGING

    Raises:
        ValueError: If an invalid log level is given
    """
    level = (log_level or LOG_LEVEL).upper()
    filepath = log_file or LOG_FILE_PATH
    use_json = structured if structured is not None else STRUCTURED_LOGGING

    valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
    if level not in valid_levels:
        raise ValueError(f"Invalid log level: {level}. Must be one of {valid_levels}")

    log_dir = os.path.dirname(filepath)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level))
    root_logger.handlers.clear()

    # ========================================================================
    # CONSOLE HANDLER
    # ========================================================================
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level))
    console_handler.setFormatter(PlainTextFormatter(datefmt='%Y-%m-%d %H:%M:%S'))
    root_logger.addHandler(console_handler)

    # ========================================================================
    # FILE HANDLER
    # ========================================================================
    file_handler = logging.handlers.RotatingFileHandler(
        filepath,
        maxBytes=MAX_LOG_FILE_SIZE,
        backupCount=LOG_BACKUP_COUNT
    )
    file_handler.setLevel(getattr(logging, level))
    if use_json:
        file_handler.setFormatter(JSONFormatter())
    else:
        file_handler.setFormatter(PlainTextFormatter(datefmt='%Y-%m-%d %H:%M:%S'))
    root_logger.addHandler(file_handler)

    get_logger(__name__).info(
        "Logging initialized",
        extra={
            'log_level': level,
            'log_file': filepath,
            'max_size_mb': MAX_LOG_FILE_SIZE // (1024 * 1024),
            'backup_count': LOG_BACKUP_COUNT,
            'structured_logging': use_json,
        }
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Logger name (typically __name__ from calling module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_order_event(
    logger: logging.Logger,
    event_type: str,
    **details
) -> None:
    """
    Log an order lifecycle event with structured information.

    Args:
        logger: Logger instance
        event_type: Event name (LISTING_CREATED, OFFER_CREATED, OFFERS_CANCELLED, ...)
        **details: Event details (chain, token_id, price_eth, order_hash, ...)

    Example:
        log_order_event(
            logger, 'LISTING_CREATED',
            chain='ethereum', token_id='42', price_eth='0.499'
        )
    """
    details['event_type'] = event_type
    logger.info(f"Order event: {event_type}", extra=details)


def log_error_with_context(
    logger: logging.Logger,
    message: str,
    error: Exception,
    **context
) -> None:
    """
    Log an error with full context and exception details.

    Args:
        logger: Logger instance
        message: Error description
        error: The exception that occurred
        **context: Additional context information
    """
    context['error_type'] = type(error).__name__
    context['error_message'] = str(error)
    logger.error(message, exc_info=error, extra=context)
