"""Structured logging setup for chatblocks."""

import structlog
from pathlib import Path
from typing import Any
import os


def configure_logging(log_file: Path | None = None) -> None:
    """
    Configure structlog for JSON logging to ~/.cache/chatblocks/logs/chatblocks.log.

    Log level can be controlled via CHATBLOCKS_LOG_LEVEL environment variable:
    - Set to "DEBUG" to see parse/reconcile details and provider payloads
    - Defaults to "INFO" if not set

    Log levels:
    - DEBUG: Rule matches, reconcile edits, raw provider responses
    - INFO: Document loads/saves, state syncs, LLM request summary
    - WARNING: Rules that failed to compile or run, skipped blocks
    - ERROR: Edit application failures, HTTP errors

    Args:
        log_file: Optional override for the log file location

    Example:
        # Enable debug logging
        export CHATBLOCKS_LOG_LEVEL=DEBUG
        chatblocks send notes.chat

        # View logs with jq for readability:
        tail -f ~/.cache/chatblocks/logs/chatblocks.log | jq .
    """
    if log_file is None:
        log_dir = Path.home() / ".cache" / "chatblocks" / "logs"
        log_file = log_dir / "chatblocks.log"
    log_file.parent.mkdir(parents=True, exist_ok=True)

    log_level = os.environ.get("CHATBLOCKS_LOG_LEVEL", "INFO").upper()

    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR"]
    if log_level not in valid_levels:
        log_level = "INFO"

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.WriteLoggerFactory(file=open(log_file, "a")),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of calling module)

    Returns:
        Structured logger instance

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("state_synced", edits=2, path="notes.chat")
    """
    return structlog.get_logger(name)
