"""
structlog configuration for the tracker's services and background jobs.

Production emits one JSON object per line; development renders the same
key/value events with structlog's console renderer.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory

SERVICE_NAME = "resume_tracker"


def setup_logging(log_level: str = "INFO", *, json_output: bool = True) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Render JSON lines instead of colored console output
    """
    renderer = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _add_service_context,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # psycopg pool chatter drowns out refresh job summaries
    for noisy in ("psycopg", "psycopg.pool"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _add_service_context(logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def log_state_transition(
    resume_id: str, previous_state: str | None, new_state: str, source: str = None
) -> None:
    """Log an engagement state change; entering ``expired`` is a warning."""
    logger = get_logger("engagement")

    fields: dict[str, Any] = {
        "resume_id": resume_id,
        "previous_state": previous_state,
        "new_state": new_state,
        "event_type": "state_transition",
    }
    if source:
        fields["source"] = source

    if new_state == "expired":
        logger.warning("Resume engagement expired", **fields)
    else:
        logger.info("Resume state changed", **fields)
