"""
Structured Logger Module

Configures structlog for JSON-formatted structured logging with correlation IDs.
Every pipeline component logs through this module so a backfill run or a
recommendation request can be traced end to end.

Example Usage:
    from research_match.utils.logger import get_logger

    logger = get_logger(
        correlation_id="backfill-summary-2f1c",
        phase="backfill",
        component="backfill_scheduler",
    )

    logger.info("Backfill started", kind="summary", candidates=42)
    logger.warning("Candidate failed, skipping", opportunity_id="opp-17")
    logger.error("LLM call failed", error="Timeout after 30s")

Log Levels:
    - DEBUG: Prompt/response sizes, per-candidate scores
    - INFO: Run start/finish, counts, profile extraction complete
    - WARNING: Out-of-vocabulary tags dropped, fallbacks used, skipped candidates
    - ERROR: Failed LLM calls, schema violations, failed writes
    - CRITICAL: Missing configuration that stops the pipeline
"""

import logging
import sys
import uuid
from pathlib import Path
from typing import Optional

import structlog
from structlog.types import BindableLogger, EventDict, WrappedLogger


def mask_credentials(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Processor to mask sensitive credentials in log output.

    Args:
        logger: Logger instance
        method_name: Logging method name
        event_dict: Event dictionary to process

    Returns:
        Event dictionary with masked credentials

    Masks:
        - api_key, token, secret, credential, password, auth fields
        - Replaces values with "***MASKED***"
        - Uses word boundary matching to avoid false positives
          (e.g. "max_output_tokens" is not masked, "access_token" is)
    """
    sensitive_fields = {"password", "api_key", "token", "secret", "credential", "auth"}

    for key in list(event_dict.keys()):
        key_lower = key.lower()
        for sensitive in sensitive_fields:
            if (
                key_lower == sensitive
                or key_lower.endswith(f"_{sensitive}")
                or key_lower.endswith(f"-{sensitive}")
                or key_lower.startswith(f"{sensitive}_")
                or key_lower.startswith(f"{sensitive}-")
            ):
                event_dict[key] = "***MASKED***"
                break

    return event_dict


def configure_logging(
    log_file: Optional[str] = "logs/research-match.log", log_level: str = "INFO"
) -> None:
    """
    Configure structlog with JSON output and optional file logging.

    Args:
        log_file: Path to log file, or None to log to stdout only
        log_level: Logging level (default: "INFO")

    Log Format (JSON):
        {
            "timestamp": "2026-10-06T10:30:45Z",
            "level": "info",
            "correlation_id": "backfill-summary-2f1c",
            "phase": "backfill",
            "component": "backfill_scheduler",
            "event": "Backfill complete",
            "total": 42,
            "succeeded": 40
        }
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper()),
        handlers=handlers,
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            mask_credentials,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(
    correlation_id: Optional[str] = None,
    phase: Optional[str] = None,
    component: Optional[str] = None,
) -> BindableLogger:
    """
    Get structured logger with bound context.

    Args:
        correlation_id: Correlation ID for request tracing (generates UUID if not provided)
        phase: Pipeline phase (e.g., "backfill", "matching", "extraction")
        component: Component name (e.g., "discipline_tagger", "matching_engine")

    Returns:
        BoundLogger with correlation_id, phase, and component bound to context
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())

    logger = structlog.get_logger()

    if correlation_id:
        logger = logger.bind(correlation_id=correlation_id)
    if phase:
        logger = logger.bind(phase=phase)
    if component:
        logger = logger.bind(component=component)

    return logger


# Initialize logging on module import with default settings
configure_logging()
