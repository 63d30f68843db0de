"""
Centralized logging configuration for the ticket engine.

Every module logs through structlog. Order submissions are audit logged:
exchange payloads are rendered as the dict that goes on the wire and wallet
addresses are shortened before the event reaches a handler.
"""
import logging
import sys
from typing import Any, Optional

import orjson
import structlog
from structlog.types import EventDict, FilteringBoundLogger, WrappedLogger

_ADDRESS_KEYS = frozenset({"address", "destination", "validator"})


def render_wire_payloads(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Replace exchange payload objects with their wire dicts."""
    for key, value in list(event_dict.items()):
        to_wire = getattr(value, "to_wire", None)
        if callable(to_wire):
            event_dict[key] = to_wire()
    return event_dict


def shorten_addresses(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Log wallet addresses as 0x1234...abcd."""
    for key in _ADDRESS_KEYS & event_dict.keys():
        value = event_dict[key]
        if isinstance(value, str) and value.startswith("0x") and len(value) > 12:
            event_dict[key] = f"{value[:6]}...{value[-4:]}"
    return event_dict


def _orjson_dumps(obj: Any, **kwargs: Any) -> str:
    return orjson.dumps(obj, default=kwargs.get("default")).decode()


def configure_logging(
    level: str = "INFO",
    format_json: bool = False,
    include_timestamp: bool = True,
    include_caller: bool = False,
    redact_addresses: bool = True,
    extra_processors: Optional[list] = None
) -> None:
    """
    Configure structlog for the engine and the application embedding it.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_json: Render events as JSON (orjson); otherwise console output
        include_timestamp: Add an ISO timestamp to every event
        include_caller: Add filename and line number
        redact_addresses: Shorten wallet addresses in address fields
        extra_processors: Additional structlog processors, run before rendering
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        stream=sys.stdout,
        format="%(message)s"
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        render_wire_payloads,
    ]

    if redact_addresses:
        processors.append(shorten_addresses)

    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))

    if include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder(
            parameters=[structlog.processors.CallsiteParameter.FILENAME,
                        structlog.processors.CallsiteParameter.LINENO]
        ))

    if extra_processors:
        processors.extend(extra_processors)

    if format_json:
        processors.append(structlog.processors.JSONRenderer(serializer=_orjson_dumps))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    """Logger for a module, typically called with __name__."""
    return structlog.get_logger(name)


def get_order_logger(name: str) -> FilteringBoundLogger:
    """
    Get a logger bound for order construction and submission.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger for order flow events
    """
    logger = get_logger(name)

    return logger.bind(
        subsystem="order_flow",
        audit_trail=True
    )


def get_step_logger(name: str) -> FilteringBoundLogger:
    """
    Get a logger bound for transaction step transitions.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger for step machine events
    """
    logger = get_logger(name)

    return logger.bind(
        subsystem="transaction_steps",
        audit_trail=True
    )


def log_validation_decision(
    logger: FilteringBoundLogger,
    check: str,
    passed: bool,
    action: str,
    reason: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log a user-input validation decision with standardized format.

    Args:
        logger: Structlog logger instance
        check: Name of the validation check
        passed: Whether the check passed
        action: Name of the action being validated
        reason: Detailed reason for the decision
        context: Additional context data
    """
    bound_logger = logger.bind(
        check=check,
        check_result="PASS" if passed else "FAIL",
        action=action,
        reason=reason,
        event="validation_decision"
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    if passed:
        bound_logger.info("Validation passed")
    else:
        bound_logger.warning("Validation failed")


def log_step_transition(
    logger: FilteringBoundLogger,
    action: str,
    from_step: str,
    to_step: str,
    trigger: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log a transaction step transition with standardized format.

    Args:
        logger: Structlog logger instance
        action: Name of the action whose modal is transitioning
        from_step: Current step
        to_step: Target step
        trigger: What triggered the transition
        context: Additional context data
    """
    bound_logger = logger.bind(
        action=action,
        from_step=from_step,
        to_step=to_step,
        trigger=trigger,
        event="step_transition"
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    bound_logger.info("Step transition")
