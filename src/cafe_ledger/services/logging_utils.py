"""Service layer logging utilities.

Provides structured logging functions for ledger operations, enabling
consistent log format and context across batch, FIFO and returns services.

Usage:
    from cafe_ledger.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    log_operation(
        logger,
        operation="deduct",
        outcome="success",
        product_id=7,
        consumed="12.000",
    )
"""

import logging
from typing import Any


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger named 'cafe_ledger.services.<module>'

    Example:
        >>> logger = get_service_logger("cafe_ledger.services.fifo_service")
        >>> logger.name
        'cafe_ledger.services.fifo_service'
    """
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"cafe_ledger.services.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    The context is passed via the 'extra' parameter for structured logging.

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "deduct", "process_return")
        outcome: Outcome description (e.g., "success", "insufficient_stock")
        level: Log level (default: INFO)
        **context: Additional context fields (entity IDs, totals, error details)
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    logger.log(level, f"{operation}: {outcome}", extra=extra)
