"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling
consistent log format and context across consumption, delivery, pricing
and other service operations.

Usage:
    from cordage_tracker.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    # Log successful operation
    log_operation(
        logger,
        operation="create_delivery",
        outcome="success",
        delivery_id=123,
        order_id=45,
    )

    # Log business rule rejection
    log_operation(
        logger,
        operation="consume",
        outcome="insufficient_stock",
        level=logging.WARNING,
        material_id=45,
        required="50.0000",
    )
"""

import logging
from typing import Any

LOGGER_PREFIX = "cordage_tracker.services"


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger instance with the 'cordage_tracker.services' prefix.

    Example:
        >>> logger = get_service_logger(__name__)
        >>> logger.name
        'cordage_tracker.services.delivery_service'
    """
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    The context is passed via the 'extra' parameter for structured logging,
    so keys must not collide with LogRecord attributes (use ``note`` rather
    than ``msg``, ``item_name`` rather than ``name``).

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "create_delivery", "upsert_price")
        outcome: Outcome description (e.g., "success", "over_delivery", "error")
        level: Log level (default: INFO). Use DEBUG for verbose/frequent logs.
        **context: Additional context fields (entity IDs, quantities, etc.)

    Example:
        >>> log_operation(
        ...     logger,
        ...     operation="upsert_price",
        ...     outcome="split",
        ...     customer_id=3,
        ...     product_id=9,
        ... )
        # Logs: "upsert_price: split" with extra context
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    logger.log(level, f"{operation}: {outcome}", extra=extra)
