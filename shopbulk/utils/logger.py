"""Logging utilities for shopbulk.

This module centralizes logger configuration and the structured log helpers
used by the HTTP layer and the batch engine.
"""

import json
import logging
import uuid
from typing import Any, Mapping, Optional


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger under the ``shopbulk`` namespace."""

    logger_name = name or "shopbulk"
    logger = logging.getLogger(logger_name)

    # Configure a console handler once if the host application did not.
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

    return logger


def generate_request_id() -> str:
    """Generate a unique request identifier for correlating logs."""

    return str(uuid.uuid4())


def _format_structured_message(
    message: str,
    request_id: Optional[str] = None,
    extra: Optional[dict] = None,
) -> str:
    """Format a log message as a JSON structured string."""

    payload: dict = {"message": message}
    if request_id is not None:
        payload["request_id"] = request_id
    if extra:
        payload["extra"] = extra
    return json.dumps(payload, default=str)


def log_info(msg: str, request_id: Optional[str] = None, **extra: object) -> None:
    """Log an informational message."""

    get_logger("shopbulk.api").info(
        _format_structured_message(msg, request_id=request_id, extra=extra or None)
    )


def log_warn(msg: str, request_id: Optional[str] = None, **extra: object) -> None:
    """Log a warning message."""

    get_logger("shopbulk.api").warning(
        _format_structured_message(msg, request_id=request_id, extra=extra or None)
    )


def log_error(msg: str, request_id: Optional[str] = None, **extra: object) -> None:
    """Log an error message."""

    get_logger("shopbulk.api").error(
        _format_structured_message(msg, request_id=request_id, extra=extra or None)
    )


def log_throttle(operation: str, throttle: Any) -> None:
    """Log a throttle snapshot (a ThrottleState or a raw throttleStatus dict)."""

    if throttle is None:
        return
    data: Mapping[str, Any] = throttle.to_dict() if hasattr(throttle, "to_dict") else throttle
    get_logger("shopbulk.throttle").info(
        "[THROTTLE][%s] max: %s, current: %s, restoreRate: %s",
        operation,
        data.get("maximumAvailable"),
        data.get("currentlyAvailable"),
        data.get("restoreRate"),
    )


def log_batch(operation: str, batch_index: int, total_batches: int, batch_size: Optional[int] = None) -> None:
    """Log progress through a list of batches (``batch_index`` is 0-based)."""

    size_info = f" ({batch_size} items)" if batch_size else ""
    get_logger("shopbulk.batch").info(
        "[%s] Batch %d/%d%s", operation, batch_index + 1, total_batches, size_info
    )


def log_timing(operation: str, elapsed_seconds: float, additional_info: str = "") -> None:
    """Log how long an operation took."""

    get_logger("shopbulk.timing").info(
        "[TIMING][%s] Completed in %.2fs %s", operation, elapsed_seconds, additional_info
    )
