"""
Error logging utility for the dispatch engine.

Writes one timestamped report file per failure (scheduled runs, dispatches,
persistence) so failures can be inspected after the fact.
"""

import os
import sys
import traceback
from datetime import datetime
from typing import Any
from uuid import uuid4


def _default_log_dir() -> str:
    return os.getenv(
        "NOTIFICATION_ERROR_LOG_DIR", os.path.join(os.path.dirname(__file__), "logs")
    )


def log_notification_error(
    error_type: str,
    error_message: str,
    context: dict[str, Any] | None = None,
    log_dir: str | None = None,
) -> str:
    """
    Log an engine error to a timestamped file.

    Args:
        error_type: Type of error (e.g., 'execution', 'dispatch', 'rate_limit', 'persistence')
        error_message: The error message
        context: Optional dictionary with additional context (schedule_id, rule_id, etc.)
        log_dir: Directory for report files (defaults to NOTIFICATION_ERROR_LOG_DIR)

    Returns:
        Path to the log file created
    """
    log_dir = log_dir or _default_log_dir()
    os.makedirs(log_dir, exist_ok=True)

    # Suffix separates reports written within the same second
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filename = os.path.join(log_dir, f"{error_type}_error_{timestamp}_{uuid4().hex[:6]}.txt")

    with open(filename, "w", encoding="utf-8") as f:
        f.write(f"Dispatch Engine Error Report - {datetime.now()}\n")
        f.write("=" * 60 + "\n\n")
        f.write(f"Error Type: {error_type}\n")
        f.write(f"Error Message: {error_message}\n\n")

        if context:
            f.write("Context:\n")
            f.write("-" * 60 + "\n")
            for key, value in context.items():
                f.write(f"{key}: {value}\n")

        # Only present when called from inside an except block
        if sys.exc_info()[0] is not None:
            f.write("\nTraceback:\n")
            f.write("-" * 60 + "\n")
            f.write(traceback.format_exc())

    return filename
