"""Utility modules for the estimate functions."""

from utils.estimate_logger import (
    log_estimate_start,
    log_signals_summary,
    log_estimate_complete,
    log_estimate_failed,
)

__all__ = [
    "log_estimate_start",
    "log_signals_summary",
    "log_estimate_complete",
    "log_estimate_failed",
]
