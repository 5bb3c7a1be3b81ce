"""Logging helpers."""

from .logger import HumanLogger, setup_logger
from .status_report import generate_status_report, statuses_to_frame

__all__ = ["HumanLogger", "generate_status_report", "setup_logger", "statuses_to_frame"]
