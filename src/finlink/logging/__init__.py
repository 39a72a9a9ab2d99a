"""Centralized logging for finlink."""

from .config import LoggingConfig, get_log_config_summary, setup_logging

__all__ = ["LoggingConfig", "get_log_config_summary", "setup_logging"]
