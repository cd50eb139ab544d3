"""Utility package."""
from opennews.utils.config import Settings, get_settings
from opennews.utils.logger import get_logger, setup_logging

__all__ = [
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
]
