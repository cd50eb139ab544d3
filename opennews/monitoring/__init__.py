"""
HTTP surface of the ingestion service: FastAPI app, webhook and manual
triggers, and Telegram subscriber notifications.
"""

from opennews.monitoring.api_server import app, set_dependencies
from opennews.monitoring.telegram_notifier import TelegramNotifier

__all__ = [
    "TelegramNotifier",
    "app",
    "set_dependencies",
]
