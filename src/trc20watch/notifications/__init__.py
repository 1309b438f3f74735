"""Deposit notifications."""

from trc20watch.notifications.base import Notifier
from trc20watch.notifications.telegram import TelegramNotifier, format_deposit_message

__all__ = ["Notifier", "TelegramNotifier", "format_deposit_message"]
