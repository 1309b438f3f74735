"""Telegram deposit alerts.

Sends HTML messages to a single configured chat.
Uses a singleton pattern to share the bot instance.
"""

import asyncio
import html
import logging
from datetime import datetime
from typing import Optional, Union
from zoneinfo import ZoneInfo

from aiogram import Bot
from aiogram.exceptions import TelegramBadRequest, TelegramForbiddenError

from trc20watch.config import get_settings
from trc20watch.notifications.base import Notifier

logger = logging.getLogger(__name__)

DIVIDER = "━━━━━━━━━━━━━━━━━━"

# Singleton bot instance
_bot_instance: Optional[Bot] = None
_bot_lock = asyncio.Lock()


async def get_bot() -> Optional[Bot]:
    """Get or create the bot instance for notifications."""
    global _bot_instance

    if _bot_instance is not None:
        return _bot_instance

    async with _bot_lock:
        # Double-check after acquiring lock
        if _bot_instance is not None:
            return _bot_instance

        settings = get_settings()
        if not settings.telegram_bot_token:
            logger.warning("Telegram bot token not configured - notifications disabled")
            return None

        _bot_instance = Bot(token=settings.telegram_bot_token)
        return _bot_instance


async def close_bot() -> None:
    """Close the bot session (call on shutdown)."""
    global _bot_instance
    if _bot_instance is not None:
        await _bot_instance.session.close()
        _bot_instance = None


def short_address(address: Optional[str], start: int = 6, end: int = 6) -> str:
    """Shorten an address to ``TJMBQu......fvbNjt`` form."""
    if not address or len(address) <= start + end:
        return address or ""
    return f"{address[:start]}......{address[-end:]}"


def gmt_offset_label(moment: datetime) -> str:
    """Render the UTC offset of an aware datetime as ``GMT+7`` or ``GMT+5:30``."""
    minutes = int(moment.utcoffset().total_seconds() // 60)
    sign = "-" if minutes < 0 else "+"
    hours, minutes = divmod(abs(minutes), 60)
    return f"GMT{sign}{hours}:{minutes:02d}" if minutes else f"GMT{sign}{hours}"


def format_block_time(block_ts: int, tz_name: str = "Asia/Ho_Chi_Minh") -> str:
    """Format a millisecond block timestamp in the given timezone.

    Example: ``2024-02-20 07:11:18 GMT+7 (Asia/Ho_Chi_Minh)``
    """
    moment = datetime.fromtimestamp(block_ts / 1000, tz=ZoneInfo(tz_name))
    return f"{moment:%Y-%m-%d %H:%M:%S} {gmt_offset_label(moment)} ({tz_name})"


def format_deposit_message(
    wallet_name: str,
    amount: str,
    symbol: str,
    from_address: str,
    block_ts: int,
    tz_name: str = "Asia/Ho_Chi_Minh",
) -> str:
    """Render the new-deposit alert."""
    return (
        f"<b>🎉 Incoming deposit received!</b>\n"
        f"{DIVIDER}\n"
        f"👤 <b>Account:</b> {html.escape(wallet_name)}\n"
        f"💰 <b>Amount:</b> <b><u>{amount} {html.escape(symbol)}</u></b>\n"
        f"{DIVIDER}\n"
        f"🏦 <b>From:</b> <code>{short_address(from_address)}</code>\n"
        f"🕒 <b>Time:</b> {format_block_time(block_ts, tz_name)}"
    )


class TelegramNotifier(Notifier):
    """Sends deposit alerts to one Telegram chat."""

    def __init__(self, chat_id: Union[int, str], bot: Optional[Bot] = None):
        """Initialize the notifier.

        Args:
            chat_id: Chat (user, group or channel) receiving alerts
            bot: Optional bot instance; the shared singleton is used if omitted
        """
        self.chat_id = chat_id
        self._bot = bot

    async def _get_bot(self) -> Optional[Bot]:
        """Get the bot instance."""
        if self._bot:
            return self._bot
        return await get_bot()

    async def send(self, text: str) -> bool:
        if not self.chat_id:
            logger.warning("Telegram chat id not configured - notification skipped")
            return False

        bot = await self._get_bot()
        if not bot:
            logger.warning("Cannot send notification - bot not initialized")
            return False

        try:
            await bot.send_message(
                chat_id=self.chat_id,
                text=text,
                parse_mode="HTML",
                disable_web_page_preview=True,
            )
            return True
        except TelegramForbiddenError:
            logger.warning(f"Bot is not allowed to post to chat {self.chat_id}")
            return False
        except TelegramBadRequest as e:
            logger.error(f"Bad request sending to {self.chat_id}: {e}")
            return False
        except Exception as e:
            logger.error(f"Failed to send notification to {self.chat_id}: {e}")
            return False
