"""Tests for Telegram deposit alerts."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from aiogram.exceptions import TelegramForbiddenError

from conftest import SENDER
from trc20watch.notifications.telegram import (
    TelegramNotifier,
    format_block_time,
    format_deposit_message,
    short_address,
)


class TestMessageFormatting:
    """Tests for alert text helpers."""

    def test_short_address(self):
        assert short_address("TJMBQuS48eNjAtJkvmjGQF8idBbvfNiTjt") == "TJMBQu......fNiTjt"
        assert short_address("TSHORT") == "TSHORT"
        assert short_address(None) == ""

    def test_block_time_in_display_timezone(self):
        """Test that block time is rendered in Asia/Ho_Chi_Minh (UTC+7)."""
        assert format_block_time(1708387878000) == "2024-02-20 07:11:18 GMT+7 (Asia/Ho_Chi_Minh)"

    def test_block_time_other_timezone(self):
        assert format_block_time(1708387878000, "UTC") == "2024-02-20 00:11:18 GMT+0 (UTC)"

    def test_block_time_half_hour_offset(self):
        assert format_block_time(1708387878000, "Asia/Kolkata") == "2024-02-20 05:41:18 GMT+5:30 (Asia/Kolkata)"

    def test_deposit_message(self):
        """Test the full alert body."""
        message = format_deposit_message(
            wallet_name="Main",
            amount="10229.46",
            symbol="USDT",
            from_address=SENDER,
            block_ts=1708387878000,
        )

        assert "Incoming deposit received!" in message
        assert "<b>Account:</b> Main" in message
        assert "<b><u>10229.46 USDT</u></b>" in message
        assert "<code>TSende......xxxxxx</code>" in message
        assert "2024-02-20 07:11:18 GMT+7 (Asia/Ho_Chi_Minh)" in message

    def test_wallet_name_is_escaped(self):
        """Test that names cannot inject HTML."""
        message = format_deposit_message("<Ops & Co>", "1", "USDT", SENDER, 0)

        assert "&lt;Ops &amp; Co&gt;" in message
        assert "<Ops" not in message


class TestTelegramNotifier:
    """Tests for TelegramNotifier."""

    @pytest.mark.asyncio
    async def test_send_message(self):
        """Test that alerts are sent as HTML without link previews."""
        bot = MagicMock()
        bot.send_message = AsyncMock()
        notifier = TelegramNotifier(chat_id="-100123", bot=bot)

        sent = await notifier.send("<b>hi</b>")

        assert sent is True
        bot.send_message.assert_awaited_once_with(
            chat_id="-100123",
            text="<b>hi</b>",
            parse_mode="HTML",
            disable_web_page_preview=True,
        )

    @pytest.mark.asyncio
    async def test_forbidden_returns_false(self):
        """Test that a bot kicked from the chat does not raise."""
        bot = MagicMock()
        bot.send_message = AsyncMock(
            side_effect=TelegramForbiddenError(method=MagicMock(), message="bot was kicked")
        )
        notifier = TelegramNotifier(chat_id="-100123", bot=bot)

        assert await notifier.send("hi") is False

    @pytest.mark.asyncio
    async def test_unexpected_error_returns_false(self):
        bot = MagicMock()
        bot.send_message = AsyncMock(side_effect=RuntimeError("network down"))
        notifier = TelegramNotifier(chat_id="-100123", bot=bot)

        assert await notifier.send("hi") is False

    @pytest.mark.asyncio
    async def test_missing_chat_id(self):
        """Test that nothing is sent without a chat."""
        bot = MagicMock()
        bot.send_message = AsyncMock()
        notifier = TelegramNotifier(chat_id="", bot=bot)

        assert await notifier.send("hi") is False
        bot.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_bot(self):
        """Test that an unconfigured token disables alerts."""
        notifier = TelegramNotifier(chat_id="-100123")

        with patch(
            "trc20watch.notifications.telegram.get_bot", new=AsyncMock(return_value=None)
        ):
            assert await notifier.send("hi") is False
