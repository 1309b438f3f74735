"""Deposit watcher runner.

Runs a scan pass immediately on start, then every ``SCAN_INTERVAL`` seconds.

Usage:
    python -m trc20watch.runner
    python -m trc20watch.runner --once
    python -m trc20watch.runner --clear-lock

Environment variables:
    WALLETS: Comma-separated ``address-name`` pairs to watch
    SCAN_INTERVAL: Seconds between scan passes (default: 180)
    TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID: Where deposit alerts go
    STATE_FILE / LOCK_FILE: Cursor state and run lock locations
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from trc20watch.config import Settings, get_settings
from trc20watch.exceptions import ConfigError
from trc20watch.ledger.database import close_db, get_session_factory, init_db
from trc20watch.ledger.repository import SqlLedger
from trc20watch.notifications.telegram import TelegramNotifier, close_bot
from trc20watch.pipeline import IngestionPipeline
from trc20watch.scanner.tronscan import TronscanClient, WalletScanner
from trc20watch.state import ScanStateStore
from trc20watch.utils.locks import RunLock

logger = logging.getLogger(__name__)


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


class DepositWatcherRunner:
    """Builds the pipeline from settings and drives it on an interval."""

    def __init__(self, settings: Settings, interval: Optional[int] = None):
        """Initialize the runner.

        Args:
            settings: Application settings
            interval: Seconds between passes (defaults to settings.scan_interval)

        Raises:
            ConfigError: If no wallets are configured
        """
        self.settings = settings
        self.interval = interval or settings.scan_interval
        self.config = settings.to_watcher_config()
        self.client = TronscanClient(api_url=settings.tronscan_api_url)
        self.run_lock = RunLock(settings.lock_file, max_age=settings.stale_lock_age)

        self.pipeline = IngestionPipeline(
            config=self.config,
            scanner=WalletScanner(
                self.client,
                contract=self.config.token_contract,
                page_size=self.config.page_size,
                max_pages=self.config.max_pages,
            ),
            state_store=ScanStateStore(settings.state_file),
            run_lock=self.run_lock,
            ledger=SqlLedger(get_session_factory()),
            notifier=TelegramNotifier(chat_id=settings.telegram_chat_id),
        )

    async def run_once(self) -> None:
        """Run a single pass, logging instead of raising."""
        try:
            await self.pipeline.run_pass()
        except Exception as e:
            logger.error(f"Scan pass error: {e}")

    async def run(self) -> None:
        """Run continuous scanning loop."""
        labels = ", ".join(w.display_name for w in self.config.wallets)
        logger.info(
            f"Deposit watcher started | wallets={labels} | interval={self.interval}s "
            f"| state={self.pipeline.state_store.path}"
        )

        while True:
            await self.run_once()
            await asyncio.sleep(self.interval)

    async def close(self) -> None:
        await self.client.close()


async def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Watch TRON wallets for incoming TRC20 deposits")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single scan pass and exit",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Seconds between scan passes (default: SCAN_INTERVAL)",
    )
    parser.add_argument(
        "--clear-lock",
        action="store_true",
        help="Remove a run lock left behind by a crashed pass and exit",
    )
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.debug)
    logger.info(f"Settings: {settings.get_safe_dict()}")

    if args.clear_lock:
        lock = RunLock(settings.lock_file)
        age = lock.age()
        lock.clear()
        if age is None:
            logger.info(f"No run lock at {lock.path}")
        else:
            logger.info(f"Removed run lock {lock.path} (age {age:.0f}s)")
        return 0

    try:
        runner = DepositWatcherRunner(settings, interval=args.interval)
    except ConfigError as e:
        logger.error(str(e))
        return 1

    await init_db()
    try:
        if args.once:
            await runner.run_once()
        else:
            await runner.run()
    finally:
        await runner.close()
        await close_bot()
        await close_db()

    return 0


def cli() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
