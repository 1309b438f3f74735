"""Deposit ingestion pipeline.

One pass scans every tracked wallet in turn:

    acquire lock -> load cursors -> per wallet: scan, filter, write, notify,
    advance watermark -> save cursors -> release lock

Wallets are processed one at a time with a short pause between them to stay
under the explorer's rate limit. A failing wallet is logged and skipped; its
cursor is left as it was so the next pass retries the same range.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from trc20watch.config import TrackedWallet, WatcherConfig
from trc20watch.ledger.base import DepositRecord, Ledger
from trc20watch.notifications.base import Notifier
from trc20watch.notifications.telegram import format_deposit_message
from trc20watch.scanner.base import TransferRecord
from trc20watch.scanner.tronscan import WalletScanner, status_of
from trc20watch.state import (
    PRUNE_KEEP,
    PRUNE_THRESHOLD,
    ScanStateStore,
    WalletScanState,
    prune_processed,
)
from trc20watch.utils.locks import RunLock

logger = logging.getLogger(__name__)


@dataclass
class PassResult:
    """Counters for one scan pass."""

    wallets_scanned: int = 0
    wallets_failed: int = 0
    new_deposits: int = 0
    skipped_invalid: int = 0
    duplicates: int = 0
    state_saved: bool = False


def rejection_reason(transfer: TransferRecord) -> Optional[str]:
    """Why a transfer must not be credited, or None if it is valid."""
    if transfer.confirmed is not True:
        return "unconfirmed"
    if not transfer.is_success:
        return f"result={transfer.contract_result}/{transfer.final_result}"
    if transfer.reverted is True:
        return "reverted"
    return None


class IngestionPipeline:
    """Scans tracked wallets and records new incoming deposits."""

    def __init__(
        self,
        config: WatcherConfig,
        scanner: WalletScanner,
        state_store: ScanStateStore,
        run_lock: RunLock,
        ledger: Ledger,
        notifier: Notifier,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        prune_threshold: int = PRUNE_THRESHOLD,
        prune_keep: int = PRUNE_KEEP,
    ):
        self.config = config
        self.scanner = scanner
        self.state_store = state_store
        self.run_lock = run_lock
        self.ledger = ledger
        self.notifier = notifier
        self._sleep = sleep
        self.prune_threshold = prune_threshold
        self.prune_keep = prune_keep

    async def run_pass(self) -> Optional[PassResult]:
        """Run one full pass over all wallets.

        Returns:
            Pass counters, or None if another pass holds the lock
        """
        if not self.run_lock.acquire():
            logger.info("Previous scan pass still running - skipping this one")
            return None

        try:
            return await self._run_locked()
        finally:
            self.run_lock.release()

    async def _run_locked(self) -> PassResult:
        result = PassResult()
        states = self.state_store.load(self.config.addresses)

        for index, wallet in enumerate(self.config.wallets):
            if index:
                # Pace requests to the explorer, also after a failed wallet
                await self._sleep(self.config.wallet_pause)
                self.run_lock.refresh()

            current = states[wallet.address]
            try:
                states[wallet.address] = await self.process_wallet(wallet, current, result)
                result.wallets_scanned += 1
            except Exception as e:
                result.wallets_failed += 1
                logger.error(f"wallet={wallet.address} status={status_of(e)} error: {e}")

        result.state_saved = self.state_store.save(states)

        logger.info(
            f"Scan pass done: wallets={result.wallets_scanned} failed={result.wallets_failed} "
            f"new={result.new_deposits} invalid={result.skipped_invalid} "
            f"duplicates={result.duplicates}"
        )
        return result

    async def process_wallet(
        self,
        wallet: TrackedWallet,
        state: WalletScanState,
        result: Optional[PassResult] = None,
    ) -> WalletScanState:
        """Scan one wallet and return its updated cursor.

        Works on a copy, so ``state`` is untouched if this raises.
        """
        result = result if result is not None else PassResult()
        state = state.copy()

        transfers = await self.scanner.scan_incoming(wallet.address, state.last_ts)

        for transfer in transfers:
            if state.is_processed(transfer.txid):
                result.duplicates += 1
                state.advance(transfer.block_timestamp)
                continue

            reason = rejection_reason(transfer)
            if reason:
                # Recorded as processed so it is never looked at again
                logger.info(f"Ignoring tx {transfer.txid} to {wallet.address}: {reason}")
                result.skipped_invalid += 1
            elif await self._write_deposit(wallet, transfer):
                result.new_deposits += 1
            else:
                result.duplicates += 1

            state.mark_processed(transfer.txid, transfer.block_timestamp)
            state.advance(transfer.block_timestamp)

        state.processed = prune_processed(
            state.processed, threshold=self.prune_threshold, keep=self.prune_keep
        )
        return state

    async def _write_deposit(self, wallet: TrackedWallet, transfer: TransferRecord) -> bool:
        """Record the deposit and announce it if it is new.

        Returns:
            True if the ledger did not have it yet
        """
        deposit = DepositRecord.from_transfer(wallet.address, transfer, self.config.token_contract)
        inserted = await self.ledger.record_deposit(deposit)
        if not inserted:
            logger.debug(f"Deposit {transfer.txid} already in ledger")
            return False

        logger.info(
            f"NEW DEPOSIT wallet={wallet.display_name} +{transfer.amount} {transfer.symbol} "
            f"| from={transfer.from_address} | txid={transfer.txid}"
        )
        await self._notify(wallet, transfer)
        return True

    async def _notify(self, wallet: TrackedWallet, transfer: TransferRecord) -> None:
        message = format_deposit_message(
            wallet_name=wallet.display_name,
            amount=transfer.amount,
            symbol=transfer.symbol,
            from_address=transfer.from_address,
            block_ts=transfer.block_timestamp,
            tz_name=self.config.display_timezone,
        )

        try:
            sent = await self.notifier.send(message)
        except Exception as e:
            logger.error(f"Notifier error for tx {transfer.txid}: {e}")
            return

        if not sent:
            logger.warning(f"Deposit alert for tx {transfer.txid} was not delivered")