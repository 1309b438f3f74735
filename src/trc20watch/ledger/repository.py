"""Repository for deposit ledger operations."""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from trc20watch.ledger.base import DepositRecord, Ledger
from trc20watch.ledger.models import DepositStatus, WalletDeposit

logger = logging.getLogger(__name__)


class DepositRepository:
    """Database operations on ``wallet_deposits``."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_wallet_txid(self, wallet: str, txid: str) -> Optional[WalletDeposit]:
        """Get a deposit by its natural key."""
        stmt = select(WalletDeposit).where(
            WalletDeposit.wallet == wallet,
            WalletDeposit.txid == txid,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_deposit(
        self, deposit: DepositRecord, status: DepositStatus = DepositStatus.DETECTED
    ) -> WalletDeposit:
        """Add a new deposit row (flushes, does not commit)."""
        row = WalletDeposit(
            wallet=deposit.wallet,
            user_id=deposit.user_id,
            chain=deposit.chain,
            token_type=deposit.token_type,
            token_symbol=deposit.token_symbol,
            token_contract=deposit.token_contract,
            token_decimals=deposit.token_decimals,
            txid=deposit.txid,
            from_address=deposit.from_address,
            to_address=deposit.to_address,
            amount_raw=deposit.amount_raw,
            amount=deposit.amount,
            block_number=deposit.block_number,
            block_ts=deposit.block_ts,
            confirmed=deposit.confirmed,
            contract_ret=deposit.contract_ret,
            final_result=deposit.final_result,
            revert=deposit.revert,
            risk_transaction=deposit.risk_transaction,
            status=status,
            raw_payload=json.dumps(deposit.raw, default=str) if deposit.raw else None,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def get_wallet_deposits(
        self, wallet: str, limit: int = 20, offset: int = 0
    ) -> list[WalletDeposit]:
        """Get deposit history for a wallet, newest first."""
        stmt = (
            select(WalletDeposit)
            .where(WalletDeposit.wallet == wallet)
            .order_by(WalletDeposit.block_ts.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_deposit(self, deposit_id: int) -> WalletDeposit:
        stmt = select(WalletDeposit).where(WalletDeposit.id == deposit_id)
        result = await self.session.execute(stmt)
        deposit = result.scalar_one_or_none()

        if deposit is None:
            raise ValueError(f"Deposit {deposit_id} not found")
        return deposit

    async def mark_credited(self, deposit_id: int) -> WalletDeposit:
        """Mark a detected deposit as credited to its owner."""
        deposit = await self.get_deposit(deposit_id)

        if deposit.status == DepositStatus.CREDITED:
            return deposit  # Already credited

        if deposit.status != DepositStatus.DETECTED:
            raise ValueError(f"Cannot credit deposit {deposit_id} with status {deposit.status}")

        deposit.status = DepositStatus.CREDITED
        deposit.credited_at = datetime.now(timezone.utc)
        await self.session.flush()
        return deposit

    async def mark_ignored(self, deposit_id: int, note: Optional[str] = None) -> WalletDeposit:
        """Mark a deposit as deliberately not credited."""
        deposit = await self.get_deposit(deposit_id)

        if deposit.status == DepositStatus.CREDITED:
            raise ValueError(f"Deposit {deposit_id} is already credited")

        deposit.status = DepositStatus.IGNORED
        deposit.note = note
        await self.session.flush()
        return deposit


class SqlLedger(Ledger):
    """Ledger backed by the ``wallet_deposits`` table.

    Each deposit is written in its own transaction so one bad row cannot
    hold back the rest of a scan.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def record_deposit(self, deposit: DepositRecord) -> bool:
        async with self._session_factory() as session:
            repo = DepositRepository(session)

            if await repo.get_by_wallet_txid(deposit.wallet, deposit.txid):
                logger.debug(f"Deposit {deposit.txid} already recorded for {deposit.wallet}")
                return False

            try:
                await repo.create_deposit(deposit)
                await session.commit()
            except IntegrityError:
                # Inserted concurrently by someone else
                await session.rollback()
                return False

        return True
