"""Ledger interface used by the ingestion pipeline."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from trc20watch.amounts import to_decimal_amount
from trc20watch.scanner.base import TransferRecord


@dataclass(frozen=True)
class DepositRecord:
    """Everything the ledger stores about an accepted transfer."""

    wallet: str
    txid: str
    from_address: str
    to_address: str
    token_symbol: str
    token_contract: str
    token_decimals: int
    amount_raw: str
    amount: Decimal
    block_ts: int
    block_number: Optional[int] = None
    confirmed: bool = True
    contract_ret: Optional[str] = None
    final_result: Optional[str] = None
    revert: bool = False
    risk_transaction: bool = False
    user_id: Optional[int] = None
    chain: str = "TRON"
    token_type: str = "trc20"
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_transfer(
        cls, wallet: str, transfer: TransferRecord, token_contract: str
    ) -> "DepositRecord":
        return cls(
            wallet=wallet,
            txid=transfer.txid,
            from_address=transfer.from_address,
            to_address=transfer.to_address,
            token_symbol=transfer.symbol,
            token_contract=token_contract,
            token_decimals=transfer.decimals,
            amount_raw=transfer.raw_quantity,
            amount=to_decimal_amount(transfer.raw_quantity, transfer.decimals),
            block_ts=transfer.block_timestamp,
            block_number=transfer.block_number,
            confirmed=transfer.confirmed,
            contract_ret=transfer.contract_result,
            final_result=transfer.final_result,
            revert=transfer.reverted,
            risk_transaction=transfer.risk_flag,
            raw=transfer.raw,
        )


class Ledger(ABC):
    """Durable store of accepted deposits."""

    @abstractmethod
    async def record_deposit(self, deposit: DepositRecord) -> bool:
        """Insert a deposit keyed by (wallet, txid) if it is not there yet.

        Never updates an existing row.

        Returns:
            True if this call inserted the row, False if it already existed
        """
        raise NotImplementedError()


class InMemoryLedger(Ledger):
    """Dict-backed ledger for tests and dry runs."""

    def __init__(self):
        self.deposits: dict[tuple[str, str], DepositRecord] = {}

    async def record_deposit(self, deposit: DepositRecord) -> bool:
        key = (deposit.wallet, deposit.txid)
        if key in self.deposits:
            return False
        self.deposits[key] = deposit
        return True
