"""Transfer records as returned by the upstream explorer."""

from dataclasses import dataclass, field
from typing import Any, Optional

from trc20watch.amounts import DEFAULT_DECIMALS, to_display_amount

SUCCESS = "SUCCESS"


@dataclass(frozen=True)
class TransferRecord:
    """One TRC20 transfer observation.

    A snapshot of the explorer's data at fetch time.
    """

    txid: str
    from_address: str
    to_address: str
    block_timestamp: int  # ms
    raw_quantity: str
    decimals: int = DEFAULT_DECIMALS
    symbol: str = "USDT"
    confirmed: bool = False
    contract_result: Optional[str] = None
    final_result: Optional[str] = None
    reverted: bool = False
    risk_flag: bool = False
    block_number: Optional[int] = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, entry: dict[str, Any]) -> "TransferRecord":
        """Build a record from a Tronscan ``token_transfers`` entry."""
        token_info = entry.get("tokenInfo") or {}
        decimals = token_info.get("tokenDecimal")

        return cls(
            txid=str(entry.get("transaction_id", "")),
            from_address=str(entry.get("from_address") or "").strip(),
            to_address=str(entry.get("to_address") or "").strip(),
            block_timestamp=block_ts_of(entry),
            raw_quantity=str(entry.get("quant") or "0"),
            decimals=int(decimals) if decimals is not None else DEFAULT_DECIMALS,
            symbol=token_info.get("tokenAbbr") or "USDT",
            confirmed=entry.get("confirmed") is True,
            contract_result=entry.get("contractRet"),
            final_result=entry.get("finalResult"),
            reverted=entry.get("revert") is True,
            risk_flag=entry.get("riskTransaction") is True,
            block_number=entry.get("block"),
            raw=entry,
        )

    @property
    def amount(self) -> str:
        """Human readable amount, e.g. ``"10229.46"``."""
        return to_display_amount(self.raw_quantity, self.decimals)

    @property
    def is_success(self) -> bool:
        return self.contract_result == SUCCESS or self.final_result == SUCCESS


def block_ts_of(entry: dict[str, Any]) -> int:
    """Block timestamp (ms) of a raw entry, 0 if missing."""
    return int(entry.get("block_ts") or 0)
