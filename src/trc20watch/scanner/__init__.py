"""Scanner module for incoming TRC20 transfers."""

from trc20watch.scanner.base import TransferRecord
from trc20watch.scanner.tronscan import RetryPolicy, TronscanClient, WalletScanner

__all__ = ["RetryPolicy", "TransferRecord", "TronscanClient", "WalletScanner"]
