"""Ledger module for detected deposits."""

from trc20watch.ledger.base import DepositRecord, InMemoryLedger, Ledger
from trc20watch.ledger.database import close_db, get_session_factory, init_db
from trc20watch.ledger.models import DepositStatus, WalletDeposit
from trc20watch.ledger.repository import DepositRepository, SqlLedger

__all__ = [
    # Models
    "WalletDeposit",
    "DepositStatus",
    # Interface
    "DepositRecord",
    "Ledger",
    "InMemoryLedger",
    "SqlLedger",
    # Database
    "get_session_factory",
    "init_db",
    "close_db",
    "DepositRepository",
]
