"""SQLAlchemy models for the deposit ledger."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Index, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class ExactDecimal(TypeDecorator):
    """Decimal stored as its plain string form, exact on every backend (SQLite included)."""

    impl = String(80)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return format(Decimal(value), "f")

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class DepositStatus(str, Enum):
    """Business processing status of a deposit."""

    DETECTED = "DETECTED"    # Seen on chain, not yet acted on
    CREDITED = "CREDITED"    # Credited to the owner
    IGNORED = "IGNORED"      # Deliberately not credited
    FAILED = "FAILED"        # Crediting failed


class WalletDeposit(Base):
    """An incoming TRC20 transfer to a tracked wallet.

    One row per (wallet, txid); rows are insert-only from the scanner.
    """

    __tablename__ = "wallet_deposits"
    __table_args__ = (
        Index("ix_wallet_deposits_wallet_txid", "wallet", "txid", unique=True),
        Index("ix_wallet_deposits_user_block_ts", "user_id", "block_ts"),
        Index("ix_wallet_deposits_wallet_block_ts", "wallet", "block_ts"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    wallet: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    user_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    # Chain / token
    chain: Mapped[str] = mapped_column(String(20), default="TRON", index=True)
    token_type: Mapped[str] = mapped_column(String(20), default="trc20", index=True)
    token_symbol: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    token_contract: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    token_decimals: Mapped[int] = mapped_column(default=6)

    # Transaction
    txid: Mapped[str] = mapped_column(String(128), nullable=False)
    from_address: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    to_address: Mapped[str] = mapped_column(String(64), nullable=False)

    # Amount
    amount_raw: Mapped[str] = mapped_column(String(80), nullable=False)  # e.g. "10229460000"
    amount: Mapped[Decimal] = mapped_column(ExactDecimal(), nullable=False)  # e.g. 10229.46

    # Block / result flags
    block_number: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True, index=True)
    block_ts: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)  # ms
    confirmed: Mapped[bool] = mapped_column(default=False, index=True)
    contract_ret: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    final_result: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    revert: Mapped[bool] = mapped_column(default=False)
    risk_transaction: Mapped[bool] = mapped_column(default=False)

    # Business processing
    status: Mapped[DepositStatus] = mapped_column(
        String(20), default=DepositStatus.DETECTED, nullable=False, index=True
    )
    credited_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    raw_payload: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # JSON for audit

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
