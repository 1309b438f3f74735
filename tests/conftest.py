"""Pytest configuration and fixtures."""

import os
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["TELEGRAM_BOT_TOKEN"] = ""
os.environ["TELEGRAM_CHAT_ID"] = ""
os.environ["WALLETS"] = ""
os.environ["DEBUG"] = "false"

from trc20watch.config import TrackedWallet, WatcherConfig
from trc20watch.ledger.base import InMemoryLedger
from trc20watch.ledger.models import Base
from trc20watch.ledger.repository import DepositRepository, SqlLedger
from trc20watch.notifications.base import Notifier
from trc20watch.pipeline import IngestionPipeline
from trc20watch.scanner.tronscan import WalletScanner
from trc20watch.state import ScanStateStore
from trc20watch.utils.locks import RunLock

WALLET_A = "TJMBQuS48eNjAtJkvmjGQF8idBbvfNiTjt"
WALLET_B = "TXYZabcdefghijkmnopqrstuvwxyz12345"
SENDER = "TSenderAddressxxxxxxxxxxxxxxxxxxxx"
USDT = "TR7NHqjeKQxGTCi8q8ZY4pL8otSzgjLj6t"


def make_entry(
    txid: str,
    block_ts: int,
    to_address: str = WALLET_A,
    from_address: str = SENDER,
    quant: str = "10229460000",
    **overrides,
) -> dict:
    """Build a Tronscan ``token_transfers`` entry."""
    entry = {
        "transaction_id": txid,
        "block_ts": block_ts,
        "block": 60000000 + block_ts // 3000,
        "from_address": from_address,
        "to_address": to_address,
        "quant": quant,
        "confirmed": True,
        "contractRet": "SUCCESS",
        "finalResult": "SUCCESS",
        "revert": False,
        "riskTransaction": False,
        "tokenInfo": {"tokenDecimal": 6, "tokenAbbr": "USDT", "tokenId": USDT},
    }
    entry.update(overrides)
    return entry


class FakeTronscan:
    """Stands in for TronscanClient; serves per-address feeds newest first."""

    def __init__(self):
        self.feeds: dict[str, list[dict]] = {}
        self.errors: dict[str, Exception] = {}
        self.calls: list[tuple[str, int, int]] = []

    def set_feed(self, address: str, entries: list[dict]) -> None:
        self.feeds[address] = entries

    async def fetch_page(self, address: str, contract: str, start: int, limit: int) -> list[dict]:
        self.calls.append((address, start, limit))
        if address in self.errors:
            raise self.errors[address]
        return self.feeds.get(address, [])[start:start + limit]

    def pages_fetched(self, address: str) -> int:
        return sum(1 for call in self.calls if call[0] == address)


class FakeNotifier(Notifier):
    """Records messages instead of sending them."""

    def __init__(self, result: bool = True, error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.messages: list[str] = []

    async def send(self, text: str) -> bool:
        self.messages.append(text)
        if self.error:
            raise self.error
        return self.result


class NoSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest_asyncio.fixture
async def db_engine():
    """Create in-memory database engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for testing."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def deposit_repo(db_session: AsyncSession) -> DepositRepository:
    """Create deposit repository for testing."""
    return DepositRepository(db_session)


@pytest.fixture
def sql_ledger(session_factory) -> SqlLedger:
    return SqlLedger(session_factory)


@pytest.fixture
def upstream() -> FakeTronscan:
    return FakeTronscan()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def no_sleep() -> NoSleep:
    return NoSleep()


@pytest.fixture
def watcher_config() -> WatcherConfig:
    return WatcherConfig(
        wallets=(
            TrackedWallet(address=WALLET_A, display_name="Main"),
            TrackedWallet(address=WALLET_B, display_name="Savings"),
        ),
        token_contract=USDT,
        page_size=20,
        max_pages=3,
        wallet_pause=0.35,
    )


@pytest.fixture
def make_pipeline(tmp_path, watcher_config, upstream, ledger, notifier, no_sleep):
    """Factory for a pipeline wired to fakes and files under tmp_path."""

    def _make(**overrides) -> IngestionPipeline:
        config = overrides.pop("config", watcher_config)
        kwargs = dict(
            config=config,
            scanner=WalletScanner(
                upstream,
                contract=config.token_contract,
                page_size=config.page_size,
                max_pages=config.max_pages,
            ),
            state_store=ScanStateStore(tmp_path / "state.json"),
            run_lock=RunLock(tmp_path / "scan.lock"),
            ledger=ledger,
            notifier=notifier,
            sleep=no_sleep,
        )
        kwargs.update(overrides)
        return IngestionPipeline(**kwargs)

    return _make
