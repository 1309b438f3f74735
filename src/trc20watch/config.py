"""Application configuration using pydantic-settings.

Tracked wallets are given as ``WALLETS=address-name,address-name,...``.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from trc20watch.exceptions import ConfigError

TRONSCAN_TRANSFERS_URL = "https://apilist.tronscan.org/api/token_trc20/transfers"

# USDT-TRC20 contract address
USDT_CONTRACT_MAINNET = "TR7NHqjeKQxGTCi8q8ZY4pL8otSzgjLj6t"


@dataclass(frozen=True)
class TrackedWallet:
    """A TRON address being watched for incoming transfers."""

    address: str
    display_name: str


@dataclass(frozen=True)
class WatcherConfig:
    """Immutable scan configuration handed to the ingestion pipeline."""

    wallets: tuple[TrackedWallet, ...]
    token_contract: str = USDT_CONTRACT_MAINNET
    page_size: int = 20
    max_pages: int = 3
    wallet_pause: float = 0.35
    display_timezone: str = "Asia/Ho_Chi_Minh"

    @property
    def addresses(self) -> list[str]:
        return [w.address for w in self.wallets]


def parse_wallets(raw: str) -> tuple[TrackedWallet, ...]:
    """Parse the WALLETS setting.

    Each comma-separated item is ``address`` or ``address-name``. Only the
    first ``-`` separates the two, so names may contain dashes. Repeated
    addresses keep their first name.
    """
    wallets: list[TrackedWallet] = []
    seen: set[str] = set()

    for pair in raw.split(","):
        pair = pair.strip()
        if not pair:
            continue

        address, sep, name = pair.partition("-")
        address = address.strip()
        name = name.strip() if sep else ""
        if not address or address in seen:
            continue

        seen.add(address)
        wallets.append(TrackedWallet(address=address, display_name=name or address))

    return tuple(wallets)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Wallets
    # ======================
    wallets: str = Field(
        default="", description="Comma-separated address-name pairs to watch"
    )

    # ======================
    # Tronscan
    # ======================
    tronscan_api_url: str = Field(
        default=TRONSCAN_TRANSFERS_URL, description="Tronscan TRC20 transfers endpoint"
    )
    usdt_contract: str = Field(
        default=USDT_CONTRACT_MAINNET, description="TRC20 contract to watch"
    )
    tronscan_limit: int = Field(default=20, ge=1, description="Transfers per page")
    tronscan_max_pages: int = Field(default=3, ge=1, description="Pages fetched per wallet")

    # ======================
    # Scheduling
    # ======================
    scan_interval: int = Field(default=180, ge=1, description="Seconds between scan passes")
    wallet_pause: float = Field(
        default=0.35, ge=0, description="Pause between wallets to ease rate limits"
    )

    # ======================
    # State / lock files
    # ======================
    state_file: str = Field(
        default="./wallet_cron_state.json", description="Watermark and dedup state file"
    )
    lock_file: str = Field(default="./wallet_cron.lock", description="Run lock file")
    lock_max_age: int = Field(
        default=1800, ge=0, description="Seconds before a lock is considered stale (0 = never)"
    )

    # ======================
    # Database
    # ======================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/deposits.db",
        description="Database connection URL",
    )

    # ======================
    # Telegram
    # ======================
    telegram_bot_token: str = Field(default="", description="Telegram bot token from BotFather")
    telegram_chat_id: str = Field(default="", description="Chat that receives deposit alerts")
    display_timezone: str = Field(
        default="Asia/Ho_Chi_Minh", description="Timezone used in alert timestamps"
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug logging")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def stale_lock_age(self) -> Optional[int]:
        """Lock max age in seconds, or None when stale reclaim is disabled."""
        return self.lock_max_age or None

    def to_watcher_config(self) -> WatcherConfig:
        """Build the scan configuration.

        Raises:
            ConfigError: If no wallets are configured
        """
        wallets = parse_wallets(self.wallets)
        if not wallets:
            raise ConfigError("Missing WALLETS. Example: WALLETS=TJMB...-Main,TXXXX...-Savings")

        return WatcherConfig(
            wallets=wallets,
            token_contract=self.usdt_contract,
            page_size=self.tronscan_limit,
            max_pages=self.tronscan_max_pages,
            wallet_pause=self.wallet_pause,
            display_timezone=self.display_timezone,
        )

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "wallets": [w.address for w in parse_wallets(self.wallets)],
            "tronscan_api_url": self.tronscan_api_url,
            "contract": self.usdt_contract,
            "scan_interval": self.scan_interval,
            "state_file": self.state_file,
            "lock_file": self.lock_file,
            "database_url": self._redact_url(self.database_url),
            "telegram_bot_token": "***" if self.telegram_bot_token else "(not set)",
            "telegram_chat_id": self.telegram_chat_id or "(not set)",
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact sensitive parts of database URL."""
        if "://" in url and "@" in url:
            proto, rest = url.split("://", 1)
            if "@" in rest:
                creds, host = rest.rsplit("@", 1)
                if ":" in creds:
                    user, _ = creds.split(":", 1)
                    return f"{proto}://{user}:***@{host}"
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
