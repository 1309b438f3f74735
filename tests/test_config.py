"""Tests for settings and wallet parsing."""

import pytest

from trc20watch.config import Settings, TrackedWallet, parse_wallets
from trc20watch.exceptions import ConfigError


class TestParseWallets:
    """Tests for the WALLETS setting format."""

    def test_address_name_pairs(self):
        wallets = parse_wallets("TAAA-Main,TBBB-Savings")

        assert wallets == (
            TrackedWallet(address="TAAA", display_name="Main"),
            TrackedWallet(address="TBBB", display_name="Savings"),
        )

    def test_only_first_dash_splits(self):
        """Test that names may contain dashes."""
        (wallet,) = parse_wallets("TAAA-Cold-Storage-2")

        assert wallet.display_name == "Cold-Storage-2"

    def test_missing_name_uses_address(self):
        wallets = parse_wallets("TAAA, TBBB-")

        assert [w.display_name for w in wallets] == ["TAAA", "TBBB"]

    def test_whitespace_and_empty_items(self):
        wallets = parse_wallets("  TAAA - Main , , ,TBBB-B ")

        assert [(w.address, w.display_name) for w in wallets] == [("TAAA", "Main"), ("TBBB", "B")]

    def test_duplicates_keep_first(self):
        """Test that a repeated address is scanned once."""
        wallets = parse_wallets("TAAA-First,TAAA-Second")

        assert wallets == (TrackedWallet(address="TAAA", display_name="First"),)

    def test_empty(self):
        assert parse_wallets("") == ()


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.scan_interval == 180
        assert settings.tronscan_limit == 20
        assert settings.tronscan_max_pages == 3
        assert settings.stale_lock_age == 1800
        assert settings.usdt_contract == "TR7NHqjeKQxGTCi8q8ZY4pL8otSzgjLj6t"

    def test_stale_lock_disabled(self):
        assert Settings(_env_file=None, lock_max_age=0).stale_lock_age is None

    def test_watcher_config(self):
        """Test building the pipeline configuration."""
        settings = Settings(
            _env_file=None,
            wallets="TAAA-Main,TBBB-Savings",
            tronscan_limit=50,
            wallet_pause=0,
        )

        config = settings.to_watcher_config()

        assert config.addresses == ["TAAA", "TBBB"]
        assert config.page_size == 50
        assert config.wallet_pause == 0
        assert config.wallets[1].display_name == "Savings"

    def test_no_wallets_is_error(self):
        """Test that an empty wallet list is refused at startup."""
        settings = Settings(_env_file=None, wallets=" , ")

        with pytest.raises(ConfigError, match="WALLETS"):
            settings.to_watcher_config()

    def test_safe_dict_redacts_secrets(self):
        settings = Settings(
            _env_file=None,
            telegram_bot_token="123:secret",
            database_url="postgresql+asyncpg://watcher:hunter2@db/deposits",
        )

        safe = settings.get_safe_dict()

        assert safe["telegram_bot_token"] == "***"
        assert safe["database_url"] == "postgresql+asyncpg://watcher:***@db/deposits"
        assert "secret" not in str(safe)
        assert "hunter2" not in str(safe)
