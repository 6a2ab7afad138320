"""Tests for configuration and the ledger clock."""

from datetime import date, datetime

from cafe_ledger.utils.config import Config, get_config, reset_config
from cafe_ledger.utils.constants import DEFAULT_LOCK_TIMEOUT
from cafe_ledger.utils.datetime_utils import FixedClock, SystemClock, get_clock, reset_clock


class TestConfig:
    def test_database_url_override(self, monkeypatch):
        monkeypatch.setenv("CAFE_LEDGER_DATABASE_URL", "sqlite:////tmp/other.db")
        config = Config("production")
        assert config.database_url == "sqlite:////tmp/other.db"
        assert config.database_exists()

    def test_development_uses_project_data_dir(self):
        config = Config("development")
        assert config.is_development
        assert config.database_path.parent.name == "data"
        assert config.database_url.startswith("sqlite:///")

    def test_lock_timeout_from_environment(self, monkeypatch):
        monkeypatch.setenv("CAFE_LEDGER_LOCK_TIMEOUT", "2.5")
        assert Config().lock_timeout == 2.5

    def test_invalid_lock_timeout_falls_back(self, monkeypatch):
        monkeypatch.setenv("CAFE_LEDGER_LOCK_TIMEOUT", "soon")
        assert Config().lock_timeout == DEFAULT_LOCK_TIMEOUT

    def test_singleton_reads_environment(self, monkeypatch):
        monkeypatch.setenv("CAFE_LEDGER_ENV", "development")
        reset_config()
        assert get_config().environment == "development"
        assert get_config("production").environment == "development"


class TestClock:
    def test_fixed_clock_date_is_nine_am(self):
        clock = FixedClock(date(2025, 3, 10))
        assert clock.now() == datetime(2025, 3, 10, 9, 0)
        assert clock.today() == date(2025, 3, 10)

    def test_advance(self):
        clock = FixedClock(date(2025, 3, 10))
        clock.advance(days=2)
        assert clock.today() == date(2025, 3, 12)

    def test_reset_restores_system_clock(self):
        reset_clock()
        assert isinstance(get_clock(), SystemClock)
