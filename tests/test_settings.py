"""Tests for settings loading and run validation."""

from datetime import date

import pytest

from kitebackfill.config.settings import BackfillSettings, load_settings
from kitebackfill.exceptions import ConfigError
from kitebackfill.models.data_models import DateRange, EmptyDayPolicy


class TestBackfillSettings:
    """Defaults and environment handling."""

    def test_defaults(self, monkeypatch):
        for var in ("KITE_AUTH", "BACKFILL_MAX_DAYS", "BACKFILL_MAX_RETRIES", "BACKFILL_INSTRUMENT_NAMES"):
            monkeypatch.delenv(var, raising=False)

        settings = BackfillSettings()

        assert settings.max_days == 1
        assert settings.max_retries == 3
        assert settings.chunk_days == 60
        assert settings.rate_limit_calls == 2
        assert settings.rate_limit_interval == 1.0
        assert settings.instrument_names == ["NIFTY", "BANKNIFTY", "FINNIFTY"]
        assert settings.empty_day_policy == EmptyDayPolicy.MARK
        settings.validate_for_run()

    def test_environment_variables(self, monkeypatch):
        monkeypatch.setenv("KITE_AUTH", "token a:b")
        monkeypatch.setenv("BACKFILL_MAX_DAYS", "30")
        monkeypatch.setenv("BACKFILL_INSTRUMENT_NAMES", "nifty, midcpnifty")
        monkeypatch.setenv("BACKFILL_EMPTY_DAY_POLICY", "SKIP")

        settings = BackfillSettings()

        assert settings.kite_auth_token == "token a:b"
        assert settings.max_days == 30
        assert settings.instrument_names == ["NIFTY", "MIDCPNIFTY"]
        assert settings.empty_day_policy == EmptyDayPolicy.SKIP

    def test_overrides_skip_none(self, monkeypatch):
        monkeypatch.setenv("BACKFILL_MAX_DAYS", "7")

        settings = load_settings(max_days=None, max_retries=5, instrument_names="banknifty")

        assert settings.max_days == 7
        assert settings.max_retries == 5
        assert settings.instrument_names == ["BANKNIFTY"]

    def test_unparseable_value_is_config_error(self):
        with pytest.raises(ConfigError):
            load_settings(max_days="many")

    def test_bare_number_retention_means_days(self):
        assert BackfillSettings(log_retention="14").log_retention == "14 days"

    def test_requested_range_ends_today(self):
        settings = BackfillSettings(max_days=3)

        assert settings.requested_range(date(2024, 1, 4)) == DateRange(date(2024, 1, 2), date(2024, 1, 4))

    @pytest.mark.parametrize("max_days", [0, -5])
    def test_requested_range_rejects_non_positive_days(self, max_days):
        settings = BackfillSettings(max_days=max_days)

        with pytest.raises(ConfigError):
            settings.requested_range(date(2024, 1, 4))


class TestValidateForRun:
    """Checks that must pass before any request."""

    @pytest.mark.parametrize("overrides", [
        {"max_retries": 0},
        {"rate_limit_calls": 0},
        {"rate_limit_interval": 0},
        {"chunk_days": 61},
        {"chunk_days": 0},
        {"max_days": 0},
        {"max_days": 601},
        {"candle_interval": "2minute"},
        {"reporting_timezone": "Mars/Olympus"},
        {"max_concurrent_instruments": -1},
    ])
    def test_invalid_parameters(self, overrides):
        settings = BackfillSettings(**overrides)

        with pytest.raises(ConfigError):
            settings.validate_for_run()

    def test_backfill_ceiling_follows_chunking(self):
        settings = BackfillSettings(max_days=120, chunk_days=60, max_chunks_per_instrument=2)

        settings.validate_for_run()
        with pytest.raises(ConfigError):
            settings.validate_for_run(DateRange.ending_on(date(2024, 6, 1), 121))
