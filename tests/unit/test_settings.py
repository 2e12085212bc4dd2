"""Tests for settings loading and persisted preferences."""

import json

import pytest
from pydantic import ValidationError

from tickertui.config.preferences import Preferences, load_preferences, save_preferences
from tickertui.config.settings import FeedConfig, HealthConfig, Settings, load_settings, substitute_env_vars
from tickertui.models import FeedKind, Timeframe


@pytest.mark.unit
class TestSettings:

    def test_defaults(self):
        settings = Settings()

        assert settings.feeds.reconnect_delay(FeedKind.KLINE) == 5.0
        assert settings.feeds.reconnect_delay(FeedKind.WATCHLIST_PRICES) == 2.0
        assert settings.health.thresholds(FeedKind.KLINE) == (12.0, 40.0)
        assert settings.health.thresholds(FeedKind.TRADES) == (3.0, 10.0)
        assert settings.fetch.max_attempts == 2
        assert settings.fetch.attempt_timeout_seconds == 8.0
        assert settings.fetch.retry_delay_seconds == 0.5
        assert settings.buffer.max_candles == 1000

    def test_threshold_order_is_validated(self):
        with pytest.raises(ValidationError):
            HealthConfig(orderbook_reconnect_after=10.0, orderbook_degrade_after=3.0)

    def test_depth_is_validated(self):
        with pytest.raises(ValidationError):
            FeedConfig(orderbook_depth=15)

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("TICKERTUI_FETCH__MAX_ATTEMPTS", "4")
        monkeypatch.setenv("TICKERTUI_LOGGING__FORMAT", "JSON")

        settings = Settings()

        assert settings.fetch.max_attempts == 4
        assert settings.logging.format == "json"

    def test_yaml_with_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_WS_URL", "ws://localhost:9000")
        monkeypatch.delenv("TEST_LOG_LEVEL", raising=False)
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "binance:\n"
            "  ws_base_url: ${TEST_WS_URL}\n"
            "logging:\n"
            "  level: ${TEST_LOG_LEVEL:-DEBUG}\n"
            "buffer:\n"
            "  max_trades: 20\n"
        )

        settings = load_settings(str(config_file))

        assert settings.binance.ws_base_url == "ws://localhost:9000"
        assert settings.logging.level == "DEBUG"
        assert settings.buffer.max_trades == 20

    def test_missing_required_variable(self, monkeypatch):
        monkeypatch.delenv("TICKERTUI_MISSING", raising=False)
        with pytest.raises(ValueError):
            substitute_env_vars({'url': "${TICKERTUI_MISSING}"})

    def test_missing_config_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(str(tmp_path / "absent.yaml"))


@pytest.mark.unit
class TestPreferences:

    def test_missing_file_gives_defaults(self, tmp_path):
        prefs = load_preferences(tmp_path / "prefs.json")

        assert prefs.symbol == "BTCUSDT"
        assert prefs.active_timeframe is Timeframe.ONE_MONTH
        assert prefs.watchlist[:2] == ["BTCUSDT", "ETHUSDT"]

    def test_invalid_file_gives_defaults(self, tmp_path):
        path = tmp_path / "prefs.json"
        path.write_text("{not json")

        assert load_preferences(path) == Preferences().sanitized()

    def test_round_trip(self, tmp_path):
        path = tmp_path / "prefs.json"
        prefs = Preferences(
            watchlist=["ETHUSDT", "SOLUSDT"],
            selected_symbol=1,
            symbol="SOLUSDT",
            timeframe="7D",
            zoom=4,
        )

        save_preferences(path, prefs)

        assert json.loads(path.read_text())['timeframe'] == "7D"
        assert load_preferences(path) == prefs

    def test_sanitized_clamps_values(self):
        prefs = Preferences(
            watchlist=["ethusdt"],
            selected_symbol=9,
            symbol="DOGEUSDT",
            timeframe="10Y",
            zoom=500,
        ).sanitized()

        assert prefs.watchlist == ["ETHUSDT"]
        assert prefs.selected_symbol == 0
        assert prefs.symbol == "ETHUSDT"
        assert prefs.timeframe == "1M"
        assert prefs.zoom == 32

    def test_empty_watchlist_restored(self):
        assert Preferences(watchlist=[]).sanitized().watchlist == Preferences().watchlist


@pytest.mark.unit
class TestTimeframe:

    @pytest.mark.parametrize("label, interval, limit", [
        ("1D", "5m", 288),
        ("7D", "15m", 672),
        ("1M", "1h", 720),
        ("3M", "4h", 540),
        ("1Y", "1d", 365),
        ("ytd", "1d", 365),
    ])
    def test_mapping(self, label, interval, limit):
        timeframe = Timeframe.from_label(label)
        assert (timeframe.interval, timeframe.limit) == (interval, limit)

    def test_cycling_wraps(self):
        assert Timeframe.YEAR_TO_DATE.next() is Timeframe.ONE_DAY
        assert Timeframe.ONE_DAY.previous() is Timeframe.YEAR_TO_DATE

    def test_unknown_label(self):
        with pytest.raises(ValueError):
            Timeframe.from_label("2W")
