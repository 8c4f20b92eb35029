from __future__ import annotations

import pydantic
import pytest

from candlelab import config


def write_config(tmp_path, text: str):
    path = tmp_path / "settings.yaml"
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("CANDLELAB_SYMBOL", "CANDLELAB_TIMEFRAME", "CANDLELAB_DATA_URL", "CANDLELAB_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config, "load_dotenv", lambda *args, **kwargs: False)
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()


def test_yaml_values_override_defaults(tmp_path) -> None:
    path = write_config(
        tmp_path,
        "backtest:\n  initial_balance: 2500\nstrategy:\n  short_period: 3\n  long_period: 5\n",
    )
    settings = config.load_settings(path)

    assert settings.backtest.initial_balance == 2500
    assert settings.backtest.commission_rate == pytest.approx(0.001)
    assert settings.strategy.short_period == 3
    assert settings.replay.base_tick_ms == 1_000
    assert settings.data.symbol == "XAUUSD"


def test_empty_file_gives_defaults(tmp_path) -> None:
    settings = config.load_settings(write_config(tmp_path, ""))
    assert settings == config.Settings()


def test_environment_overrides(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("CANDLELAB_SYMBOL", "BTCUSD")
    monkeypatch.setenv("CANDLELAB_TIMEFRAME", "1h")
    monkeypatch.setenv("CANDLELAB_DATA_URL", "http://example.test/v1")
    monkeypatch.setenv("CANDLELAB_API_KEY", "secret")

    settings = config.load_settings(write_config(tmp_path, "data:\n  symbol: EURUSD\n"))
    assert settings.data.symbol == "BTCUSD"
    assert settings.data.timeframe == "1h"
    assert settings.data.base_url == "http://example.test/v1"
    assert settings.data.api_key == "secret"


def test_invalid_values_are_rejected(tmp_path) -> None:
    with pytest.raises(pydantic.ValidationError):
        config.load_settings(write_config(tmp_path, "replay:\n  speed: 0\n"))


def test_missing_file_raises(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        config.load_settings(tmp_path / "missing.yaml")


def test_get_settings_reads_default_path(tmp_path, monkeypatch) -> None:
    configs = tmp_path / "configs"
    configs.mkdir()
    (configs / "settings.yaml").write_text("generator:\n  seed: 12\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    settings = config.get_settings()
    assert settings.generator.seed == 12
    assert config.get_settings() is settings


def test_shipped_settings_file_is_valid() -> None:
    from pathlib import Path

    path = Path(__file__).resolve().parents[1] / "configs" / "settings.yaml"
    settings = config.load_settings(path)
    assert settings.generator.initial_price == 50_000
    assert settings.strategy.long_period == 20
