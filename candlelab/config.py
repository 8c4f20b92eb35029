"""Configuration loading utilities for the candle sandbox."""
from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class GeneratorSettings(BaseModel):
    initial_price: float = Field(50_000.0, gt=0.0)
    interval_minutes: int = Field(5, ge=1)
    session_open_hour: int = Field(9, ge=0, le=23)
    seed: int | None = None


class NormalizerSettings(BaseModel):
    max_gap_seconds: int = Field(600, ge=1)
    fill_spacing_seconds: int = Field(300, ge=1)


class ReplaySettings(BaseModel):
    speed: float = Field(1.0, gt=0.0)
    base_tick_ms: float = Field(1_000.0, gt=0.0)
    min_tick_ms: float = Field(50.0, gt=0.0)


class BacktestSettings(BaseModel):
    initial_balance: float = Field(10_000.0, gt=0.0)
    commission_rate: float = Field(0.001, ge=0.0)
    slippage_rate: float = Field(0.0005, ge=0.0)


class StrategySettings(BaseModel):
    short_period: int = Field(10, ge=1)
    long_period: int = Field(20, ge=2)


class DataSourceSettings(BaseModel):
    base_url: str = "http://localhost:54321/functions/v1"
    api_key: str | None = None
    symbol: str = "XAUUSD"
    timeframe: str = "5min"
    limit: int = Field(1_000, ge=1)
    timeout_seconds: float = Field(15.0, gt=0.0)
    max_retries: int = Field(3, ge=1)


class Settings(BaseModel):
    generator: GeneratorSettings = Field(default_factory=GeneratorSettings)
    normalizer: NormalizerSettings = Field(default_factory=NormalizerSettings)
    replay: ReplaySettings = Field(default_factory=ReplaySettings)
    backtest: BacktestSettings = Field(default_factory=BacktestSettings)
    strategy: StrategySettings = Field(default_factory=StrategySettings)
    data: DataSourceSettings = Field(default_factory=DataSourceSettings)


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_settings(path: Path | str = Path("configs/settings.yaml")) -> Settings:
    """Load sandbox settings from YAML and environment variables."""
    load_dotenv()
    path = Path(path)
    raw = _load_yaml(path)
    settings = Settings.model_validate(raw)

    # allow overriding via environment variables
    symbol = os.getenv("CANDLELAB_SYMBOL")
    timeframe = os.getenv("CANDLELAB_TIMEFRAME")
    data_url = os.getenv("CANDLELAB_DATA_URL")
    api_key = os.getenv("CANDLELAB_API_KEY")
    if symbol:
        settings.data.symbol = symbol
    if timeframe:
        settings.data.timeframe = timeframe
    if data_url:
        settings.data.base_url = data_url
    if api_key:
        settings.data.api_key = api_key
    return settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
