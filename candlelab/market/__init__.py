"""Market layer exports: candle types, generators, validation and resampling."""

from .candles import Candle, NormalizedCandle, candle_from_record, coerce_records
from .generator import MarketGenerator, MarketState, NoiseGenerator
from .resample import resample_candles
from .trend import TrendGenerator, generate_tick_series
from .validation import (
    AuditCheck,
    AuditReport,
    audit_candles,
    ValidationResult,
    fill_gaps,
    normalize_candle,
    normalize_candle_sequence,
    validate_candle,
    validate_candle_sequence,
)

__all__ = [
    "Candle",
    "NormalizedCandle",
    "candle_from_record",
    "coerce_records",
    "MarketGenerator",
    "MarketState",
    "NoiseGenerator",
    "resample_candles",
    "TrendGenerator",
    "generate_tick_series",
    "ValidationResult",
    "fill_gaps",
    "normalize_candle",
    "normalize_candle_sequence",
    "validate_candle",
    "validate_candle_sequence",
    "AuditCheck",
    "AuditReport",
    "audit_candles",
]
