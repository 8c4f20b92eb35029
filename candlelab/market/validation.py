"""Structural validation and non-destructive repair of candle sequences."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence

import numpy as np

from ..utils.logging import get_logger
from ..utils.timeframes import timeframe_to_minutes
from .candles import OHLC_FIELDS, Candle, NormalizedCandle, candle_from_record

LOGGER = get_logger(__name__)

MAX_SPREAD_PERCENT = 10.0
MAX_GAP_PERCENT = 5.0
DEFAULT_MAX_GAP_SECONDS = 600
DEFAULT_FILL_SPACING_SECONDS = 300


@dataclass
class ValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _candle_issues(candle: Candle) -> tuple[List[str], List[str]]:
    errors: List[str] = []
    warnings: List[str] = []

    if not candle.time or candle.time <= 0:
        errors.append("Invalid timestamp")
    if min(candle.open, candle.high, candle.low, candle.close) <= 0:
        errors.append("Prices must be positive")
    if candle.volume < 0:
        errors.append("Volume cannot be negative")
    if candle.high < max(candle.open, candle.close):
        errors.append("High must be >= max(open, close)")
    if candle.low > min(candle.open, candle.close):
        errors.append("Low must be <= min(open, close)")

    avg_price = (candle.open + candle.close) / 2
    if avg_price > 0:
        spread_percent = (candle.high - candle.low) / avg_price * 100
        if spread_percent > MAX_SPREAD_PERCENT:
            warnings.append(f"Spread too wide: {spread_percent:.2f}%")
    return errors, warnings


def validate_candle(candle: Candle) -> ValidationResult:
    """Flag OHLC violations of a single candle; never raises."""
    errors, warnings = _candle_issues(candle)
    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


def validate_candle_sequence(candles: Sequence[Candle]) -> ValidationResult:
    """Validate every candle plus chronological order and open/close gaps."""
    if not candles:
        return ValidationResult(is_valid=False, errors=["Candle sequence is empty"])

    errors: List[str] = []
    warnings: List[str] = []
    for index, candle in enumerate(candles):
        candle_errors, candle_warnings = _candle_issues(candle)
        errors.extend(f"Candle {index}: {message}" for message in candle_errors)
        warnings.extend(f"Candle {index}: {message}" for message in candle_warnings)

    for index in range(1, len(candles)):
        prev = candles[index - 1]
        curr = candles[index]
        if curr.time <= prev.time:
            errors.append(f"Candle {index} is not in chronological order")
        avg_price = (prev.close + curr.open) / 2
        if avg_price <= 0:
            continue
        gap_percent = abs(curr.open - prev.close) / avg_price * 100
        if gap_percent > MAX_GAP_PERCENT:
            warnings.append(f"Excessive gap between candle {index - 1} and {index}: {gap_percent:.2f}%")

    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


def normalize_candle(candle: Candle) -> NormalizedCandle:
    """Repair a candle deterministically.

    Repair order: open from high/close, high and low from open/close, close
    falls back to open, then high/low are widened to cover the body and a
    negative volume is clamped to zero. A candle with no positive open, high
    or close has nothing to derive prices from; it is flagged and returned
    with its values untouched. Candles that need no repair keep their
    existing normalization flags, so the operation is idempotent.
    """
    if max(candle.open, candle.high, candle.close) <= 0:
        if isinstance(candle, NormalizedCandle) and candle.is_normalized:
            return candle
        return NormalizedCandle(
            time=candle.time,
            open=candle.open,
            high=candle.high,
            low=candle.low,
            close=candle.close,
            volume=candle.volume,
            is_normalized=True,
            original_data=Candle.as_dict(candle),
        )

    values: Dict[str, float] = {
        "open": candle.open,
        "high": candle.high,
        "low": candle.low,
        "close": candle.close,
        "volume": candle.volume,
    }
    modified = False

    if values["open"] <= 0:
        values["open"] = max(values["high"], values["close"]) * 0.99
        modified = True
    if values["high"] <= 0:
        values["high"] = max(values["open"], values["close"]) * 1.01
        modified = True
    if values["low"] <= 0:
        # open is positive here; a non-positive close is not a usable floor
        values["low"] = min(price for price in (values["open"], values["close"]) if price > 0) * 0.99
        modified = True
    if values["close"] <= 0:
        values["close"] = values["open"]
        modified = True

    body_high = max(values["open"], values["close"])
    body_low = min(values["open"], values["close"])
    if values["high"] < body_high:
        values["high"] = body_high
        modified = True
    if values["low"] > body_low:
        values["low"] = body_low
        modified = True

    if values["volume"] < 0:
        values["volume"] = 0.0
        modified = True

    if modified:
        return NormalizedCandle(
            time=candle.time,
            is_normalized=True,
            original_data=Candle.as_dict(candle),
            **values,
        )
    if isinstance(candle, NormalizedCandle):
        return candle
    return NormalizedCandle(time=candle.time, **values)


def fill_gaps(
    candles: Sequence[NormalizedCandle],
    max_gap_seconds: int = DEFAULT_MAX_GAP_SECONDS,
    fill_spacing_seconds: int = DEFAULT_FILL_SPACING_SECONDS,
) -> List[NormalizedCandle]:
    """Insert flat zero-volume candles into gaps wider than ``max_gap_seconds``."""
    if len(candles) <= 1:
        return list(candles)

    result: List[NormalizedCandle] = [candles[0]]
    for curr in candles[1:]:
        prev = result[-1]
        gap = curr.time - prev.time
        if gap > max_gap_seconds:
            fill_count = gap // fill_spacing_seconds - 1
            for step in range(1, fill_count + 1):
                result.append(
                    NormalizedCandle(
                        time=prev.time + step * fill_spacing_seconds,
                        open=prev.close,
                        high=prev.close,
                        low=prev.close,
                        close=prev.close,
                        volume=0.0,
                        is_normalized=True,
                    )
                )
        result.append(curr)
    return result


def normalize_candle_sequence(
    candles: Sequence[Candle],
    max_gap_seconds: int = DEFAULT_MAX_GAP_SECONDS,
    fill_spacing_seconds: int = DEFAULT_FILL_SPACING_SECONDS,
) -> List[NormalizedCandle]:
    """Normalize, sort by time and gap-fill into a new list."""
    if not candles:
        return []
    normalized = sorted((normalize_candle(candle) for candle in candles), key=lambda candle: candle.time)
    return fill_gaps(normalized, max_gap_seconds, fill_spacing_seconds)


AUDIT_OK = "OK"
AUDIT_WARNING = "WARNING"
AUDIT_ERROR = "ERROR"
_SEVERITY = {AUDIT_OK: 0, AUDIT_WARNING: 1, AUDIT_ERROR: 2}

REQUIRED_FIELDS = ("time",) + OHLC_FIELDS + ("volume",)
TYPE_SAMPLE_SIZE = 10
INTERVAL_SAMPLE_SIZE = 50
INTERVAL_TOLERANCE = 0.1
MAX_INTERVAL_DEVIATION_SHARE = 0.1
MAX_ZERO_VOLUME_PERCENT = 50.0
MAX_REPORTED_PRICE_ERRORS = 3
MIN_REALISM_SAMPLE = 10
MAX_CONSECUTIVE_RUN = 20
EXTREME_CHANGE = 0.05
MAX_EXTREME_CHANGE_SHARE = 0.01


@dataclass
class AuditCheck:
    status: str = AUDIT_OK
    issues: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)

    def flag(self, status: str, message: str) -> None:
        if _SEVERITY[status] > _SEVERITY[self.status]:
            self.status = status
        self.issues.append(message)


@dataclass
class AuditReport:
    status: str
    timeframe: str
    total_records: int
    checks: Dict[str, AuditCheck] = field(default_factory=dict)
    issues: List[str] = field(default_factory=list)
    sample: List[Dict[str, Any]] = field(default_factory=list)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(value, bool)


def _check_structure(records: Sequence[Mapping[str, Any]], usable: int) -> AuditCheck:
    check = AuditCheck()
    first = records[0]
    present = set(first)
    if "timestamp" in present:
        present.add("time")
    missing = [name for name in REQUIRED_FIELDS if name not in present]
    if missing:
        check.flag(AUDIT_ERROR, f"Missing required fields: {', '.join(missing)}")
    for index, record in enumerate(records[:TYPE_SAMPLE_SIZE]):
        if not (_is_number(record.get("open")) and _is_number(record.get("close"))):
            check.flag(AUDIT_WARNING, f"Record {index}: prices are not numbers")
    dropped = len(records) - usable
    if dropped:
        check.flag(AUDIT_WARNING, f"{dropped} records could not be read as candles")
    check.details = {
        "total_records": len(records),
        "fields_present": sorted(first),
        "unusable_records": dropped,
    }
    return check


def _check_granularity(candles: Sequence[Candle], timeframe: str) -> AuditCheck:
    check = AuditCheck()
    if len(candles) < 2:
        check.flag(AUDIT_WARNING, "Not enough candles to check granularity")
        return check

    expected = timeframe_to_minutes(timeframe) * 60
    times = np.array([candle.time for candle in candles], dtype=np.int64)
    duplicates = int(times.size - np.unique(times).size)
    if duplicates:
        check.flag(AUDIT_ERROR, f"{duplicates} duplicate timestamps found")

    intervals = np.diff(times[:INTERVAL_SAMPLE_SIZE])
    deviations = int((np.abs(intervals - expected) > expected * INTERVAL_TOLERANCE).sum())
    average = float(intervals.mean())
    if deviations > intervals.size * MAX_INTERVAL_DEVIATION_SHARE:
        check.flag(
            AUDIT_WARNING,
            f"Inconsistent intervals: expected {expected}s, found average {average:.1f}s",
        )
    check.details = {
        "expected_interval_seconds": expected,
        "avg_interval_seconds": average,
        "min_interval_seconds": int(intervals.min()),
        "max_interval_seconds": int(intervals.max()),
        "duplicate_timestamps": duplicates,
        "unique_timestamps": int(np.unique(times).size),
        "interval_deviations": deviations,
        "consistency_percent": (intervals.size - deviations) / intervals.size * 100,
    }
    return check


def _check_volume(candles: Sequence[Candle]) -> AuditCheck:
    check = AuditCheck()
    volumes = np.array([candle.volume for candle in candles], dtype=float)
    traded = volumes[volumes > 0]
    zero_percent = float((volumes.size - traded.size) / volumes.size * 100)
    if zero_percent > MAX_ZERO_VOLUME_PERCENT:
        check.flag(AUDIT_WARNING, f"{zero_percent:.1f}% of candles have zero volume")
    check.details = {
        "total_candles": int(volumes.size),
        "candles_with_volume": int(traded.size),
        "zero_volume_percent": zero_percent,
        "average_volume": float(traded.mean()) if traded.size else 0.0,
        "max_volume": float(volumes.max()),
        "min_volume": float(traded.min()) if traded.size else 0.0,
    }
    return check


def _check_prices(candles: Sequence[Candle]) -> AuditCheck:
    check = AuditCheck()
    invalid = 0
    for index, candle in enumerate(candles):
        if (
            candle.high < candle.low
            or not candle.low <= candle.open <= candle.high
            or not candle.low <= candle.close <= candle.high
        ):
            invalid += 1
            if invalid <= MAX_REPORTED_PRICE_ERRORS:
                check.flag(
                    AUDIT_ERROR,
                    f"Candle {index}: invalid OHLC "
                    f"(H:{candle.high} L:{candle.low} O:{candle.open} C:{candle.close})",
                )
    if invalid > MAX_REPORTED_PRICE_ERRORS:
        check.flag(AUDIT_ERROR, f"... and {invalid - MAX_REPORTED_PRICE_ERRORS} more candles with invalid OHLC")

    prices = np.array([[c.open, c.high, c.low, c.close] for c in candles], dtype=float)
    low, high = float(prices.min()), float(prices.max())
    check.details = {
        "invalid_candles": invalid,
        "validation_rate": (len(candles) - invalid) / len(candles) * 100,
        "min_price": low,
        "max_price": high,
        "variation_percent": (high - low) / low * 100 if low > 0 else float("nan"),
    }
    return check


def _longest_runs(candles: Sequence[Candle]) -> tuple[int, int]:
    bullish = bearish = max_bullish = max_bearish = 0
    for candle in candles:
        if candle.close > candle.open:
            bullish, bearish = bullish + 1, 0
            max_bullish = max(max_bullish, bullish)
        elif candle.close < candle.open:
            bullish, bearish = 0, bearish + 1
            max_bearish = max(max_bearish, bearish)
        else:
            bullish = bearish = 0
    return max_bullish, max_bearish


def _check_realism(candles: Sequence[Candle]) -> AuditCheck:
    check = AuditCheck()
    if len(candles) < MIN_REALISM_SAMPLE:
        check.flag(AUDIT_WARNING, "Not enough candles to check market realism")
        return check

    max_bullish, max_bearish = _longest_runs(candles)
    if max_bullish > MAX_CONSECUTIVE_RUN:
        check.flag(AUDIT_WARNING, f"{max_bullish} consecutive bullish candles")
    if max_bearish > MAX_CONSECUTIVE_RUN:
        check.flag(AUDIT_WARNING, f"{max_bearish} consecutive bearish candles")

    closes = np.array([candle.close for candle in candles], dtype=float)
    changes = np.abs(np.diff(closes)) / closes[:-1]
    extreme = int((changes > EXTREME_CHANGE).sum())
    if extreme > changes.size * MAX_EXTREME_CHANGE_SHARE:
        check.flag(AUDIT_WARNING, f"{extreme} extreme price changes (>5%)")
    check.details = {
        "max_consecutive_bullish": max_bullish,
        "max_consecutive_bearish": max_bearish,
        "average_change_percent": float(changes.mean() * 100),
        "max_change_percent": float(changes.max() * 100),
        "extreme_changes": extreme,
        "total_changes": int(changes.size),
    }
    return check


def audit_candles(
    candles: Sequence[Candle | Mapping[str, Any]],
    timeframe: str = "5min",
) -> AuditReport:
    """Run the data-quality audit over a fetched series.

    Accepts candles or raw records in the order they were received. Five
    checks run (structure, granularity, volume, prices, realism); the report
    status is the most severe status among them.
    """
    if not candles:
        report = AuditReport(status=AUDIT_ERROR, timeframe=timeframe, total_records=0)
        report.issues.append("No data to audit")
        return report

    records = [Candle.as_dict(item) if isinstance(item, Candle) else dict(item) for item in candles]
    parsed = [item if isinstance(item, Candle) else candle_from_record(item) for item in candles]
    usable = [candle for candle in parsed if candle is not None]

    checks = {"structure": _check_structure(records, len(usable))}
    if usable:
        checks["granularity"] = _check_granularity(usable, timeframe)
        checks["volume"] = _check_volume(usable)
        checks["prices"] = _check_prices(usable)
        checks["realism"] = _check_realism(usable)
    else:
        checks["structure"].flag(AUDIT_ERROR, "No usable candles")

    report = AuditReport(
        status=AUDIT_OK,
        timeframe=timeframe,
        total_records=len(records),
        checks=checks,
        sample=records[:5],
    )
    for check in checks.values():
        if _SEVERITY[check.status] > _SEVERITY[report.status]:
            report.status = check.status
        report.issues.extend(check.issues)
    LOGGER.info("Audit %s: %s records status=%s issues=%s", timeframe, len(records), report.status, len(report.issues))
    return report
