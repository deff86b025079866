"""Engine configuration."""
from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping

from .errors import ConfigurationError

PRICE_SOURCES = ("open", "high", "low", "close", "hl2", "hlc3", "ohlc4")

# Extended trend windows step through 1..10 multiples of the setup length.
TREND_WINDOW_MULTIPLES = 10

# field -> minimum accepted value
_INT_MINIMUMS = {
    "setup_bars": 4,
    "setup_lookback": 1,
    "setup_perf_lookback": 1,
    "countdown_bars": 3,
    "countdown_lookback": 1,
    "countdown_qual_bar": 3,
}

_BOOL_FIELDS = (
    "setup_include_equal",
    "setup_trend_extend",
    "countdown_aggressive",
)


@dataclass(frozen=True)
class TDSequentialConfig:
    """Parameters for the TD Sequential engine.

    Parameters
    ----------
    price_source: str
        Bar price used for comparisons (``close``, ``hlc3``, ``ohlc4``...).
    setup_bars: int
        Run length that completes a setup (traditionally 9).
    setup_lookback: int
        Offset of the bar a setup price is compared against (traditionally 4).
    setup_include_equal: bool
        Equal prices extend the active setup run instead of breaking it.
    setup_perf_lookback: int
        Counts ``setup_bars - n`` and ``setup_bars - n + 1`` give the
        perfection reference price (traditionally 3, i.e. counts 6 and 7).
    setup_trend_extend: bool
        Search support/resistance back to the previous setup of the same kind.
    countdown_bars: int
        Count that completes a countdown (traditionally 13).
    countdown_lookback: int
        Offset of the bar a countdown price is compared against (traditionally 2).
    countdown_qual_bar: int
        Countdown count whose price qualifies the countdown event
        (traditionally 8). Qualification is disabled when it is not below
        ``countdown_bars``.
    countdown_aggressive: bool
        Compare bar highs/lows instead of ``price_source``.
    """

    price_source: str = "close"
    setup_bars: int = 9
    setup_lookback: int = 4
    setup_include_equal: bool = False
    setup_perf_lookback: int = 3
    setup_trend_extend: bool = False
    countdown_bars: int = 13
    countdown_lookback: int = 2
    countdown_qual_bar: int = 8
    countdown_aggressive: bool = False

    def __post_init__(self) -> None:
        if self.price_source not in PRICE_SOURCES:
            raise ConfigurationError(
                f"price_source must be one of {PRICE_SOURCES}, got {self.price_source!r}"
            )
        for name, minimum in _INT_MINIMUMS.items():
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
            if value < minimum:
                raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
        for name in _BOOL_FIELDS:
            if not isinstance(getattr(self, name), bool):
                raise ConfigurationError(f"{name} must be a boolean, got {getattr(self, name)!r}")
        if self.setup_perf_lookback >= self.setup_bars:
            raise ConfigurationError(
                "setup_perf_lookback must be < setup_bars "
                f"({self.setup_perf_lookback} >= {self.setup_bars})"
            )

    @property
    def qualification_enabled(self) -> bool:
        return self.countdown_qual_bar < self.countdown_bars

    @property
    def window_size(self) -> int:
        """Number of trailing bars the engine keeps."""
        return max(
            TREND_WINDOW_MULTIPLES * self.setup_bars,
            self.countdown_bars,
            self.setup_lookback + 1,
            self.countdown_lookback + 1,
        ) + 1

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TDSequentialConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {unknown}")
        return cls(**dict(data))

    @classmethod
    def from_json(cls, path: str | Path) -> "TDSequentialConfig":
        with Path(path).open() as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as exc:
                raise ConfigurationError(f"Invalid JSON in {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} must contain a JSON object")
        return cls.from_mapping(data)
