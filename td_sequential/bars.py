"""Bars, price flips and the bounded bar window."""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)


def is_missing(value: Optional[float]) -> bool:
    return value is None or bool(np.isnan(value))


def reference_price(source: str, open_: float, high: float, low: float, close: float) -> float:
    """Return the configured price field of a bar."""
    if source == "close":
        return close
    if source == "open":
        return open_
    if source == "high":
        return high
    if source == "low":
        return low
    if source == "hl2":
        return (high + low) / 2.0
    if source == "hlc3":
        return (high + low + close) / 3.0
    if source == "ohlc4":
        return (open_ + high + low + close) / 4.0
    raise ValueError(f"unknown price source {source!r}")


def _to_float(index: int, value) -> float:
    """Price as a float; unparseable or missing values become NaN."""
    if value is None:
        return np.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.debug("bar %d: non-numeric price %r treated as missing", index, value)
        return np.nan


@dataclass(frozen=True)
class Bar:
    index: int
    open: float
    high: float
    low: float
    close: float
    price: float

    @classmethod
    def from_ohlc(
        cls, index: int, open_: float, high: float, low: float, close: float, source: str = "close"
    ) -> "Bar":
        open_, high, low, close = (_to_float(index, v) for v in (open_, high, low, close))
        return cls(index, open_, high, low, close, reference_price(source, open_, high, low, close))


class FlipState(Enum):
    UP = "up"
    DOWN = "down"
    EQUAL = "equal"
    UNDEFINED = "undefined"


def price_flip(price: Optional[float], previous: Optional[float]) -> FlipState:
    """Classify ``price`` against the price ``lookback`` bars earlier."""
    if is_missing(price) or is_missing(previous):
        return FlipState.UNDEFINED
    if price > previous:
        return FlipState.UP
    if price < previous:
        return FlipState.DOWN
    return FlipState.EQUAL


def true_range(bar: Bar, previous: Optional[Bar]) -> float:
    """True range of ``bar``; the first bar falls back to its high-low range."""
    hl = bar.high - bar.low
    if previous is None or is_missing(previous.close):
        return hl
    return max(hl, abs(bar.high - previous.close), abs(bar.low - previous.close))


class BarWindow:
    """The last ``size`` bars, newest at offset 0."""

    def __init__(self, size: int):
        self._bars: deque = deque(maxlen=size)

    def __len__(self) -> int:
        return len(self._bars)

    def append(self, bar: Bar) -> None:
        self._bars.append(bar)

    def ago(self, offset: int) -> Optional[Bar]:
        """Bar ``offset`` positions back, ``None`` if not held."""
        if offset < 0 or offset >= len(self._bars):
            return None
        return self._bars[-1 - offset]

    def _extreme(self, length: int, key: Callable[[Bar], float], better: Callable[[float, float], bool]) -> Tuple[Optional[Bar], int]:
        best: Optional[Bar] = None
        best_offset = -1
        for offset in range(min(length, len(self._bars))):
            bar = self._bars[-1 - offset]
            value = key(bar)
            if is_missing(value):
                continue
            if best is None or better(value, key(best)):
                best, best_offset = bar, offset
        return best, best_offset

    def highest(self, length: int) -> Tuple[Optional[Bar], int]:
        """Most recent bar holding the highest high over ``length`` bars, and its offset."""
        return self._extreme(length, lambda b: b.high, lambda a, b: a > b)

    def lowest(self, length: int) -> Tuple[Optional[Bar], int]:
        """Most recent bar holding the lowest low over ``length`` bars, and its offset."""
        return self._extreme(length, lambda b: b.low, lambda a, b: a < b)

    def true_range_at(self, offset: int) -> Optional[float]:
        bar = self.ago(offset)
        if bar is None:
            return None
        return true_range(bar, self.ago(offset + 1))


class CountHistory:
    """Change log of a counter.

    Keeps the reverse index ``count -> bar`` of the most recent bar on which
    the counter took each value, plus the latest change. The impulse view at
    bar K is the value logged on K (``None`` otherwise); the stair-step view
    is the latest logged value.
    """

    def __init__(self) -> None:
        self._bars: Dict[int, Bar] = {}
        self._latest: Optional[Tuple[int, int]] = None

    def log(self, value: int, bar: Bar) -> None:
        self._bars[value] = bar
        self._latest = (bar.index, value)

    def reset(self) -> None:
        self._bars.clear()
        self._latest = None

    def bar_at(self, value: int) -> Optional[Bar]:
        """Most recent bar where the count equalled ``value``."""
        return self._bars.get(value)

    def impulse(self, index: int) -> Optional[int]:
        if self._latest is not None and self._latest[0] == index:
            return self._latest[1]
        return None

    @property
    def stair_step(self) -> Optional[int]:
        return self._latest[1] if self._latest is not None else None
