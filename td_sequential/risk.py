"""TD Risk Level."""
from __future__ import annotations

from typing import Optional

from .bars import Bar, BarWindow, is_missing
from .config import TDSequentialConfig
from .setups import Direction, SetupCounter


class RiskLevelCalculator:
    """Protective price level, held between trigger events.

    Sell setups and up recycles set it to the highest high of the last
    ``setup_bars`` bars plus that bar's true range; Buy setups and down
    recycles to the lowest low minus its true range. Countdown events do
    the same over ``countdown_bars``. Starts at the first bar's low.
    """

    def __init__(self, config: TDSequentialConfig):
        self.setup_bars = config.setup_bars
        self.countdown_bars = config.countdown_bars
        self.level: Optional[float] = None

    def _above(self, window: BarWindow, length: int) -> Optional[float]:
        bar, offset = window.highest(length)
        if bar is None:
            return self.level
        return bar.high + window.true_range_at(offset)

    def _below(self, window: BarWindow, length: int) -> Optional[float]:
        bar, offset = window.lowest(length)
        if bar is None:
            return self.level
        return bar.low - window.true_range_at(offset)

    def update(
        self,
        bar: Bar,
        window: BarWindow,
        setup: SetupCounter,
        sell_countdown: bool = False,
        buy_countdown: bool = False,
    ) -> Optional[float]:
        if setup.completed is Direction.SELL or setup.recycled is Direction.SELL:
            self.level = self._above(window, self.setup_bars)
        elif setup.completed is Direction.BUY or setup.recycled is Direction.BUY:
            self.level = self._below(window, self.setup_bars)
        elif sell_countdown:
            self.level = self._above(window, self.countdown_bars)
        elif buy_countdown:
            self.level = self._below(window, self.countdown_bars)
        elif is_missing(self.level):
            self.level = bar.low
        return self.level
