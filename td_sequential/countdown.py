"""TD Countdowns and their qualification."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from .bars import Bar, BarWindow, CountHistory, is_missing
from .config import TDSequentialConfig
from .setups import Direction, SetupCounter, TrendLevelTracker

logger = logging.getLogger(__name__)


class CountdownCounter:
    """Non-consecutive count of price moves for one direction.

    A Sell countdown starts on the Sell setup bar (at 1 if that bar already
    counts, else 0) and then adds one on every bar whose price is at or
    above the high ``countdown_lookback`` bars earlier. It is cancelled by
    a Buy setup, by price closing below the setup trend support, or by a
    recycle (up count reaching twice ``setup_bars``). The Buy countdown
    mirrors it with lows and resistance.

    ``count`` is the stair-step view (``None`` when not counting);
    ``impulse`` is the count on the bar it advanced and ``None`` otherwise.
    """

    def __init__(self, direction: Direction, config: TDSequentialConfig):
        self.direction = direction
        self.lookback = config.countdown_lookback
        self.aggressive = config.countdown_aggressive
        self.count: Optional[int] = None
        self.impulse: Optional[int] = None
        self.cancelled = False
        self.history = CountHistory()

    def comparison(self, window: BarWindow) -> Optional[bool]:
        """Whether the newest bar counts; ``None`` without enough history."""
        bar = window.ago(0)
        previous = window.ago(self.lookback)
        if bar is None or previous is None:
            return None
        if self.direction is Direction.SELL:
            current = bar.high if self.aggressive else bar.price
            target = previous.high
        else:
            current = bar.low if self.aggressive else bar.price
            target = previous.low
        if is_missing(current) or is_missing(target):
            return None
        return current >= target if self.direction is Direction.SELL else current <= target

    def _crossed(self, bar: Bar, trend: TrendLevelTracker) -> bool:
        if self.direction is Direction.SELL:
            return trend.support is not None and bar.price < trend.support
        return trend.resistance is not None and bar.price > trend.resistance

    def update(self, window: BarWindow, setup: SetupCounter, trend: TrendLevelTracker) -> None:
        bar = window.ago(0)
        moved = self.comparison(window)
        self.cancelled = False

        if moved is None:
            # hold the count
            pass
        elif (
            setup.completed is self.direction.opposite
            or setup.recycled is self.direction
            or self._crossed(bar, trend)
        ):
            self.cancelled = self.count is not None
            self.count = None
            self.history.reset()
        elif setup.completed is self.direction:
            self.history.reset()
            self.count = 1 if moved else 0
            if moved:
                self.history.log(1, bar)
        elif self.count is not None and moved:
            self.count += 1
            self.history.log(self.count, bar)

        self.impulse = self.history.impulse(bar.index) if moved else None
        if self.cancelled:
            logger.debug("%s countdown cancelled on bar %d", self.direction.value, bar.index)


class QualificationMask(Enum):
    UNDEFINED = 0
    DEFERRED = 1
    QUALIFIED = 2


class QualificationEvaluator:
    """Qualification of the countdowns of one direction.

    With ``countdown_qual_bar < countdown_bars`` the countdown bar is
    qualified when its high (sell) reaches the price of the qualifier-bar
    count, else the countdown is deferred and each further counted bar is
    checked. Otherwise every countdown bar is qualified.
    """

    def __init__(self, direction: Direction, config: TDSequentialConfig):
        self.direction = direction
        self.bars = config.countdown_bars
        self.qual_bar = config.countdown_qual_bar
        self.enabled = config.qualification_enabled
        self.mask = QualificationMask.UNDEFINED
        self.qualify_price: Optional[float] = None
        self.completed = False
        self.deferred = False

    def _reaches(self, bar: Bar) -> bool:
        value = bar.high if self.direction is Direction.SELL else bar.low
        if is_missing(value) or is_missing(self.qualify_price):
            return False
        if self.direction is Direction.SELL:
            return value >= self.qualify_price
        return value <= self.qualify_price

    def update(self, bar: Bar, countdown: CountdownCounter) -> None:
        impulse = countdown.impulse

        if not self.enabled:
            self.mask = QualificationMask.QUALIFIED if countdown.count == self.bars else QualificationMask.UNDEFINED
        else:
            if impulse == self.qual_bar:
                self.qualify_price = countdown.history.bar_at(self.qual_bar).price
            if self.mask is QualificationMask.QUALIFIED or countdown.count is None:
                self.mask = QualificationMask.UNDEFINED
            elif impulse == self.bars:
                self.mask = QualificationMask.QUALIFIED if self._reaches(bar) else QualificationMask.DEFERRED
            elif (
                self.mask is QualificationMask.DEFERRED
                and impulse is not None
                and impulse > self.bars
                and self._reaches(bar)
            ):
                self.mask = QualificationMask.QUALIFIED
            if countdown.count is None:
                self.qualify_price = None

        self.completed = impulse is not None and self.mask is QualificationMask.QUALIFIED
        self.deferred = (
            impulse is not None
            and impulse >= self.bars
            and self.mask is QualificationMask.DEFERRED
        )
        if self.completed:
            logger.debug("%s countdown complete on bar %d at %s", self.direction.value, bar.index, bar.price)
