"""TD Setups: setup counting, perfection and setup trend (TDST) levels."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Optional

from .bars import Bar, BarWindow, CountHistory, FlipState, is_missing
from .config import TREND_WINDOW_MULTIPLES, TDSequentialConfig
from .errors import InvariantViolation

logger = logging.getLogger(__name__)


class Direction(Enum):
    """Sell setups/countdowns come from up counts, buy ones from down counts."""
    SELL = "sell"
    BUY = "buy"

    @property
    def opposite(self) -> "Direction":
        return Direction.BUY if self is Direction.SELL else Direction.SELL


class SetupCounter:
    """Mutually exclusive up/down run-length counters.

    An up count increments on every ``UP`` flip and resets otherwise; the
    down count mirrors it. With ``setup_include_equal`` an ``EQUAL`` flip
    extends whichever run was active on the previous bar. A Sell setup
    completes on the bar the up count equals ``setup_bars``; a count of
    twice that value is a recycle.
    """

    def __init__(self, config: TDSequentialConfig):
        self.bars = config.setup_bars
        self.include_equal = config.setup_include_equal
        self.up = 0
        self.down = 0
        self.up_history = CountHistory()
        self.down_history = CountHistory()
        self.completed: Optional[Direction] = None
        self.recycled: Optional[Direction] = None
        self.violation: Optional[InvariantViolation] = None
        self._since: Dict[Direction, Optional[int]] = {Direction.SELL: None, Direction.BUY: None}
        self._since_before: Dict[Direction, Optional[int]] = dict(self._since)

    def count(self, direction: Direction) -> int:
        return self.up if direction is Direction.SELL else self.down

    def history(self, direction: Direction) -> CountHistory:
        return self.up_history if direction is Direction.SELL else self.down_history

    def bars_since(self, direction: Direction) -> Optional[int]:
        """Bars since the latest completion of ``direction`` (0 on the completion bar)."""
        return self._since[direction]

    def bars_since_before(self, direction: Direction) -> Optional[int]:
        """``bars_since`` as it stood on the previous bar."""
        return self._since_before[direction]

    def update(self, bar: Bar, flip: FlipState) -> None:
        self._since_before = dict(self._since)
        extend = self.include_equal and flip is FlipState.EQUAL
        up = self.up + 1 if flip is FlipState.UP or (extend and self.up) else 0
        down = self.down + 1 if flip is FlipState.DOWN or (extend and self.down) else 0

        self.violation = None
        if up and down:
            # tie-break: keep the up run
            self.violation = InvariantViolation(
                f"setup up count {up} and down count {down} active on bar {bar.index}",
                index=bar.index,
            )
            logger.warning("%s; keeping the up count", self.violation)
            down = 0
        self.up, self.down = up, down

        for count, history in ((up, self.up_history), (down, self.down_history)):
            if count:
                history.log(count, bar)
            else:
                history.reset()

        self.completed = None
        if up == self.bars:
            self.completed = Direction.SELL
        elif down == self.bars:
            self.completed = Direction.BUY

        self.recycled = None
        if up == 2 * self.bars:
            self.recycled = Direction.SELL
        elif down == 2 * self.bars:
            self.recycled = Direction.BUY

        for direction, since in self._since.items():
            if direction is self.completed:
                self._since[direction] = 0
            elif since is not None:
                self._since[direction] = since + 1

        if self.completed is not None:
            logger.debug("%s setup complete on bar %d at %s", self.completed.value, bar.index, bar.price)


class PerfectionMask(Enum):
    UNDEFINED = 0
    DEFERRED = 1
    PERFECTED = 2


class PerfectionEvaluator:
    """Perfection of the setups of one direction.

    For a Sell setup with the traditional settings the reference price is the
    higher of the highs at counts 6 and 7. The setup is perfected when the
    high of count 8 or 9 reaches it; otherwise the evaluation is deferred and
    every later bar is checked until it succeeds or a Buy setup cancels it.
    A deferred evaluation rolls into the next Sell setup when one appears.
    """

    def __init__(self, direction: Direction, config: TDSequentialConfig):
        self.direction = direction
        self.bars = config.setup_bars
        self.lookback = config.setup_perf_lookback
        self.mask = PerfectionMask.UNDEFINED
        self.reference: Optional[float] = None

    def _extreme(self, bar: Optional[Bar]) -> Optional[float]:
        if bar is None:
            return None
        return bar.high if self.direction is Direction.SELL else bar.low

    def _reaches(self, value: Optional[float]) -> bool:
        if is_missing(value) or is_missing(self.reference):
            return False
        if self.direction is Direction.SELL:
            return value >= self.reference
        return value <= self.reference

    def _reference_price(self, history: CountHistory) -> Optional[float]:
        first = self._extreme(history.bar_at(self.bars - self.lookback))
        second = self._extreme(history.bar_at(self.bars - self.lookback + 1))
        if is_missing(first):
            return second
        if is_missing(second):
            return first
        if self.direction is Direction.SELL:
            return first if first >= second else second
        return first if first <= second else second

    def update(self, bar: Bar, setup: SetupCounter) -> bool:
        """Advance the mask; return True on the bar the setup becomes perfected."""
        completed = setup.completed is self.direction
        history = setup.history(self.direction)
        if completed:
            self.reference = self._reference_price(history)

        if self.mask is PerfectionMask.PERFECTED or setup.completed is self.direction.opposite:
            self.mask = PerfectionMask.UNDEFINED
        elif completed:
            before = self._extreme(history.bar_at(self.bars - 1))
            if self._reaches(before) or self._reaches(self._extreme(bar)):
                self.mask = PerfectionMask.PERFECTED
            else:
                self.mask = PerfectionMask.DEFERRED
        elif self.mask is PerfectionMask.DEFERRED and self._reaches(self._extreme(bar)):
            self.mask = PerfectionMask.PERFECTED
        return self.mask is PerfectionMask.PERFECTED


class TrendLevelTracker:
    """TD Setup Trend support and resistance.

    Support is the lowest low of the window ending on a Sell setup bar,
    resistance the highest high of the window ending on a Buy setup bar.
    The window is ``setup_bars`` long, or with ``setup_trend_extend`` the
    smallest multiple of it (up to 10) that reaches back to the previous
    setup of the same kind.
    """

    def __init__(self, config: TDSequentialConfig):
        self.bars = config.setup_bars
        self.extend = config.setup_trend_extend
        self.support: Optional[float] = None
        self.resistance: Optional[float] = None

    def window(self, bars_since_previous: Optional[int]) -> int:
        if not self.extend:
            return self.bars
        if bars_since_previous is not None:
            for multiple in range(1, TREND_WINDOW_MULTIPLES):
                if bars_since_previous <= multiple * self.bars:
                    return multiple * self.bars
        return TREND_WINDOW_MULTIPLES * self.bars

    @property
    def flipped(self) -> bool:
        """Support above resistance."""
        if self.support is None or self.resistance is None:
            return False
        return self.support > self.resistance

    def update(self, window: BarWindow, setup: SetupCounter) -> None:
        if setup.completed is Direction.SELL:
            length = self.window(setup.bars_since_before(Direction.SELL))
            low_bar, _ = window.lowest(length)
            if low_bar is not None:
                self.support = low_bar.low
        elif setup.completed is Direction.BUY:
            length = self.window(setup.bars_since_before(Direction.BUY))
            high_bar, _ = window.highest(length)
            if high_bar is not None:
                self.resistance = high_bar.high
