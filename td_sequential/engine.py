"""Per-symbol TD Sequential engine.

Bars are processed one at a time, in arrival order. Each bar runs through
the stages below, every stage reading the current bar, its own carried
state and the output of the earlier stages for the same bar::

    price flip -> setup counts -> perfection, setup trend
               -> countdown -> qualification -> risk level

Only the last ``TDSequentialConfig.window_size`` bars are retained.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from typing import Iterable, List, Optional, Sequence

from .bars import Bar, BarWindow, price_flip
from .config import TDSequentialConfig
from .countdown import CountdownCounter, QualificationEvaluator
from .errors import InvariantViolation
from .risk import RiskLevelCalculator
from .setups import Direction, PerfectionEvaluator, SetupCounter, TrendLevelTracker

logger = logging.getLogger(__name__)

# event field -> trade direction it belongs to
EVENT_DIRECTIONS = {
    "setup_sell": "sell",
    "setup_buy": "buy",
    "setup_sell_perfected": "sell",
    "setup_buy_perfected": "buy",
    "countdown_qualifier_up": "sell",
    "countdown_qualifier_down": "buy",
    "countdown_sell": "sell",
    "countdown_buy": "buy",
    "countdown_sell_deferred": "sell",
    "countdown_buy_deferred": "buy",
    "countdown_recycle_up": "sell",
    "countdown_recycle_down": "buy",
}


@dataclass(frozen=True)
class TDRecord:
    """Engine output for one bar.

    Event fields hold the bar's reference price on the bar the event fires
    and ``None`` otherwise.
    """

    index: int
    price: float
    price_flip: str
    setup_count_up: int
    setup_count_down: int
    setup_sell: Optional[float] = None
    setup_buy: Optional[float] = None
    setup_sell_perfected: Optional[float] = None
    setup_buy_perfected: Optional[float] = None
    setup_sell_perfection: str = "UNDEFINED"
    setup_buy_perfection: str = "UNDEFINED"
    trend_support: Optional[float] = None
    trend_resistance: Optional[float] = None
    trend_flipped: bool = False
    countdown_count_up: Optional[int] = None
    countdown_count_down: Optional[int] = None
    countdown_up_impulse: Optional[int] = None
    countdown_down_impulse: Optional[int] = None
    countdown_qualifier_up: Optional[float] = None
    countdown_qualifier_down: Optional[float] = None
    countdown_sell: Optional[float] = None
    countdown_buy: Optional[float] = None
    countdown_sell_deferred: Optional[float] = None
    countdown_buy_deferred: Optional[float] = None
    countdown_recycle_up: Optional[float] = None
    countdown_recycle_down: Optional[float] = None
    risk_level: Optional[float] = None

    def events(self) -> List[str]:
        """Names of the event fields that fired on this bar."""
        return [name for name in EVENT_DIRECTIONS if getattr(self, name) is not None]

    def to_dict(self) -> dict:
        return asdict(self)


RECORD_FIELDS = [f.name for f in fields(TDRecord)]


class TDSequential:
    """TD Sequential state for a single symbol.

    >>> engine = TDSequential()
    >>> record = engine.update(10.0, 10.5, 9.5, 10.2)
    >>> record.setup_count_up
    0
    """

    def __init__(self, config: Optional[TDSequentialConfig] = None):
        self.config = config or TDSequentialConfig()
        self.window = BarWindow(self.config.window_size)
        self.setup = SetupCounter(self.config)
        self.perfection = {
            d: PerfectionEvaluator(d, self.config) for d in Direction
        }
        self.trend = TrendLevelTracker(self.config)
        self.countdown = {d: CountdownCounter(d, self.config) for d in Direction}
        self.qualification = {d: QualificationEvaluator(d, self.config) for d in Direction}
        self.risk = RiskLevelCalculator(self.config)
        self.diagnostics: List[InvariantViolation] = []
        self._index = 0

    @property
    def bars_processed(self) -> int:
        return self._index

    def update(self, open_: float, high: float, low: float, close: float) -> TDRecord:
        """Ingest the next bar and return its record."""
        bar = Bar.from_ohlc(self._index, open_, high, low, close, self.config.price_source)
        self._index += 1
        return self._process(bar)

    def _process(self, bar: Bar) -> TDRecord:
        window = self.window
        window.append(bar)
        previous = window.ago(self.config.setup_lookback)
        flip = price_flip(bar.price, previous.price if previous is not None else None)

        setup = self.setup
        setup.update(bar, flip)
        if setup.violation is not None:
            self.diagnostics.append(setup.violation)

        perfected = {d: self.perfection[d].update(bar, setup) for d in Direction}
        self.trend.update(window, setup)

        for d in Direction:
            self.countdown[d].update(window, setup, self.trend)
            self.qualification[d].update(bar, self.countdown[d])

        sell_cd = self.countdown[Direction.SELL]
        buy_cd = self.countdown[Direction.BUY]
        sell_q = self.qualification[Direction.SELL]
        buy_q = self.qualification[Direction.BUY]
        if setup.recycled is not None:
            logger.debug("%s recycle on bar %d", setup.recycled.value, bar.index)

        risk = self.risk.update(bar, window, setup, sell_q.completed, buy_q.completed)

        def when(condition: bool) -> Optional[float]:
            return bar.price if condition else None

        qual_bar = self.config.countdown_qual_bar
        qualifying = self.config.qualification_enabled
        return TDRecord(
            index=bar.index,
            price=bar.price,
            price_flip=flip.name,
            setup_count_up=setup.up,
            setup_count_down=setup.down,
            setup_sell=when(setup.completed is Direction.SELL),
            setup_buy=when(setup.completed is Direction.BUY),
            setup_sell_perfected=when(perfected[Direction.SELL]),
            setup_buy_perfected=when(perfected[Direction.BUY]),
            setup_sell_perfection=self.perfection[Direction.SELL].mask.name,
            setup_buy_perfection=self.perfection[Direction.BUY].mask.name,
            trend_support=self.trend.support,
            trend_resistance=self.trend.resistance,
            trend_flipped=self.trend.flipped,
            countdown_count_up=sell_cd.count,
            countdown_count_down=buy_cd.count,
            countdown_up_impulse=sell_cd.impulse,
            countdown_down_impulse=buy_cd.impulse,
            countdown_qualifier_up=when(qualifying and sell_cd.impulse == qual_bar),
            countdown_qualifier_down=when(qualifying and buy_cd.impulse == qual_bar),
            countdown_sell=when(sell_q.completed),
            countdown_buy=when(buy_q.completed),
            countdown_sell_deferred=when(sell_q.deferred),
            countdown_buy_deferred=when(buy_q.deferred),
            countdown_recycle_up=when(setup.recycled is Direction.SELL),
            countdown_recycle_down=when(setup.recycled is Direction.BUY),
            risk_level=risk,
        )

    def run(self, bars: Iterable[Sequence[float]]) -> List[TDRecord]:
        """Process ``(open, high, low, close)`` tuples in order."""
        return [self.update(*row[:4]) for row in bars]
