"""DataFrame front end for the TD Sequential engine."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Mapping, Optional

import numpy as np
import pandas as pd

from .config import TDSequentialConfig
from .engine import EVENT_DIRECTIONS, RECORD_FIELDS, TDSequential
from .errors import DataError

logger = logging.getLogger(__name__)

OHLC = ["Open", "High", "Low", "Close"]


def normalize_ohlc(df: pd.DataFrame) -> pd.DataFrame:
    """Return ``df`` with title-cased ``Open/High/Low/Close`` columns.

    Column names are matched case-insensitively and MultiIndex columns
    (as returned by ``yfinance``) are flattened to their first level.
    """
    out = df.copy()
    if isinstance(out.columns, pd.MultiIndex):
        out.columns = out.columns.get_level_values(0)
    cols = {str(c).lower(): c for c in out.columns}
    missing = [c for c in OHLC if c.lower() not in cols]
    if missing:
        raise DataError(f"DataFrame missing required columns: {missing}")
    return out.rename(columns={cols[c.lower()]: c for c in OHLC})


def compute_td_sequential(df: pd.DataFrame, config: Optional[TDSequentialConfig] = None) -> pd.DataFrame:
    """Run one engine over the rows of ``df``.

    Parameters
    ----------
    df: pd.DataFrame
        Bars in chronological order with columns ``Open``, ``High``, ``Low``
        and ``Close``.
    config: TDSequentialConfig
        Engine parameters.

    Returns
    -------
    pd.DataFrame
        Copy of ``df`` with one extra column per ``TDRecord`` field, except
        ``index`` and ``price`` which are added as ``bar_index`` and ``td_price``.
    """
    out = normalize_ohlc(df)
    engine = TDSequential(config)
    prices = out[OHLC].apply(pd.to_numeric, errors="coerce")
    bad = int((prices.isna() & out[OHLC].notna()).to_numpy().sum())
    if bad:
        logger.warning("%d non-numeric price(s) treated as missing", bad)
    rows = prices.to_numpy(dtype=float)
    records = [engine.update(*row) for row in rows]
    result = pd.DataFrame([r.to_dict() for r in records], columns=RECORD_FIELDS, index=out.index)
    result = result.rename(columns={"index": "bar_index", "price": "td_price"})
    for col in result.columns:
        out[col] = result[col]
    if engine.diagnostics:
        logger.warning("%d invariant violation(s) while computing TD Sequential", len(engine.diagnostics))
    return out


def extract_events(df: pd.DataFrame) -> pd.DataFrame:
    """One row per fired event of a frame returned by ``compute_td_sequential``."""
    names = [name for name in EVENT_DIRECTIONS if name in df.columns]
    events = []
    for when, row in df[names].iterrows():
        for name in names:
            if pd.notna(row[name]):
                events.append(
                    {"Date": when, "event": name, "direction": EVENT_DIRECTIONS[name], "price": float(row[name])}
                )
    return pd.DataFrame(events, columns=["Date", "event", "direction", "price"])


def run_many(
    frames: Mapping[str, pd.DataFrame],
    config: Optional[TDSequentialConfig] = None,
    max_workers: Optional[int] = None,
) -> Dict[str, pd.DataFrame]:
    """Compute several symbols concurrently, one engine per symbol."""
    if not frames:
        return {}
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {sym: pool.submit(compute_td_sequential, df, config) for sym, df in frames.items()}
        return {sym: fut.result() for sym, fut in futures.items()}


def latest_events(df: pd.DataFrame, bars: int = 5) -> pd.DataFrame:
    """Events fired in the last ``bars`` rows of a computed frame."""
    tail = df.tail(bars)
    return extract_events(tail)


def summarize(df: pd.DataFrame) -> Dict[str, object]:
    """Current state of a computed frame (its last row)."""
    if df.empty:
        return {}
    last = df.iloc[-1]

    def _value(name: str):
        value = last.get(name)
        if value is None or (isinstance(value, float) and np.isnan(value)):
            return None
        return value.item() if hasattr(value, "item") else value

    return {
        "date": str(df.index[-1]),
        "setup_count_up": _value("setup_count_up"),
        "setup_count_down": _value("setup_count_down"),
        "countdown_count_up": _value("countdown_count_up"),
        "countdown_count_down": _value("countdown_count_down"),
        "trend_support": _value("trend_support"),
        "trend_resistance": _value("trend_resistance"),
        "trend_flipped": _value("trend_flipped"),
        "risk_level": _value("risk_level"),
    }
