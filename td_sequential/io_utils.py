"""Input/Output utilities."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import pandas as pd

from .errors import DataError

try:
    import yfinance as yf
except Exception:  # pragma: no cover
    yf = None


@dataclass
class LoadConfig:
    ticker: Optional[str] = None
    years: int = 5
    csv_path: Optional[str] = None
    interval: str = "1d"


def _tidy_columns(df: pd.DataFrame) -> pd.DataFrame:
    if isinstance(df.columns, pd.MultiIndex):
        df.columns = df.columns.get_level_values(0)
    df = df.rename(columns=lambda c: str(c).title())
    keep = [c for c in ["Open", "High", "Low", "Close", "Volume"] if c in df.columns]
    missing = [c for c in ["Open", "High", "Low", "Close"] if c not in keep]
    if missing:
        raise DataError(f"Price data missing columns: {missing}")
    return df[keep]


def load_data(config: LoadConfig) -> pd.DataFrame:
    """Load OHLCV bars from a CSV file or Yahoo Finance, oldest first."""
    if config.csv_path:
        df = pd.read_csv(config.csv_path, parse_dates=["Date"])
        df = df.set_index("Date").sort_index()
        return _tidy_columns(df)
    if not yf:
        raise ImportError("yfinance is required for downloading data")
    if not config.ticker:
        raise ValueError("ticker must be provided when csv_path is not set")
    period = f"{config.years}y"
    data = yf.download(
        config.ticker, period=period, interval=config.interval, auto_adjust=True, progress=False
    )
    if data is None or data.empty:
        raise DataError(f"No price data returned for {config.ticker}")
    data = _tidy_columns(data)
    if getattr(data.index, "tz", None) is not None:
        data.index = data.index.tz_localize(None)
    data.index.name = "Date"
    return data.sort_index()
