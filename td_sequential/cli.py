"""Command line interface."""
from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional

import pandas as pd
import typer

from .config import TDSequentialConfig
from .errors import ConfigurationError
from .indicators import compute_td_sequential, extract_events, latest_events, run_many, summarize
from .io_utils import LoadConfig, load_data

app = typer.Typer(no_args_is_help=True)

# CLI option -> config field
_OPTION_FIELDS = {
    "price_source": "price_source",
    "setup_bars": "setup_bars",
    "setup_lookback": "setup_lookback",
    "include_equal": "setup_include_equal",
    "perf_lookback": "setup_perf_lookback",
    "trend_extend": "setup_trend_extend",
    "countdown_bars": "countdown_bars",
    "countdown_lookback": "countdown_lookback",
    "qual_bar": "countdown_qual_bar",
    "aggressive": "countdown_aggressive",
}


def _load(ticker: Optional[str], years: int, csv: Optional[Path]) -> pd.DataFrame:
    cfg = LoadConfig(ticker=ticker, years=years, csv_path=str(csv) if csv else None)
    return load_data(cfg)


def _engine_config(ctx: typer.Context) -> TDSequentialConfig:
    return ctx.obj["config"]


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", help="JSON file with engine parameters"),
    price_source: Optional[str] = typer.Option(None, help="close, open, high, low, hl2, hlc3 or ohlc4"),
    setup_bars: Optional[int] = typer.Option(None, help="Setup length (9)"),
    setup_lookback: Optional[int] = typer.Option(None, help="Setup comparison offset (4)"),
    include_equal: Optional[bool] = typer.Option(None, "--include-equal/--no-include-equal", help="Equal prices extend setups"),
    perf_lookback: Optional[int] = typer.Option(None, help="Setup perfection lookback (3)"),
    trend_extend: Optional[bool] = typer.Option(None, "--trend-extend/--no-trend-extend", help="Extend setup trend windows"),
    countdown_bars: Optional[int] = typer.Option(None, help="Countdown length (13)"),
    countdown_lookback: Optional[int] = typer.Option(None, help="Countdown comparison offset (2)"),
    qual_bar: Optional[int] = typer.Option(None, help="Countdown qualifier bar (8)"),
    aggressive: Optional[bool] = typer.Option(None, "--aggressive/--no-aggressive", help="Aggressive countdown"),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level"),
) -> None:
    """TD Sequential setups, countdowns and risk levels."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    values = dict(
        price_source=price_source,
        setup_bars=setup_bars,
        setup_lookback=setup_lookback,
        include_equal=include_equal,
        perf_lookback=perf_lookback,
        trend_extend=trend_extend,
        countdown_bars=countdown_bars,
        countdown_lookback=countdown_lookback,
        qual_bar=qual_bar,
        aggressive=aggressive,
    )
    try:
        params = {}
        if config is not None:
            params.update(vars(TDSequentialConfig.from_json(config)))
        params.update({_OPTION_FIELDS[k]: v for k, v in values.items() if v is not None})
        engine_config = TDSequentialConfig.from_mapping(params)
    except (ConfigurationError, OSError) as exc:
        typer.echo(f"Invalid configuration: {exc}", err=True)
        raise typer.Exit(code=2)
    ctx.obj = {"config": engine_config}


@app.command()
def signals(
    ctx: typer.Context,
    ticker: Optional[str] = None,
    years: int = 5,
    csv: Optional[Path] = None,
    out: Path = Path("td_sequential.csv"),
) -> None:
    """Write the per-bar TD Sequential frame to CSV."""
    df = compute_td_sequential(_load(ticker, years, csv), _engine_config(ctx))
    df.to_csv(out, index_label="Date")
    typer.echo(f"Saved {out}")


@app.command()
def events(
    ctx: typer.Context,
    ticker: Optional[str] = None,
    years: int = 5,
    csv: Optional[Path] = None,
    json_out: Path = Path("td_events.json"),
) -> None:
    """Write the fired events as JSON records."""
    df = compute_td_sequential(_load(ticker, years, csv), _engine_config(ctx))
    found = extract_events(df)
    found.to_json(json_out, orient="records", date_format="iso")
    typer.echo(f"Saved {len(found)} events to {json_out}")


@app.command()
def scan(
    ctx: typer.Context,
    tickers: List[str] = typer.Argument(..., help="Ticker symbols"),
    years: int = 1,
    bars: int = typer.Option(5, help="Report events from the last N bars"),
) -> None:
    """Print the current state and recent events of several symbols."""
    with ThreadPoolExecutor() as pool:
        frames = dict(zip(tickers, pool.map(lambda t: _load(t, years, None), tickers)))
    results = run_many(frames, _engine_config(ctx))
    for ticker in tickers:
        df = results[ticker]
        state = summarize(df)
        recent = latest_events(df, bars)
        typer.echo(json.dumps({
            "ticker": ticker,
            "state": state,
            "events": [
                {"date": str(row.Date), "event": row.event, "price": row.price}
                for row in recent.itertuples(index=False)
            ],
        }))


if __name__ == "__main__":
    app()
