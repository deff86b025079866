import pandas as pd
import pytest

from td_sequential.errors import DataError
from td_sequential.io_utils import load_data, LoadConfig


def test_load_data_flattens_multilevel_columns(monkeypatch):
    import td_sequential.io_utils as io_utils

    def fake_download(ticker, period, interval, auto_adjust, progress):
        idx = pd.date_range('2024-01-01', periods=3)
        cols = pd.MultiIndex.from_product(
            [['Open', 'High', 'Low', 'Close', 'Volume'], [ticker]],
            names=['Price', 'Ticker'],
        )
        data = pd.DataFrame(
            [[1, 2, 3, 4, 5], [6, 7, 8, 9, 10], [11, 12, 13, 14, 15]],
            index=idx,
            columns=cols,
        )
        return data

    monkeypatch.setattr(io_utils, 'yf', type('YF', (), {'download': staticmethod(fake_download)}))
    df = load_data(LoadConfig(ticker='SPY', years=1))
    assert list(df.columns) == ['Open', 'High', 'Low', 'Close', 'Volume']
    assert df.index.name == 'Date'


def test_load_data_empty_download(monkeypatch):
    import td_sequential.io_utils as io_utils

    def fake_download(*args, **kwargs):
        return pd.DataFrame()

    monkeypatch.setattr(io_utils, 'yf', type('YF', (), {'download': staticmethod(fake_download)}))
    with pytest.raises(DataError):
        load_data(LoadConfig(ticker='XXX'))


def test_load_data_from_csv(tmp_path):
    path = tmp_path / 'bars.csv'
    path.write_text(
        "Date,open,high,low,close\n"
        "2024-01-03,2,3,1,2.5\n"
        "2024-01-02,1,2,0.5,1.5\n"
    )
    df = load_data(LoadConfig(csv_path=str(path)))
    assert list(df.columns) == ['Open', 'High', 'Low', 'Close']
    assert df.index.is_monotonic_increasing
    assert df['Close'].iloc[0] == 1.5


def test_load_data_csv_missing_columns(tmp_path):
    path = tmp_path / 'bars.csv'
    path.write_text("Date,Close\n2024-01-02,1\n")
    with pytest.raises(DataError):
        load_data(LoadConfig(csv_path=str(path)))


def test_load_data_requires_ticker():
    with pytest.raises(ValueError):
        load_data(LoadConfig())
