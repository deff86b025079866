import json

import pandas as pd
from typer.testing import CliRunner

import td_sequential.cli as cli

runner = CliRunner()

CLOSES = [100, 101, 102, 103, 99, 98, 97, 96, 95, 94, 93, 92, 91]


def write_csv(path, closes=CLOSES):
    dates = pd.date_range('2024-01-01', periods=len(closes))
    rows = ["Date,Open,High,Low,Close"]
    rows += [f"{d.date()},{c},{c + 1},{c - 1},{c}" for d, c in zip(dates, closes)]
    path.write_text("\n".join(rows) + "\n")
    return path


def test_signals_writes_csv(tmp_path):
    src = write_csv(tmp_path / 'bars.csv')
    out = tmp_path / 'signals.csv'
    result = runner.invoke(cli.app, ['signals', '--csv', str(src), '--out', str(out)])
    assert result.exit_code == 0, result.output
    df = pd.read_csv(out, index_col='Date')
    assert df['setup_buy'].iloc[-1] == 91
    assert 'risk_level' in df.columns


def test_events_writes_json(tmp_path):
    src = write_csv(tmp_path / 'bars.csv')
    out = tmp_path / 'events.json'
    result = runner.invoke(cli.app, ['events', '--csv', str(src), '--json-out', str(out)])
    assert result.exit_code == 0, result.output
    assert 'Saved 2 events' in result.output
    records = json.loads(out.read_text())
    assert [r['event'] for r in records] == ['setup_buy', 'setup_buy_perfected']


def test_engine_options_are_applied(tmp_path):
    src = write_csv(tmp_path / 'bars.csv')
    out = tmp_path / 'events.json'
    result = runner.invoke(
        cli.app, ['--setup-bars', '5', 'events', '--csv', str(src), '--json-out', str(out)]
    )
    assert result.exit_code == 0, result.output
    records = json.loads(out.read_text())
    assert records[0]['event'] == 'setup_buy'
    assert records[0]['price'] == 95


def test_invalid_configuration_exits_with_code_2(tmp_path):
    src = write_csv(tmp_path / 'bars.csv')
    result = runner.invoke(cli.app, ['--setup-bars', '2', 'signals', '--csv', str(src)])
    assert result.exit_code == 2
    assert 'Invalid configuration' in result.output


def test_config_file_with_override(tmp_path):
    src = write_csv(tmp_path / 'bars.csv')
    cfg = tmp_path / 'td.json'
    cfg.write_text(json.dumps({'setup_bars': 5, 'countdown_bars': 13}))
    out = tmp_path / 'signals.csv'
    result = runner.invoke(
        cli.app,
        ['--config', str(cfg), '--setup-bars', '6', 'signals', '--csv', str(src), '--out', str(out)],
    )
    assert result.exit_code == 0, result.output
    df = pd.read_csv(out, index_col='Date')
    # six down bars complete on bar 9
    assert df['setup_buy'].iloc[9] == 94


def test_bad_config_file(tmp_path):
    cfg = tmp_path / 'td.json'
    cfg.write_text(json.dumps({'unknown': 1}))
    result = runner.invoke(cli.app, ['--config', str(cfg), 'signals'])
    assert result.exit_code == 2


def test_scan_prints_one_line_per_ticker(monkeypatch, tmp_path):
    src = write_csv(tmp_path / 'bars.csv')
    seen = []

    def fake_load(config):
        seen.append(config.ticker)
        return pd.read_csv(src, parse_dates=['Date']).set_index('Date')

    monkeypatch.setattr(cli, 'load_data', fake_load)
    result = runner.invoke(cli.app, ['scan', 'AAA', 'BBB', '--bars', '3'])
    assert result.exit_code == 0, result.output
    lines = [json.loads(line) for line in result.output.strip().splitlines()]
    assert [line['ticker'] for line in lines] == ['AAA', 'BBB']
    assert sorted(seen) == ['AAA', 'BBB']
    first = lines[0]
    assert first['state']['setup_count_down'] == 9
    assert [e['event'] for e in first['events']] == ['setup_buy', 'setup_buy_perfected']


def test_signals_survives_bad_cell(tmp_path):
    src = write_csv(tmp_path / 'bars.csv')
    with src.open('a') as f:
        f.write('2024-01-14,90,91,89,-\n')
    out = tmp_path / 'signals.csv'
    result = runner.invoke(cli.app, ['signals', '--csv', str(src), '--out', str(out)])
    assert result.exit_code == 0, result.output
    df = pd.read_csv(out, index_col='Date')
    assert df['setup_buy'].iloc[-2] == 91
    assert df['price_flip'].iloc[-1] == 'UNDEFINED'
