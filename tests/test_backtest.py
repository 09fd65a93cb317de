import pytest

from backtest import (
    COMPARE_STRATEGIES,
    STRATEGIES,
    _band_positions,
    _crossover_positions,
    resolve_strategy,
    run_backtest,
    simulate,
    strategy_positions,
    summarize,
)

from conftest import FakeAnalytics, make_ohlcv


class ScriptedIndicators:
    """Returns fixed indicator series keyed by (function, timeperiod)."""

    def __init__(self, series):
        self.series = series

    def indicator(self, function, *inputs, **params):
        return self.series[(function, params.get("timeperiod"))]


def test_resolve_strategy():
    assert resolve_strategy("sma") == "SMA"
    assert resolve_strategy("BollingerBands") == "BOLLINGERBANDS"
    assert resolve_strategy("martingale") == "RSI"
    assert resolve_strategy(None) == "RSI"


def test_compare_strategies_cover_every_strategy():
    assert sorted(COMPARE_STRATEGIES.values()) == sorted(STRATEGIES)


def test_band_positions_hold_between_bands():
    assert _band_positions([25, 50, 75, 50, None], [30] * 5, [70] * 5) == [1, 1, 0, 0, 0]


def test_crossover_positions_skip_warmup():
    assert _crossover_positions([None, 2, 3], [1, 1, 4]) == [0, 1, 0]


def test_sma_crossover_positions():
    provider = ScriptedIndicators({
        ("SMA", 20): [1, 3, 3],
        ("SMA", 50): [2, 2],
    })
    ohlcv = {"closes": [10, 11, 12, 13]}
    assert strategy_positions(provider, ohlcv, "SMA") == [0, 0, 1, 1]


def test_unknown_strategy_positions():
    with pytest.raises(ValueError):
        strategy_positions(ScriptedIndicators({}), {"closes": [1]}, "MOON")


def test_simulate_round_trip():
    equity, trades = simulate([10, 11, 12, 11], [1, 1, 0, 0], 1000, 1.0)

    # 99 shares at 10 plus commission, sold at 12 minus commission
    assert trades == [196]
    assert equity == [999, 1098, 1196, 1196]


def test_simulate_closes_open_position():
    equity, trades = simulate([10, 12], [1, 1], 1000, 1.0)
    assert trades == [196]
    assert equity[-1] == 1196


def test_simulate_never_trading():
    equity, trades = simulate([10, 11, 12], [0, 0, 0], 1000, 1.0)
    assert trades == []
    assert equity == [1000, 1000, 1000]


def test_summarize_winning_run():
    result = summarize([999, 1098, 1196, 1196], [196], 1000)

    assert result["total_return"] == pytest.approx(19.6)
    assert result["total_trades"] == 1
    assert result["win_rate"] == 100.0
    assert result["profit_factor"] is None
    assert result["avg_win"] == 196
    assert result["avg_loss"] == 0.0
    assert result["max_drawdown"] == 0.0
    assert result["sharpe_ratio"] > 0


def test_summarize_mixed_trades():
    result = summarize([1000, 1100, 1050], [100, -50], 1000)

    assert result["win_rate"] == 50.0
    assert result["profit_factor"] == pytest.approx(2.0)
    assert result["avg_loss"] == -50
    assert result["max_drawdown"] == pytest.approx((1050 - 1100) / 1100 * 100)


def test_summarize_keys():
    result = summarize([1000], [], 1000)
    assert set(result) == {
        "total_return", "annualized_return", "sharpe_ratio", "max_drawdown", "win_rate",
        "total_trades", "profit_factor", "avg_win", "avg_loss",
    }
    assert result["total_return"] == 0.0
    assert result["win_rate"] == 0.0


def test_run_backtest_without_entries():
    # rising closes keep the echoed RSI above 70, so nothing is bought
    result = run_backtest(FakeAnalytics(), make_ohlcv(), "whatever")
    assert result["total_trades"] == 0
    assert result["total_return"] == 0.0


def test_run_backtest_needs_prices():
    with pytest.raises(ValueError):
        run_backtest(FakeAnalytics(), {"closes": []}, "RSI")
