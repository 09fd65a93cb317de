"""
Long/flat strategy backtests on daily closes.

A strategy turns indicator series into a target position per bar (1 long,
0 flat). The simulator goes all-in on entry and all-out on exit at that
bar's close, paying a flat commission per fill.
"""
import math

import numpy as np

from alignment import pad_series

TRADING_DAYS = 252

STRATEGIES = ("RSI", "SMA", "EMA", "MACD", "BOLLINGERBANDS")

# Display name → strategy id, for strategy comparison
COMPARE_STRATEGIES = {
    "RSI": "RSI",
    "SMA": "SMA",
    "EMA": "EMA",
    "MACD": "MACD",
    "BollingerBands": "BOLLINGERBANDS",
}


def resolve_strategy(name):
    """Normalize a strategy name; unknown names fall back to RSI."""
    name = (name or "").upper()
    return name if name in STRATEGIES else "RSI"


def _aligned(provider, n, function, *series, **params):
    result = provider.indicator(function, *series, **params)
    outputs = result if isinstance(result, tuple) else (result,)
    return [pad_series(o, n) for o in outputs]


def _crossover_positions(fast, slow):
    return [
        1 if f is not None and s is not None and f > s else 0
        for f, s in zip(fast, slow)
    ]


def _band_positions(values, lower, upper):
    """Enter below `lower`, exit above `upper`, otherwise hold."""
    position = 0
    positions = []
    for v, lo, hi in zip(values, lower, upper):
        if v is not None and lo is not None and v < lo:
            position = 1
        elif v is not None and hi is not None and v > hi:
            position = 0
        positions.append(position)
    return positions


def strategy_positions(provider, ohlcv, strategy):
    closes = ohlcv["closes"]
    n = len(closes)

    if strategy == "RSI":
        (rsi,) = _aligned(provider, n, "RSI", closes, timeperiod=14)
        return _band_positions(rsi, [30] * n, [70] * n)
    if strategy == "SMA":
        (fast,) = _aligned(provider, n, "SMA", closes, timeperiod=20)
        (slow,) = _aligned(provider, n, "SMA", closes, timeperiod=50)
        return _crossover_positions(fast, slow)
    if strategy == "EMA":
        (fast,) = _aligned(provider, n, "EMA", closes, timeperiod=12)
        (slow,) = _aligned(provider, n, "EMA", closes, timeperiod=26)
        return _crossover_positions(fast, slow)
    if strategy == "MACD":
        macd, signal, _ = _aligned(provider, n, "MACD", closes)
        return _crossover_positions(macd, signal)
    if strategy == "BOLLINGERBANDS":
        upper, _, lower = _aligned(provider, n, "BBANDS", closes, timeperiod=20)
        return _band_positions(closes, lower, upper)
    raise ValueError(f"Unknown strategy: {strategy}")


def simulate(closes, positions, initial_capital, commission):
    """Returns (equity curve, list of per-trade profit)."""
    cash = initial_capital
    shares = 0
    entry_cost = 0.0
    equity = []
    trades = []

    for price, target in zip(closes, positions):
        if target and not shares:
            qty = math.floor((cash - commission) / price)
            if qty > 0:
                entry_cost = qty * price + commission
                cash -= entry_cost
                shares = qty
        elif not target and shares:
            proceeds = shares * price - commission
            cash += proceeds
            trades.append(proceeds - entry_cost)
            shares = 0
        equity.append(cash + shares * price)

    # close any open position on the last bar
    if shares:
        proceeds = shares * closes[-1] - commission
        cash += proceeds
        trades.append(proceeds - entry_cost)
        equity[-1] = cash

    return equity, trades


def summarize(equity, trades, initial_capital):
    final = equity[-1] if equity else initial_capital
    total_return = (final - initial_capital) / initial_capital * 100

    years = len(equity) / TRADING_DAYS
    if years > 0 and final > 0:
        annualized = ((final / initial_capital) ** (1 / years) - 1) * 100
    else:
        annualized = 0.0

    eq = np.asarray(equity, dtype=float)
    sharpe = 0.0
    max_drawdown = 0.0
    if eq.size > 1:
        returns = np.diff(eq) / eq[:-1]
        std = returns.std(ddof=1)
        if std > 0:
            sharpe = float(np.sqrt(TRADING_DAYS) * returns.mean() / std)
        peaks = np.maximum.accumulate(eq)
        max_drawdown = float(((eq - peaks) / peaks).min() * 100)

    wins = [t for t in trades if t > 0]
    losses = [t for t in trades if t < 0]
    gross_loss = abs(sum(losses))

    return {
        "total_return": total_return,
        "annualized_return": annualized,
        "sharpe_ratio": sharpe,
        "max_drawdown": max_drawdown,
        "win_rate": len(wins) / len(trades) * 100 if trades else 0.0,
        "total_trades": len(trades),
        "profit_factor": sum(wins) / gross_loss if gross_loss else None,
        "avg_win": sum(wins) / len(wins) if wins else 0.0,
        "avg_loss": sum(losses) / len(losses) if losses else 0.0,
    }


def run_backtest(provider, ohlcv, strategy, initial_capital=10_000.0, commission=1.0):
    strategy = resolve_strategy(strategy)
    closes = ohlcv["closes"]
    if not closes:
        raise ValueError("No prices to backtest")

    positions = strategy_positions(provider, ohlcv, strategy)
    equity, trades = simulate(closes, positions, initial_capital, commission)
    return summarize(equity, trades, initial_capital)
