import sys
import time
from datetime import date, timedelta
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from analytics import DataUnavailableError  # noqa: E402

MULTI_OUTPUT = {"MACD": 3, "BBANDS": 3, "STOCH": 2}


def weekdays(start, count):
    """`count` consecutive weekday date strings starting at `start`."""
    current = date.fromisoformat(start)
    out = []
    while len(out) < count:
        if current.weekday() < 5:
            out.append(current.isoformat())
        current += timedelta(days=1)
    return out


def make_ohlcv(n=120, start="2024-01-02", base=100.0, step=0.5):
    dates = weekdays(start, n)
    closes = [base + i * step for i in range(n)]
    return {
        "dates": dates,
        "opens": [c - 0.25 for c in closes],
        "highs": [c + 1.0 for c in closes],
        "lows": [c - 1.0 for c in closes],
        "closes": closes,
        "volumes": [1_000 + 10 * i for i in range(n)],
    }


class FakeAnalytics:
    """
    Deterministic stand-in for YFinanceAnalytics.

    Indicators echo the last input series with a warm-up of
    `timeperiod - 1` bars (or 3 when no period is given). Candlestick
    detectors return `patterns[function]` minus a 2-bar warm-up.
    """

    def __init__(self, stocks=None, overviews=None, patterns=None, failing=(), slow=(),
                 delay=0.0, barrier=None):
        self.stocks = stocks if stocks is not None else {"AAPL": make_ohlcv()}
        self.overviews = overviews or {}
        self.patterns = patterns or {}
        self.failing = set(failing)
        self.slow = set(slow)
        self.delay = delay
        self.barrier = barrier
        self.calls = []

    def ohlcv(self, ticker):
        self.calls.append(("ohlcv", ticker))
        if self.barrier is not None:
            self.barrier.wait()
        if ticker in self.slow:
            time.sleep(self.delay)
        if ticker not in self.stocks:
            raise DataUnavailableError(f"No price data found for {ticker}")
        return self.stocks[ticker]

    def overview(self, ticker):
        return dict(self.overviews.get(ticker, {}))

    def lookup(self, ticker):
        if ticker in self.stocks:
            return {"name": f"{ticker} Inc.", "exchange": "NASDAQ"}
        return None

    def indicator(self, function, *series, **params):
        if function in self.failing:
            raise RuntimeError(f"{function} blew up")
        if function.startswith("CDL"):
            raw = self.patterns.get(function, [0] * len(series[0]))
            return list(raw[2:])

        lookback = params.get("timeperiod", 4) - 1
        values = list(series[-1][lookback:])
        outputs = MULTI_OUTPUT.get(function)
        if outputs:
            return tuple([v + k for v in values] for k in range(outputs))
        return values

    def forecast(self, prices, period):
        return [
            {
                "direction": "UP",
                "magnitude": 0.5,
                "risk": 1.0,
                "interpretation": "UP: 0.50% (±0.50% risk)",
            }
            for _ in prices[:-1]
        ]

    def sharpe_ratio(self, returns, risk_free_rate=0.0, periods=252):
        if "sharpe" in self.failing:
            raise ZeroDivisionError("no variance")
        return 1.25

    def max_drawdown(self, prices):
        return {"max_drawdown": -0.1, "peak_index": 0, "trough_index": 1}

    def value_at_risk(self, returns, confidence=0.95):
        return -0.02

    def regime(self, ohlcv):
        return {"type": "bullish", "volatility": "low", "strength_score": 2.5, "trend_score": 4.0}

    def seasonal(self, ohlcv):
        return {
            "best_months": [11, 12, 4],
            "worst_months": [9, 6, 2],
            "best_quarters": [4, 1],
            "has_seasonal_pattern": True,
        }

    def backtest(self, ohlcv, strategy, initial_capital=10_000.0, commission=1.0):
        if strategy in self.failing:
            raise RuntimeError(f"{strategy} backtest failed")
        returns = {"RSI": 5.0, "SMA": 12.0, "EMA": 8.0, "MACD": -3.0, "BOLLINGERBANDS": 1.0}
        return {
            "total_return": returns[strategy],
            "annualized_return": returns[strategy] / 2,
            "sharpe_ratio": 0.9,
            "max_drawdown": -7.5,
            "win_rate": 55.0,
            "total_trades": 12,
            "profit_factor": 1.4,
            "avg_win": 120.0,
            "avg_loss": -80.0,
        }


@pytest.fixture
def fake_analytics():
    return FakeAnalytics()


@pytest.fixture
def client(fake_analytics):
    from app import app

    app.config["TESTING"] = True
    previous = app.config["ANALYTICS"]
    app.config["ANALYTICS"] = fake_analytics
    with app.test_client() as c:
        yield c
    app.config["ANALYTICS"] = previous
