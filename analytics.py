"""
Analytics collaborator backed by yfinance (prices, company overview) and
TA-Lib (indicators, candlestick detectors).

The rest of the app only uses the methods on YFinanceAnalytics, so any
object with the same methods can be dropped into app.config["ANALYTICS"].
Indicator output follows one contract: warm-up bars are removed, so a
series is never longer than its input and never has a leading gap.
"""
import logging
import os

import numpy as np
import pandas as pd
import talib
import yfinance as yf
from talib import abstract

from backtest import run_backtest

HISTORY_PERIOD = os.environ.get("HISTORY_PERIOD", "5y")
TRADING_DAYS = 252


class DataUnavailableError(Exception):
    """The data source has no price history for a ticker."""


# ── yfinance info key → overview key ───────────────────────

OVERVIEW_FIELDS = {
    "longName": "name",
    "exchange": "exchange",
    "sector": "sector",
    "industry": "industry",
    "country": "country",
    "currency": "currency",
    "website": "website",
    "fullTimeEmployees": "full_time_employees",
    "longBusinessSummary": "description",
    "trailingPE": "pe_ratio",
    "forwardPE": "forward_pe",
    "trailingPegRatio": "peg_ratio",
    "priceToBook": "price_to_book_ratio",
    "trailingEps": "eps",
    "dividendYield": "dividend_yield",
    "profitMargins": "profit_margin",
    "operatingMargins": "operating_margin_ttm",
    "returnOnEquity": "return_on_equity_ttm",
    "returnOnAssets": "return_on_assets_ttm",
    "marketCap": "market_capitalization",
    "beta": "beta",
    "targetMeanPrice": "analyst_target_price",
    "fiftyTwoWeekHigh": "week_52_high",
    "fiftyTwoWeekLow": "week_52_low",
}


def _to_list(values):
    """numpy array → list of Python numbers, NaN → None."""
    out = []
    for v in values:
        v = v.item() if hasattr(v, "item") else v
        out.append(None if isinstance(v, float) and not np.isfinite(v) else v)
    return out


def _forecast_entry(min_delta, max_delta):
    if min_delta > 0 and max_delta > 0:
        direction = "UP"
    elif min_delta < 0 and max_delta < 0:
        direction = "DOWN"
    elif min_delta < 0 < max_delta:
        direction = "UNCERTAIN"
    else:
        direction = "FLAT"

    magnitude = (min_delta + max_delta) / 2
    risk = abs(max_delta - min_delta)
    return {
        "min_delta": min_delta,
        "max_delta": max_delta,
        "direction": direction,
        "magnitude": magnitude,
        "risk": risk,
        "interpretation": f"{direction}: {magnitude:.2f}% (±{risk / 2:.2f}% risk)",
    }


class YFinanceAnalytics:

    def __init__(self, history_period=HISTORY_PERIOD):
        self.history_period = history_period

    # ── Data ───────────────────────────────────────────────

    def ohlcv(self, ticker):
        hist = yf.Ticker(ticker).history(period=self.history_period, interval="1d", auto_adjust=True)
        hist = hist.dropna(subset=["Close"]) if not hist.empty else hist
        if hist.empty:
            raise DataUnavailableError(f"No price data found for {ticker}")

        logging.debug(f"Fetched {len(hist)} bars for {ticker}")
        return {
            "dates": [ts.strftime("%Y-%m-%d") for ts in hist.index],
            "opens": _to_list(hist["Open"].astype(float)),
            "highs": _to_list(hist["High"].astype(float)),
            "lows": _to_list(hist["Low"].astype(float)),
            "closes": _to_list(hist["Close"].astype(float)),
            "volumes": [int(v) for v in hist["Volume"].fillna(0)],
        }

    def overview(self, ticker):
        info = yf.Ticker(ticker).info or {}
        return {
            ours: info[theirs]
            for theirs, ours in OVERVIEW_FIELDS.items()
            if info.get(theirs) is not None
        }

    def lookup(self, ticker):
        info = yf.Ticker(ticker).info or {}
        name = info.get("shortName") or info.get("longName")
        if not name:
            return None
        return {"name": name, "exchange": info.get("exchange")}

    # ── Indicators ─────────────────────────────────────────

    def indicator(self, function, *series, **params):
        """
        Run the TA-Lib function `function` on `series`.

        Returns a list, or a tuple of lists for multi-output functions, with
        the function's lookback bars dropped from the front.
        """
        func = getattr(talib, function)
        arrays = [np.asarray(s, dtype=float) for s in series]
        result = func(*arrays, **params)
        lookback = abstract.Function(function, **params).lookback

        if isinstance(result, (tuple, list)):
            return tuple(_to_list(r[lookback:]) for r in result)
        return _to_list(result[lookback:])

    def forecast(self, prices, period):
        """
        Future-period profit/loss for every bar that has at least one later bar.

        Percent moves are measured from bar i to each of bars i+1..i+period.
        """
        prices = [float(p) for p in prices]
        result = []
        for i, current in enumerate(prices):
            future = prices[i + 1:i + 1 + period]
            if not future:
                break
            deltas = [(p - current) / current * 100 for p in future]
            result.append(_forecast_entry(min(deltas), max(deltas)))
        return result

    # ── Risk ───────────────────────────────────────────────

    def sharpe_ratio(self, returns, risk_free_rate=0.0, periods=TRADING_DAYS):
        r = np.asarray(returns, dtype=float)
        if r.size < 2:
            raise ValueError("Need at least two returns for a Sharpe ratio")
        excess = r - risk_free_rate / periods
        std = excess.std(ddof=1)
        if std == 0:
            return 0.0
        return float(np.sqrt(periods) * excess.mean() / std)

    def max_drawdown(self, prices):
        p = np.asarray(prices, dtype=float)
        if p.size == 0:
            raise ValueError("No prices")
        peaks = np.maximum.accumulate(p)
        drawdowns = (p - peaks) / peaks
        trough = int(drawdowns.argmin())
        peak = int(p[:trough + 1].argmax())
        return {
            "max_drawdown": float(drawdowns[trough]),
            "peak_index": peak,
            "trough_index": trough,
        }

    def value_at_risk(self, returns, confidence=0.95):
        r = np.asarray(returns, dtype=float)
        if r.size == 0:
            raise ValueError("No returns")
        return float(np.percentile(r, (1 - confidence) * 100))

    # ── Regime & seasonality ───────────────────────────────

    def regime(self, ohlcv):
        closes = pd.Series(ohlcv["closes"], dtype=float)
        if len(closes) < 70:
            raise ValueError("Need at least 70 bars to detect a regime")

        sma20 = closes.rolling(20).mean()
        sma50 = closes.rolling(50).mean()
        slope = (sma50.iloc[-1] - sma50.iloc[-21]) / sma50.iloc[-21] * 100
        spread = (sma20.iloc[-1] - sma50.iloc[-1]) / sma50.iloc[-1] * 100

        if spread > 0 and slope > 1:
            regime_type = "bullish"
        elif spread < 0 and slope < -1:
            regime_type = "bearish"
        else:
            regime_type = "sideways"

        vol = closes.pct_change().dropna().tail(60).std() * np.sqrt(TRADING_DAYS) * 100
        if vol > 40:
            volatility = "high"
        elif vol > 20:
            volatility = "medium"
        else:
            volatility = "low"

        return {
            "type": regime_type,
            "volatility": volatility,
            "strength_score": round(float(abs(spread)), 2),
            "trend_score": round(float(slope), 2),
        }

    def seasonal(self, ohlcv):
        closes = pd.Series(ohlcv["closes"], index=pd.to_datetime(ohlcv["dates"]), dtype=float)

        monthly = closes.resample("ME").last().pct_change().dropna()
        by_month = monthly.groupby(monthly.index.month).mean().sort_values(ascending=False)
        quarterly = closes.resample("QE").last().pct_change().dropna()
        by_quarter = quarterly.groupby(quarterly.index.quarter).mean().sort_values(ascending=False)

        # pattern = best and worst average month at least 5 points apart
        spread = by_month.iloc[0] - by_month.iloc[-1] if len(by_month) > 1 else 0.0
        return {
            "best_months": [int(m) for m in by_month.index[:3]],
            "worst_months": [int(m) for m in by_month.index[::-1][:3]],
            "best_quarters": [int(q) for q in by_quarter.index[:2]],
            "has_seasonal_pattern": bool(spread > 0.05),
        }

    # ── Backtests ──────────────────────────────────────────

    def backtest(self, ohlcv, strategy, initial_capital=10_000.0, commission=1.0):
        return run_backtest(self, ohlcv, strategy, initial_capital=initial_capital, commission=commission)
