"""
Per-ticker metric helpers shared by the dashboard, company and comparison views.

Sub-metrics go through safe_metric: a failure degrades that one value to
None (logged) instead of failing the whole ticker.
"""
import logging
from datetime import date

from periods import parse_date

WEEKS_52_BARS = 252


def safe_metric(fn, *args, label=None, **kwargs):
    """Call fn(*args, **kwargs); return None if it raises."""
    try:
        return fn(*args, **kwargs)
    except Exception as e:
        name = label or getattr(fn, "__name__", "metric")
        logging.warning(f"{name} unavailable: {e}")
        return None


# ── Loading ────────────────────────────────────────────────

def load_stock(provider, ticker):
    """Fetch OHLCV for `ticker`. Raises if the data source has nothing."""
    ticker = ticker.upper()
    ohlcv = provider.ohlcv(ticker)
    info = safe_metric(provider.lookup, ticker, label=f"lookup {ticker}")
    return {
        "ticker": ticker,
        "ohlcv": ohlcv,
        "company_name": info.get("name") if info else None,
    }


def load_stock_with_overview(provider, ticker):
    """load_stock plus the company overview, falling back to the lookup record."""
    ticker = ticker.upper()
    ohlcv = provider.ohlcv(ticker)
    overview = safe_metric(provider.overview, ticker, label=f"overview {ticker}") or {}

    if overview:
        company_name = (overview.get("name") or "").strip() or None
        exchange = overview.get("exchange")
    else:
        info = safe_metric(provider.lookup, ticker, label=f"lookup {ticker}") or {}
        company_name = (info.get("name") or "").strip() or None
        exchange = info.get("exchange")

    return {
        "ticker": ticker,
        "ohlcv": ohlcv,
        "company_name": company_name,
        "overview": overview,
        "exchange": exchange,
    }


# ── Price metrics ──────────────────────────────────────────

def calculate_price_metrics(prices):
    current_price = prices[-1]
    prev_price = prices[-2] if len(prices) > 1 else prices[-1]
    change = current_price - prev_price
    change_pct = (change / prev_price * 100) if prev_price > 0 else 0
    last_year = prices[-WEEKS_52_BARS:]

    return {
        "current_price": current_price,
        "prev_price": prev_price,
        "change": change,
        "change_pct": change_pct,
        "high_52w": max(last_year),
        "low_52w": min(last_year),
    }


def calculate_ytd_return(dates, prices, today=None):
    """Percent return from the first to the last close of the current year."""
    year = (today or date.today()).year
    ytd_prices = [p for d, p in zip(dates, prices) if parse_date(d).year == year]
    if len(ytd_prices) > 1:
        return round((ytd_prices[-1] - ytd_prices[0]) / ytd_prices[0] * 100, 2)
    return None


def daily_returns(prices):
    return [(b - a) / a for a, b in zip(prices, prices[1:])]


def calculate_risk_metrics(provider, prices):
    returns = safe_metric(daily_returns, prices, label="daily_returns")
    sharpe = safe_metric(provider.sharpe_ratio, returns, label="sharpe_ratio") if returns else None
    max_dd = safe_metric(provider.max_drawdown, prices, label="max_drawdown")
    return {
        "sharpe_ratio": sharpe,
        "max_drawdown": max_dd["max_drawdown"] if max_dd else None,
    }


def average_volume(volumes):
    return round(sum(volumes) / len(volumes))


def company_summary(ohlcv):
    """Whole-history price and volume figures for the company page."""
    dates = ohlcv["dates"]
    prices = ohlcv["closes"]
    volumes = ohlcv["volumes"]
    high = max(prices)
    low = min(prices)

    return {
        "data_start_date": dates[0],
        "data_end_date": dates[-1],
        "total_trading_days": len(dates),
        "current_price": prices[-1],
        "all_time_high": high,
        "all_time_low": low,
        "avg_volume": average_volume(volumes),
        "max_volume": max(volumes),
        "price_range": high - low,
        "ytd_return": safe_metric(calculate_ytd_return, dates, prices, label="ytd_return"),
    }
