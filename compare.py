"""
Side-by-side comparison of up to five tickers.

Each ticker runs its own fetch-and-compute pipeline on a worker thread.
A failing ticker ends up in the errors map; it never takes its siblings
down with it.
"""
import logging
import os
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass

from indicators import calculate_indicators
from metrics import (
    average_volume,
    calculate_price_metrics,
    calculate_risk_metrics,
    calculate_ytd_return,
    load_stock_with_overview,
    safe_metric,
)

MAX_COMPARE_TICKERS = 5
COMPARE_TIMEOUT = float(os.environ.get("COMPARE_TIMEOUT", "30"))

NO_TICKERS_MESSAGE = "No tickers provided. Enter up to 5 tickers separated by spaces."
TOO_MANY_TICKERS_MESSAGE = "Maximum of 5 tickers allowed for comparison. Please reduce your selection."


class TickerListError(ValueError):
    """The requested ticker list can't be compared."""


class NoTickersError(TickerListError):
    def __init__(self):
        super().__init__(NO_TICKERS_MESSAGE)


class TooManyTickersError(TickerListError):
    def __init__(self):
        super().__init__(TOO_MANY_TICKERS_MESSAGE)


@dataclass(frozen=True)
class TickerResult:
    ticker: str
    data: dict = None
    error: str = None

    @property
    def ok(self):
        return self.error is None


def parse_tickers(raw):
    """
    Split a whitespace-separated ticker string into a validated list.

    Tickers are uppercased and de-duplicated in order. More than five
    symbols as typed (before de-duplication) is rejected, not truncated.
    """
    typed = [t.upper() for t in (raw or "").split()]
    tickers = list(dict.fromkeys(typed))[:MAX_COMPARE_TICKERS]

    if not tickers:
        raise NoTickersError()
    if len(typed) > MAX_COMPARE_TICKERS:
        raise TooManyTickersError()
    return tickers


# ── Per-ticker pipeline ────────────────────────────────────

# overview key → comparison key
OVERVIEW_METRICS = {
    "pe_ratio": "pe_ratio",
    "forward_pe": "forward_pe",
    "peg_ratio": "peg_ratio",
    "price_to_book_ratio": "price_to_book",
    "eps": "eps",
    "dividend_yield": "dividend_yield",
    "profit_margin": "profit_margin",
    "operating_margin_ttm": "operating_margin",
    "return_on_equity_ttm": "roe",
    "return_on_assets_ttm": "roa",
    "market_capitalization": "market_cap",
    "beta": "beta",
    "analyst_target_price": "analyst_target",
}


def comparison_metrics(provider, ticker):
    """Metrics record for one ticker. Raises if the ticker can't be loaded."""
    data = load_stock_with_overview(provider, ticker)
    ohlcv = data["ohlcv"]
    overview = data["overview"]
    prices = ohlcv["closes"]
    t = data["ticker"]

    record = {"ticker": t, "company_name": data["company_name"]}

    price_metrics = safe_metric(calculate_price_metrics, prices, label=f"price metrics {t}") or {}
    for key in ("current_price", "change", "change_pct", "high_52w", "low_52w"):
        record[key] = price_metrics.get(key)

    record["ytd_return"] = safe_metric(calculate_ytd_return, ohlcv["dates"], prices, label=f"ytd_return {t}")
    record["avg_volume"] = safe_metric(average_volume, ohlcv["volumes"], label=f"avg_volume {t}")
    record.update(calculate_indicators(provider, ohlcv))

    for src, dest in OVERVIEW_METRICS.items():
        record[dest] = overview.get(src)

    record.update(calculate_risk_metrics(provider, prices))
    return record


def fetch_comparison_data(provider, ticker):
    """Run the pipeline for one ticker; never raises."""
    try:
        return TickerResult(ticker, data=comparison_metrics(provider, ticker))
    except Exception as e:
        logging.warning(f"Comparison data failed for {ticker}: {e}")
        return TickerResult(ticker, error=str(e))


def compare_tickers(provider, tickers, timeout=COMPARE_TIMEOUT):
    """
    Fetch every ticker concurrently and wait for all of them.

    Returns (stocks_data, errors), both keyed by ticker in the order of
    `tickers`. A ticker still running after `timeout` seconds is reported
    as an error.
    """
    executor = ThreadPoolExecutor(max_workers=max(len(tickers), 1))
    futures = {}
    try:
        futures = {t: executor.submit(fetch_comparison_data, provider, t) for t in tickers}
        wait(futures.values(), timeout=timeout)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    results = []
    for ticker, future in futures.items():
        if future.done():
            results.append(future.result())
        else:
            results.append(TickerResult(ticker, error=f"Timed out after {timeout:g}s"))

    stocks_data = {r.ticker: r.data for r in results if r.ok}
    errors = {r.ticker: r.error for r in results if not r.ok}
    logging.info(f"Compared {len(tickers)} tickers: {len(stocks_data)} ok, {len(errors)} failed")
    return stocks_data, errors


# ── Comparison table ───────────────────────────────────────
# direction: which way is better. "neutral" rows get no best/worst.

COMPARE_METRICS = [
    # Price
    ("current_price", "Price", "currency", "neutral"),
    ("change_pct", "Day Change", "percent_sign", "higher"),
    ("ytd_return", "YTD Return", "percent_sign", "higher"),
    ("high_52w", "52W High", "currency", "neutral"),
    ("low_52w", "52W Low", "currency", "neutral"),
    ("avg_volume", "Avg Volume", "number", "higher"),
    ("market_cap", "Market Cap", "currency_billions", "neutral"),
    # Valuation
    ("pe_ratio", "P/E", "decimal2", "lower"),
    ("forward_pe", "Fwd P/E", "decimal2", "lower"),
    ("peg_ratio", "PEG", "decimal2", "lower"),
    ("price_to_book", "P/B", "decimal2", "lower"),
    ("eps", "EPS", "currency", "higher"),
    ("dividend_yield", "Div Yield", "percent_from_decimal", "higher"),
    ("analyst_target", "Analyst Target", "currency", "neutral"),
    # Profitability
    ("profit_margin", "Profit Margin", "percent_from_decimal", "higher"),
    ("operating_margin", "Oper. Margin", "percent_from_decimal", "higher"),
    ("roe", "ROE", "percent_from_decimal", "higher"),
    ("roa", "ROA", "percent_from_decimal", "higher"),
    # Technical
    ("rsi", "RSI (14)", "decimal2", "neutral"),
    ("macd", "MACD", "decimal3", "neutral"),
    ("macd_signal", "MACD Signal", "decimal3", "neutral"),
    ("macd_hist", "MACD Hist", "decimal3", "higher"),
    ("stoch_k", "Stoch %K", "decimal2", "neutral"),
    ("stoch_d", "Stoch %D", "decimal2", "neutral"),
    ("sma_50", "SMA 50", "currency", "neutral"),
    ("sma_200", "SMA 200", "currency", "neutral"),
    ("ema_20", "EMA 20", "currency", "neutral"),
    ("bb_upper", "BB Upper", "currency", "neutral"),
    ("bb_middle", "BB Middle", "currency", "neutral"),
    ("bb_lower", "BB Lower", "currency", "neutral"),
    ("adx", "ADX (14)", "decimal2", "higher"),
    ("atr", "ATR (14)", "decimal2", "neutral"),
    ("cci", "CCI (14)", "decimal2", "neutral"),
    ("willr", "Williams %R", "decimal2", "neutral"),
    ("mom", "Momentum (10)", "decimal2", "higher"),
    ("roc", "ROC (10)", "percent", "higher"),
    # Risk
    ("beta", "Beta", "decimal2", "lower"),
    ("sharpe_ratio", "Sharpe Ratio", "decimal2", "higher"),
    ("max_drawdown", "Max Drawdown", "percent_from_decimal", "higher"),
]

HIGHER_IS_BETTER = {"higher": True, "lower": False, "neutral": None}


def find_extremes(stocks_data, key, higher_is_better):
    """(best_ticker, worst_ticker) for `key`, or (None, None)."""
    if higher_is_better is None:
        return None, None

    values = [(t, d.get(key)) for t, d in stocks_data.items() if d.get(key) is not None]
    if not values:
        return None, None

    ordered = sorted(values, key=lambda tv: tv[1])
    if higher_is_better:
        return ordered[-1][0], ordered[0][0]
    return ordered[0][0], ordered[-1][0]


def build_comparison_table(stocks_data, tickers):
    """Rows for the comparison view, columns in `tickers` order (failed tickers skipped)."""
    ordered = {t: stocks_data[t] for t in tickers if t in stocks_data}
    rows = []
    for key, label, fmt, direction in COMPARE_METRICS:
        best, worst = find_extremes(ordered, key, HIGHER_IS_BETTER[direction])
        rows.append({
            "key": key,
            "label": label,
            "fmt": fmt,
            "values": [ordered[t].get(key) for t in ordered],
            "best": best,
            "worst": worst,
        })
    return rows
