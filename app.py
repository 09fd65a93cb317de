"""
Stock Analytics Dashboard -- Flask Backend
Price history, technical indicators, forecasts, backtests and side-by-side
ticker comparison on top of yfinance + TA-Lib.
"""
import os
import logging
from flask import Flask, current_app, jsonify, render_template, request
from flask_cors import CORS

from alignment import filter_by_period, filter_indicators_by_period
from analytics import YFinanceAnalytics
from backtest import COMPARE_STRATEGIES, STRATEGIES, resolve_strategy
from compare import (
    COMPARE_METRICS,
    TickerListError,
    build_comparison_table,
    compare_tickers,
    parse_tickers,
)
from forecast import analyze_forecast
from formatting import format_compare_value, format_currency, format_number, format_percent
from indicators import calculate_all_indicators
from metrics import (
    WEEKS_52_BARS,
    company_summary,
    daily_returns,
    load_stock,
    load_stock_with_overview,
    safe_metric,
)
from patterns import PATTERN_CATALOG, detect_candlestick_patterns
from periods import PERIODS, period_label

# ── Config ─────────────────────────────────────────────────

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
BACKTEST_CAPITAL = float(os.environ.get("BACKTEST_CAPITAL", "10000"))
BACKTEST_COMMISSION = float(os.environ.get("BACKTEST_COMMISSION", "1.0"))

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s [%(levelname)s] %(message)s")

app = Flask(__name__)
CORS(app)

# Anything with the YFinanceAnalytics methods works here (tests use a fake)
app.config["ANALYTICS"] = YFinanceAnalytics()

app.add_template_filter(format_percent, "percent")
app.add_template_filter(format_currency, "currency")
app.add_template_filter(format_number, "number")
app.add_template_filter(format_compare_value, "compare_value")

# Period selector: token → label
PERIOD_LABELS = {p: period_label(p) for p in PERIODS}


def analytics():
    return current_app.config["ANALYTICS"]


def _param(name, default=None):
    """Look up a request parameter in the JSON body, then form/query args."""
    body = request.get_json(silent=True) or {}
    return body.get(name) or request.values.get(name) or default


def _error_page(ticker, e):
    logging.error(f"Page load failed for {ticker.upper()}: {e}")
    return render_template("error.html", error=f"Failed to load data for {ticker.upper()}: {e}")


# ── Pages ──────────────────────────────────────────────────

@app.route("/")
def index():
    return render_template("index.html")


@app.route("/dashboard/<ticker>")
def dashboard(ticker):
    try:
        data = load_stock(analytics(), ticker)
    except Exception as e:
        return _error_page(ticker, e)
    return render_template(
        "dashboard.html",
        ticker=data["ticker"],
        company_name=data["company_name"],
        show_period_selector=True,
        periods=PERIOD_LABELS,
    )


@app.route("/analyze/<ticker>")
def analyze(ticker):
    try:
        data = load_stock(analytics(), ticker)
    except Exception as e:
        return _error_page(ticker, e)
    return render_template("analyze.html", ticker=data["ticker"], company_name=data["company_name"])


@app.route("/backtest/<ticker>")
def backtest(ticker):
    try:
        data = load_stock(analytics(), ticker)
    except Exception as e:
        return _error_page(ticker, e)
    return render_template(
        "backtest.html",
        ticker=data["ticker"],
        company_name=data["company_name"],
        strategies=STRATEGIES,
    )


@app.route("/company/<ticker>")
def company(ticker):
    try:
        data = load_stock_with_overview(analytics(), ticker)
        summary = company_summary(data["ohlcv"])
    except Exception as e:
        return _error_page(ticker, e)
    return render_template(
        "company.html",
        ticker=data["ticker"],
        company_name=data["company_name"],
        overview=data["overview"],
        exchange=data["exchange"],
        summary=summary,
    )


@app.route("/compare")
def compare():
    try:
        tickers = parse_tickers(request.args.get("tickers", ""))
    except TickerListError as e:
        return render_template("error.html", error=str(e))

    stocks_data, errors = compare_tickers(analytics(), tickers)
    return render_template(
        "compare.html",
        tickers=[t for t in tickers if t in stocks_data],
        stocks_data=stocks_data,
        errors=errors,
        rows=build_comparison_table(stocks_data, tickers),
    )


# ── API ────────────────────────────────────────────────────

@app.route("/api/meta")
def api_meta():
    return jsonify({
        "periods": PERIOD_LABELS,
        "strategies": list(STRATEGIES),
        "patterns": [
            {"key": p.key, "name": p.name, "kind": p.kind.value, "signal": p.signal}
            for p in PATTERN_CATALOG
        ],
        "compare_metrics": [
            {"key": key, "label": label, "fmt": fmt, "direction": direction}
            for key, label, fmt, direction in COMPARE_METRICS
        ],
    })


@app.route("/api/stock/<ticker>")
def api_stock(ticker):
    """
    Price history for a ticker, windowed to a trailing period.
    Query params:
      - period: 30d, 60d, 90d, 1q, 2q, 3q, 4q, all (default all)
    52-week high/low always use the full history.
    """
    ticker = ticker.upper()
    period = request.args.get("period", "all")

    try:
        ohlcv = analytics().ohlcv(ticker)
        dates, opens, highs, lows, closes, volumes = filter_by_period(
            ohlcv["dates"], ohlcv["opens"], ohlcv["highs"], ohlcv["lows"],
            ohlcv["closes"], ohlcv["volumes"], period=period,
        )

        current_price = closes[-1] if closes else None
        prev_price = closes[-2] if len(closes) > 1 else None
        change = current_price - prev_price if prev_price is not None else None
        change_pct = (change / prev_price) * 100 if prev_price else None

        last_year = ohlcv["closes"][-WEEKS_52_BARS:]

        return jsonify({
            "ticker": ticker,
            "period": period,
            "current_price": current_price,
            "change": change,
            "change_percent": change_pct,
            "high_52w": max(last_year) if last_year else None,
            "low_52w": min(last_year) if last_year else None,
            "dates": dates,
            "open": opens,
            "high": highs,
            "low": lows,
            "close": closes,
            "volume": volumes,
        })

    except Exception as e:
        logging.error(f"Stock data error for {ticker}/{period}: {e}")
        return jsonify({"error": str(e)}), 500


@app.route("/api/indicators/<ticker>")
def api_indicators(ticker):
    """
    Technical indicators and recent candlestick patterns.
    Indicators are computed over the full history, then windowed to `period`.
    """
    ticker = ticker.upper()
    period = request.args.get("period", "all")

    try:
        provider = analytics()
        ohlcv = provider.ohlcv(ticker)

        indicators = calculate_all_indicators(provider, ohlcv)
        patterns = detect_candlestick_patterns(provider, ohlcv)

        data = filter_indicators_by_period(ohlcv["dates"], indicators, period)
        data["period"] = period
        data["patterns"] = [p.to_dict() for p in patterns]
        return jsonify(data)

    except Exception as e:
        logging.error(f"Indicator error for {ticker}/{period}: {e}")
        return jsonify({"error": str(e)}), 500


@app.route("/api/backtest/<ticker>", methods=["POST"])
def api_backtest(ticker):
    ticker = ticker.upper()
    strategy = resolve_strategy(_param("strategy", "RSI"))

    try:
        provider = analytics()
        ohlcv = provider.ohlcv(ticker)
        results = provider.backtest(
            ohlcv, strategy,
            initial_capital=BACKTEST_CAPITAL,
            commission=BACKTEST_COMMISSION,
        )
        return jsonify({
            "total_return": results["total_return"],
            "annualized_return": results["annualized_return"],
            "sharpe_ratio": results["sharpe_ratio"],
            "max_drawdown": results["max_drawdown"],
            "win_rate": results["win_rate"],
            "total_trades": results["total_trades"],
            "profit_factor": results["profit_factor"],
            "avg_win": results["avg_win"],
            "avg_loss": results["avg_loss"],
        })

    except Exception as e:
        logging.error(f"Backtest error for {ticker}/{strategy}: {e}")
        return jsonify({"error": str(e)}), 500


@app.route("/api/analyze/<ticker>")
def api_analyze(ticker):
    """Market regime, seasonality, forecast timeline and risk figures."""
    ticker = ticker.upper()

    try:
        provider = analytics()
        ohlcv = provider.ohlcv(ticker)
        prices = ohlcv["closes"]

        regime = provider.regime(ohlcv)
        seasonal = provider.seasonal(ohlcv)
        fpop = analyze_forecast(provider, ohlcv)

        # each risk figure degrades to None on its own
        returns = safe_metric(daily_returns, prices, label=f"daily_returns {ticker}")
        var_95 = safe_metric(provider.value_at_risk, returns, confidence=0.95, label=f"var_95 {ticker}") if returns else None
        sharpe = safe_metric(provider.sharpe_ratio, returns, label=f"sharpe_ratio {ticker}") if returns else None
        max_dd = safe_metric(provider.max_drawdown, prices, label=f"max_drawdown {ticker}")

        return jsonify({
            "regime": {
                "type": regime["type"],
                "volatility": regime["volatility"],
                "strength": regime["strength_score"],
                "trend": regime["trend_score"],
            },
            "seasonal": {
                "best_months": seasonal["best_months"],
                "worst_months": seasonal["worst_months"],
                "best_quarters": seasonal["best_quarters"],
                "has_pattern": seasonal["has_seasonal_pattern"],
            },
            "fpop": fpop,
            "risk": {
                "var_95": var_95,
                "sharpe_ratio": sharpe,
                "max_drawdown": max_dd["max_drawdown"] if max_dd else None,
            },
        })

    except Exception as e:
        logging.error(f"Analysis error for {ticker}: {e}")
        return jsonify({"error": str(e)}), 500


@app.route("/api/compare/<ticker>", methods=["POST"])
def api_compare_strategies(ticker):
    """Backtest every strategy on one ticker, best total return first."""
    ticker = ticker.upper()

    try:
        provider = analytics()
        ohlcv = provider.ohlcv(ticker)

        results = []
        for name, strategy in COMPARE_STRATEGIES.items():
            try:
                r = provider.backtest(
                    ohlcv, strategy,
                    initial_capital=BACKTEST_CAPITAL,
                    commission=BACKTEST_COMMISSION,
                )
            except Exception as e:
                logging.warning(f"Strategy {name} failed for {ticker}: {e}")
                continue
            results.append({
                "strategy": name,
                "return": r["total_return"],
                "sharpe": r["sharpe_ratio"],
                "drawdown": r["max_drawdown"],
                "win_rate": r["win_rate"],
                "trades": r["total_trades"],
            })

        results.sort(key=lambda r: -r["return"])
        return jsonify(results)

    except Exception as e:
        logging.error(f"Strategy comparison error for {ticker}: {e}")
        return jsonify({"error": str(e)}), 500


@app.route("/api/tickers/compare")
def api_compare_tickers():
    """JSON form of the comparison page: ?tickers=AAPL MSFT ..."""
    try:
        tickers = parse_tickers(request.args.get("tickers", ""))
    except TickerListError as e:
        return jsonify({"error": str(e)}), 400

    stocks_data, errors = compare_tickers(analytics(), tickers)
    return jsonify({"tickers": tickers, "stocks": stocks_data, "errors": errors})


# ── Entry point ────────────────────────────────────────────

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    debug = os.environ.get("FLASK_DEBUG", "false").lower() == "true"
    app.run(host="0.0.0.0", port=port, debug=debug)
