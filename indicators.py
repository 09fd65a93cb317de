"""
Indicator batches computed through the analytics collaborator.

Both batches are static tables. Each distinct (function, inputs, params)
call runs once per batch; multi-output functions (MACD, BBANDS, STOCH)
share that single call across their keys.
"""
from collections import namedtuple

from alignment import pad_series
from metrics import safe_metric

IndicatorSpec = namedtuple("IndicatorSpec", ["key", "function", "inputs", "params", "output"])

C = ("closes",)
HLC = ("highs", "lows", "closes")
V = ("volumes",)

# ── Full series (indicator API) ────────────────────────────

FULL_INDICATORS = [
    # Price
    IndicatorSpec("rsi", "RSI", C, {"timeperiod": 14}, 0),
    IndicatorSpec("macd", "MACD", C, {}, 0),
    IndicatorSpec("macd_signal", "MACD", C, {}, 1),
    IndicatorSpec("macd_hist", "MACD", C, {}, 2),
    IndicatorSpec("bb_upper", "BBANDS", C, {}, 0),
    IndicatorSpec("bb_middle", "BBANDS", C, {}, 1),
    IndicatorSpec("bb_lower", "BBANDS", C, {}, 2),
    # Moving averages
    IndicatorSpec("sma_12", "SMA", C, {"timeperiod": 12}, 0),
    IndicatorSpec("sma_20", "SMA", C, {"timeperiod": 20}, 0),
    IndicatorSpec("sma_50", "SMA", C, {"timeperiod": 50}, 0),
    IndicatorSpec("ema_20", "EMA", C, {"timeperiod": 20}, 0),
    IndicatorSpec("wma_20", "WMA", C, {"timeperiod": 20}, 0),
    IndicatorSpec("dema_20", "DEMA", C, {"timeperiod": 20}, 0),
    IndicatorSpec("tema_20", "TEMA", C, {"timeperiod": 20}, 0),
    IndicatorSpec("kama_30", "KAMA", C, {"timeperiod": 30}, 0),
    # Momentum
    IndicatorSpec("stoch_slowk", "STOCH", HLC, {}, 0),
    IndicatorSpec("stoch_slowd", "STOCH", HLC, {}, 1),
    IndicatorSpec("mom_10", "MOM", C, {"timeperiod": 10}, 0),
    IndicatorSpec("cci_14", "CCI", HLC, {"timeperiod": 14}, 0),
    IndicatorSpec("willr_14", "WILLR", HLC, {"timeperiod": 14}, 0),
    IndicatorSpec("roc_10", "ROC", C, {"timeperiod": 10}, 0),
    IndicatorSpec("adx_14", "ADX", HLC, {"timeperiod": 14}, 0),
    # Volatility
    IndicatorSpec("atr_14", "ATR", HLC, {"timeperiod": 14}, 0),
    # Volume
    IndicatorSpec("obv", "OBV", ("closes", "volumes"), {}, 0),
    IndicatorSpec("ad", "AD", ("highs", "lows", "closes", "volumes"), {}, 0),
    IndicatorSpec("vol_sma_12", "SMA", V, {"timeperiod": 12}, 0),
    IndicatorSpec("vol_sma_20", "SMA", V, {"timeperiod": 20}, 0),
    IndicatorSpec("vol_sma_50", "SMA", V, {"timeperiod": 50}, 0),
    IndicatorSpec("vol_ema_12", "EMA", V, {"timeperiod": 12}, 0),
    IndicatorSpec("vol_ema_20", "EMA", V, {"timeperiod": 20}, 0),
]

# ── Latest values (comparison) ─────────────────────────────

LATEST_INDICATORS = [
    IndicatorSpec("rsi", "RSI", C, {"timeperiod": 14}, 0),
    IndicatorSpec("macd", "MACD", C, {}, 0),
    IndicatorSpec("macd_signal", "MACD", C, {}, 1),
    IndicatorSpec("macd_hist", "MACD", C, {}, 2),
    IndicatorSpec("stoch_k", "STOCH", HLC, {}, 0),
    IndicatorSpec("stoch_d", "STOCH", HLC, {}, 1),
    IndicatorSpec("sma_50", "SMA", C, {"timeperiod": 50}, 0),
    IndicatorSpec("sma_200", "SMA", C, {"timeperiod": 200}, 0),
    IndicatorSpec("ema_20", "EMA", C, {"timeperiod": 20}, 0),
    IndicatorSpec("bb_upper", "BBANDS", C, {}, 0),
    IndicatorSpec("bb_middle", "BBANDS", C, {}, 1),
    IndicatorSpec("bb_lower", "BBANDS", C, {}, 2),
    IndicatorSpec("adx", "ADX", HLC, {"timeperiod": 14}, 0),
    IndicatorSpec("atr", "ATR", HLC, {"timeperiod": 14}, 0),
    IndicatorSpec("cci", "CCI", HLC, {"timeperiod": 14}, 0),
    IndicatorSpec("willr", "WILLR", HLC, {"timeperiod": 14}, 0),
    IndicatorSpec("mom", "MOM", C, {"timeperiod": 10}, 0),
    IndicatorSpec("roc", "ROC", C, {"timeperiod": 10}, 0),
]


def _call(provider, spec, ohlcv):
    result = provider.indicator(spec.function, *(ohlcv[name] for name in spec.inputs), **spec.params)
    return result if isinstance(result, tuple) else (result,)


def _series(provider, spec, ohlcv, cache):
    """Output `spec.output` of the (cached) call, or None if the call failed."""
    cache_key = (spec.function, spec.inputs, tuple(sorted(spec.params.items())))
    if cache_key not in cache:
        cache[cache_key] = safe_metric(_call, provider, spec, ohlcv, label=spec.function)
    outputs = cache[cache_key]
    if outputs is None:
        return None
    return outputs[spec.output]


def calculate_all_indicators(provider, ohlcv, specs=FULL_INDICATORS):
    """Every indicator in `specs` padded to the full date axis."""
    n = len(ohlcv["dates"])
    cache = {}
    result = {}
    for spec in specs:
        values = _series(provider, spec, ohlcv, cache)
        result[spec.key] = pad_series(values, n) if values is not None else [None] * n
    return result


def calculate_indicators(provider, ohlcv, specs=LATEST_INDICATORS):
    """Latest value of every indicator in `specs` (None when unavailable)."""
    cache = {}
    result = {}
    for spec in specs:
        values = _series(provider, spec, ohlcv, cache)
        result[spec.key] = values[-1] if values else None
    return result
