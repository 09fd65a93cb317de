"""
Forecast timeline: recent predictions checked against realized prices,
followed by the latest predictions projected onto upcoming trading days.

Each forecast entry at bar i predicts the percentage move into bar i + 1.
"""
from dataclasses import asdict, dataclass
from datetime import timedelta

from periods import parse_date

FORECAST_PERIOD = 10
HISTORY_COUNT = 5

# Moves within +/- this many percent count as FLAT
FLAT_THRESHOLD = 0.1
# Percentage-point distance between predicted and realized move that still
# counts as a correct prediction. Tunable, not derived.
CORRECT_TOLERANCE = 1.0

UP = "UP"
DOWN = "DOWN"
FLAT = "FLAT"


@dataclass(frozen=True)
class ForecastEntry:
    date: str
    direction: str
    magnitude: float
    risk: float
    interpretation: str
    actual_change: float = None
    actual_direction: str = None
    correct: bool = None
    is_future: bool = False

    def to_dict(self):
        return asdict(self)


def next_trading_dates(last_date, count):
    """The `count` weekdays after `last_date` as 'YYYY-MM-DD' strings."""
    if isinstance(last_date, str):
        last_date = parse_date(last_date)

    dates = []
    current = last_date + timedelta(days=1)
    while len(dates) < count:
        if current.weekday() < 5:
            dates.append(current.isoformat())
        current += timedelta(days=1)
    return dates


def classify_move(change, threshold=FLAT_THRESHOLD):
    if change > threshold:
        return UP
    if change < -threshold:
        return DOWN
    return FLAT


def historical_entries(dates, prices, forecast, count=HISTORY_COUNT, tolerance=CORRECT_TOLERANCE):
    """
    The last `count` predictions whose target bar has a realized price.

    Dated by the target bar. Entries that would index past the available
    forecast or price data, or divide by a zero price, are left out.
    """
    count = max(0, min(count, len(dates) - 1))
    start = len(dates) - count - 1

    entries = []
    for idx in range(start, start + count):
        target = idx + 1
        if idx < 0 or idx >= len(forecast) or target >= len(prices):
            continue
        prev_price = prices[idx]
        actual_price = prices[target]
        if not prev_price or actual_price is None:
            continue

        actual_change = (actual_price - prev_price) / prev_price * 100
        f = forecast[idx]
        entries.append(ForecastEntry(
            date=dates[target],
            direction=f["direction"],
            magnitude=f["magnitude"],
            risk=f["risk"],
            interpretation=f["interpretation"],
            actual_change=round(actual_change, 2),
            actual_direction=classify_move(actual_change),
            correct=abs(f["magnitude"] - actual_change) <= tolerance,
            is_future=False,
        ))
    return entries


def future_entries(last_date, forecast, period=FORECAST_PERIOD):
    """The last `period` predictions dated on the trading days after `last_date`."""
    recent = forecast[-period:] if period > 0 else []
    future_dates = next_trading_dates(last_date, len(recent))
    return [
        ForecastEntry(
            date=d,
            direction=f["direction"],
            magnitude=f["magnitude"],
            risk=f["risk"],
            interpretation=f["interpretation"],
            is_future=True,
        )
        for d, f in zip(future_dates, recent)
    ]


def align_forecast(dates, prices, forecast, period=FORECAST_PERIOD, history=HISTORY_COUNT,
                   tolerance=CORRECT_TOLERANCE):
    """Historical (verified) entries followed by future entries, both ascending."""
    if not dates:
        return []
    return (
        historical_entries(dates, prices, forecast, count=history, tolerance=tolerance)
        + future_entries(dates[-1], forecast, period=period)
    )


def analyze_forecast(provider, ohlcv, period=FORECAST_PERIOD):
    """Run the collaborator's rolling forecast and align it for display."""
    prices = ohlcv["closes"]
    forecast = provider.forecast(prices, period)
    return [entry.to_dict() for entry in align_forecast(ohlcv["dates"], prices, forecast, period=period)]
