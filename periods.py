"""
Trailing period windows over a date axis.

Periods are expressed relative to the most recent date in the series.
Quarter tokens use trading-day approximations (63 days per quarter), not
calendar quarters.
"""
from datetime import datetime, timedelta

DATE_FORMAT = "%Y-%m-%d"

# Offset in days back from the latest date
PERIOD_OFFSETS = {
    "30d": 30,
    "60d": 60,
    "90d": 90,
    "1q": 63,
    "2q": 126,
    "3q": 189,
    "4q": 252,
}

PERIODS = list(PERIOD_OFFSETS) + ["all"]


def period_label(period):
    """Display label for a period token: '30d' -> '30 Days', '1q' -> '1 Quarter'."""
    if period == "all":
        return "All"
    count, unit = int(period[:-1]), period[-1]
    if unit == "q":
        return f"{count} Quarter" if count == 1 else f"{count} Quarters"
    return f"{count} Days"


def parse_date(value):
    """Parse a 'YYYY-MM-DD' string (any time suffix is ignored)."""
    return datetime.strptime(value[:10], DATE_FORMAT).date()


def period_cutoff(parsed_dates, period):
    """Earliest date kept by `period`. Unknown tokens keep everything."""
    offset = PERIOD_OFFSETS.get(period)
    if offset is None:
        return min(parsed_dates)
    return max(parsed_dates) - timedelta(days=offset)


def period_indices(dates, period="all"):
    """
    Positions in `dates` that fall inside the trailing `period`.

    Order is preserved. 'all' and an empty axis select every position.
    """
    if period == "all" or not dates:
        return list(range(len(dates)))

    parsed = [parse_date(d) for d in dates]
    cutoff = period_cutoff(parsed, period)
    return [i for i, d in enumerate(parsed) if d >= cutoff]
