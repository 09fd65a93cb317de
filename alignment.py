"""
Alignment of indicator series against the date axis.

Every array handled here is positional: index i of each series refers to
dates[i]. Padding restores that correspondence for warm-up-shortened
indicator output, and windowing applies one shared index set to every
array so it survives period filtering.
"""
from periods import period_indices


def pad_series(series, length):
    """Left-pad `series` with None up to `length` entries."""
    series = list(series)
    missing = length - len(series)
    if missing < 0:
        raise ValueError(
            f"Series of length {len(series)} is longer than the date axis ({length})"
        )
    return [None] * missing + series


def pad_all(series_map, length):
    """Pad every series in a {key: series} map, keeping key order."""
    return {key: pad_series(values, length) for key, values in series_map.items()}


def take(series, indices):
    return [series[i] for i in indices]


def filter_by_period(dates, *arrays, period="all"):
    """
    Window `dates` and every parallel array to the trailing `period`.

    Returns a tuple (dates, *arrays). All arrays are filtered with the same
    index set, so output position i of every array refers to the same date.
    """
    for pos, arr in enumerate(arrays):
        if len(arr) != len(dates):
            raise ValueError(
                f"Array {pos} has {len(arr)} entries, date axis has {len(dates)}"
            )

    if period == "all" or not dates:
        return (dates, *arrays)

    indices = period_indices(dates, period)
    return (take(dates, indices), *(take(arr, indices) for arr in arrays))


def filter_indicators_by_period(dates, indicators, period="all"):
    """Window a {key: series} map. Result has 'dates' first, then the keys in input order."""
    keys = list(indicators)
    filtered = filter_by_period(dates, *(indicators[k] for k in keys), period=period)

    result = {"dates": filtered[0]}
    for key, values in zip(keys, filtered[1:]):
        result[key] = values
    return result
