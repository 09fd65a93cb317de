from datetime import date

import pytest

from forecast import (
    DOWN,
    FLAT,
    UP,
    align_forecast,
    analyze_forecast,
    classify_move,
    historical_entries,
    next_trading_dates,
)

from conftest import FakeAnalytics, make_ohlcv, weekdays


def _forecast(n, magnitude=0.5):
    return [
        {"direction": "UP", "magnitude": magnitude, "risk": 1.0, "interpretation": "UP"}
        for _ in range(n)
    ]


def test_next_trading_dates_skip_weekends():
    # 2024-03-08 is a Friday
    assert next_trading_dates("2024-03-08", 3) == ["2024-03-11", "2024-03-12", "2024-03-13"]


def test_next_trading_dates_from_saturday():
    assert next_trading_dates(date(2024, 3, 9), 1) == ["2024-03-11"]


@pytest.mark.parametrize("change,expected", [
    (0.5, UP), (0.11, UP), (0.1, FLAT), (0.0, FLAT), (-0.1, FLAT), (-0.11, DOWN), (-3.0, DOWN),
])
def test_classify_move(change, expected):
    assert classify_move(change) == expected


@pytest.mark.parametrize("length", [12, 20, 250])
def test_split_sizes(length):
    dates = weekdays("2024-01-02", length)
    prices = [100.0 + i for i in range(length)]
    timeline = align_forecast(dates, prices, _forecast(length - 1))

    history = [e for e in timeline if not e.is_future]
    future = [e for e in timeline if e.is_future]

    assert len(history) == min(5, length - 1)
    assert len(future) == 10
    assert timeline == history + future

    future_dates = [date.fromisoformat(e.date) for e in future]
    assert future_dates == sorted(set(future_dates))
    assert all(d.weekday() < 5 for d in future_dates)
    assert future_dates[0] > date.fromisoformat(dates[-1])


def test_historical_entries_are_dated_by_target_bar():
    dates = weekdays("2024-01-02", 8)
    prices = [100, 101, 102, 103, 104, 105, 106, 107]
    history = historical_entries(dates, prices, _forecast(7))

    assert [e.date for e in history] == dates[-5:]


def test_actual_change_direction_and_correctness():
    dates = weekdays("2024-01-02", 4)
    prices = [100.0, 102.0, 101.9, 100.0]
    forecast = [
        {"direction": "UP", "magnitude": 1.5, "risk": 1.0, "interpretation": ""},
        {"direction": "FLAT", "magnitude": 0.0, "risk": 1.0, "interpretation": ""},
        {"direction": "DOWN", "magnitude": -5.0, "risk": 1.0, "interpretation": ""},
    ]
    first, second, third = historical_entries(dates, prices, forecast)

    assert first.actual_change == 2.0
    assert first.actual_direction == UP
    assert first.correct is True            # |1.5 - 2.0| <= 1.0

    assert second.actual_direction == FLAT  # -0.098%
    assert second.correct is True

    assert third.actual_direction == DOWN   # -1.86%
    assert third.correct is False


def test_tolerance_is_configurable():
    dates = weekdays("2024-01-02", 2)
    prices = [100.0, 102.0]
    (entry,) = historical_entries(dates, prices, _forecast(1, magnitude=1.5), tolerance=0.25)
    assert entry.correct is False


def test_future_entries_carry_no_verification():
    dates = weekdays("2024-01-02", 15)
    prices = [100.0 + i for i in range(15)]
    future = [e for e in align_forecast(dates, prices, _forecast(14)) if e.is_future]

    for e in future:
        assert e.actual_change is None
        assert e.actual_direction is None
        assert e.correct is None


def test_single_price_point_has_no_history():
    timeline = align_forecast(["2024-01-02"], [100.0], [])
    assert timeline == []


def test_short_forecast_is_clamped():
    dates = weekdays("2024-01-02", 6)
    prices = [100.0 + i for i in range(6)]
    timeline = align_forecast(dates, prices, _forecast(2))

    history = [e for e in timeline if not e.is_future]
    future = [e for e in timeline if e.is_future]
    # history wants forecast indices 0..4, only 0 and 1 exist
    assert len(history) == 2
    assert len(future) == 2


def test_zero_previous_price_is_skipped():
    dates = weekdays("2024-01-02", 3)
    history = historical_entries(dates, [0.0, 1.0, 2.0], _forecast(2))
    assert [e.date for e in history] == [dates[2]]


def test_empty_input():
    assert align_forecast([], [], []) == []


def test_analyze_forecast_returns_dicts():
    ohlcv = make_ohlcv(n=30)
    timeline = analyze_forecast(FakeAnalytics(), ohlcv)

    assert len(timeline) == 15
    assert timeline[0]["is_future"] is False
    assert timeline[-1]["is_future"] is True
    assert set(timeline[0]) == {
        "date", "direction", "magnitude", "risk", "interpretation",
        "actual_change", "actual_direction", "correct", "is_future",
    }
