"""
Candlestick pattern signals.

Raw detector output is one number per bar: 0 means no pattern, the sign
carries direction for detectors that have one (TA-Lib convention, +100 /
-100). PATTERN_CATALOG decides how each detector's output maps to a
bullish / bearish / neutral signal.
"""
from dataclasses import asdict, dataclass
from enum import Enum

from alignment import pad_all
from metrics import safe_metric

MAX_PATTERNS = 20

BULLISH = "bullish"
BEARISH = "bearish"
NEUTRAL = "neutral"


class PatternKind(Enum):
    NEUTRAL = "neutral"          # always neutral
    FIXED = "fixed"              # signal fixed by the pattern definition
    DIRECTIONAL = "directional"  # signal follows the sign of the raw value


@dataclass(frozen=True)
class PatternDef:
    key: str
    name: str
    function: str
    kind: PatternKind
    signal: str = None

    def __post_init__(self):
        if self.kind is PatternKind.FIXED and self.signal not in (BULLISH, BEARISH):
            raise ValueError(f"Fixed pattern {self.key} needs a bullish/bearish signal")

    def classify(self, value):
        if self.kind is PatternKind.NEUTRAL:
            return NEUTRAL
        if self.kind is PatternKind.FIXED:
            return self.signal
        return BULLISH if value > 0 else BEARISH


@dataclass(frozen=True)
class PatternEvent:
    date: str
    pattern: str
    signal: str
    strength: float

    def to_dict(self):
        return asdict(self)


PATTERN_CATALOG = (
    PatternDef("doji", "Doji", "CDLDOJI", PatternKind.NEUTRAL),
    PatternDef("hammer", "Hammer", "CDLHAMMER", PatternKind.FIXED, BULLISH),
    PatternDef("shootingstar", "Shooting Star", "CDLSHOOTINGSTAR", PatternKind.FIXED, BEARISH),
    PatternDef("engulfing", "Engulfing", "CDLENGULFING", PatternKind.DIRECTIONAL),
    PatternDef("morningstar", "Morning Star", "CDLMORNINGSTAR", PatternKind.FIXED, BULLISH),
    PatternDef("eveningstar", "Evening Star", "CDLEVENINGSTAR", PatternKind.FIXED, BEARISH),
    PatternDef("harami", "Harami", "CDLHARAMI", PatternKind.DIRECTIONAL),
    PatternDef("whitesoldiers", "Three White Soldiers", "CDL3WHITESOLDIERS", PatternKind.FIXED, BULLISH),
    PatternDef("blackcrows", "Three Black Crows", "CDL3BLACKCROWS", PatternKind.FIXED, BEARISH),
    PatternDef("piercing", "Piercing", "CDLPIERCING", PatternKind.FIXED, BULLISH),
    PatternDef("darkcloudcover", "Dark Cloud Cover", "CDLDARKCLOUDCOVER", PatternKind.FIXED, BEARISH),
    PatternDef("marubozu", "Marubozu", "CDLMARUBOZU", PatternKind.DIRECTIONAL),
)


def classify_patterns(dates, raw_series, catalog=PATTERN_CATALOG, limit=MAX_PATTERNS):
    """
    Turn padded detector output into the most recent `limit` PatternEvents.

    `raw_series` maps catalog keys to series aligned with `dates`; detectors
    missing from it are skipped. Events are newest first. Events on the same
    date keep catalog order.
    """
    events = []
    for pdef in catalog:
        values = raw_series.get(pdef.key)
        if values is None:
            continue
        for i, value in enumerate(values):
            if value is None or value == 0:
                continue
            events.append(PatternEvent(
                date=dates[i],
                pattern=pdef.name,
                signal=pdef.classify(value),
                strength=abs(value),
            ))

    # sort is stable, so ties stay in catalog order even with reverse=True
    events.sort(key=lambda e: e.date, reverse=True)
    return events[:limit]


def detect_candlestick_patterns(provider, ohlcv, catalog=PATTERN_CATALOG, limit=MAX_PATTERNS):
    """Run every detector in `catalog` and classify the results."""
    dates = ohlcv["dates"]
    n = len(dates)
    inputs = (ohlcv["opens"], ohlcv["highs"], ohlcv["lows"], ohlcv["closes"])

    raw = {}
    for pdef in catalog:
        values = safe_metric(provider.indicator, pdef.function, *inputs, label=pdef.function)
        if values is not None:
            raw[pdef.key] = values

    return classify_patterns(dates, pad_all(raw, n), catalog=catalog, limit=limit)
