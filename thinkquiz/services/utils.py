import datetime
import math


def utcnow():
    """Naive UTC timestamp, matching how the columns are stored."""
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


def isoformat(value):
    if value is None:
        return None
    return value.isoformat()


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def parse_positive_int(raw, default, maximum=None):
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    if value < 1:
        return default
    if maximum is not None:
        value = min(value, maximum)
    return value


TIMEFRAMES = {
    "1h": datetime.timedelta(hours=1),
    "24h": datetime.timedelta(hours=24),
    "7d": datetime.timedelta(days=7),
    "30d": datetime.timedelta(days=30),
}


def timeframe_start(timeframe: str):
    """Start of a security-report window; unknown values fall back to 24h."""
    return utcnow() - TIMEFRAMES.get(timeframe, TIMEFRAMES["24h"])
