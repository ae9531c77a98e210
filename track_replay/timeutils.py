"""Time parsing and formatting utilities."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta, timezone, tzinfo
from typing import Iterable, Sequence

from zoneinfo import ZoneInfo

from track_replay.models import TrackPoint

# GPX <time> profile: 2024-11-17T08:30:05Z, 2024-11-17T08:30:05.250+08:00, ...+0800
_GPX_TIME_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d{1,9}))?(Z|[+-]\d{2}:?\d{2})"
)

NO_TIME_TEXT = "--:--:--"


def utc_now() -> datetime:
    """Current wall-clock time, timezone-aware (UTC)."""

    return datetime.now(UTC)


def parse_gpx_time(text: str) -> datetime | None:
    """Parse a GPX timestamp in the strict ISO-8601 profile.

    Accepted: ``YYYY-MM-DDTHH:MM:SS`` with optional fractional seconds and a mandatory
    zone designator (``Z``, ``+HH:MM`` or ``+HHMM``). Anything else, including naive
    times and impossible calendar values, is rejected.

    Args:
        text: Raw element text.

    Returns:
        Timezone-aware UTC datetime, or None if the text does not match the profile.
    """

    m = _GPX_TIME_RE.fullmatch(text.strip())
    if m is None:
        return None

    year, month, day, hour, minute, second, frac, zone = m.groups()
    micro = int(frac[:6].ljust(6, "0")) if frac else 0
    try:
        if zone == "Z":
            tz: tzinfo = UTC
        else:
            sign = -1 if zone[0] == "-" else 1
            digits = zone[1:].replace(":", "")
            tz = timezone(sign * timedelta(hours=int(digits[:2]), minutes=int(digits[2:])))
        dt = datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second), micro, tzinfo=tz
        )
        return dt.astimezone(UTC)
    except (ValueError, OverflowError):
        # e.g. month 13, offset >= 24h, UTC instant outside years 1..9999
        return None


def tzinfo_from_name(tz_name: str) -> tzinfo:
    """Create tzinfo from an IANA timezone name.

    Args:
        tz_name: Timezone name like "Asia/Shanghai".

    Returns:
        tzinfo instance.

    Raises:
        ValueError: If timezone name is invalid on this system.
    """

    try:
        return ZoneInfo(tz_name)
    except Exception as exc:  # ZoneInfo raises KeyError / ZoneInfoNotFoundError (platform dependent)
        raise ValueError(f"无效时区：{tz_name!r}。例如可用：Asia/Shanghai") from exc


def epoch_ms_from_dt(dt: datetime) -> int:
    """Convert a datetime to epoch milliseconds (naive values are treated as UTC)."""

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return int(dt.timestamp() * 1000)


def format_local_time(dt: datetime, tz_name: str) -> str:
    """Render a timestamp as ``HH:MM:SS`` in the given timezone."""

    return dt.astimezone(tzinfo_from_name(tz_name)).strftime("%H:%M:%S")


def format_point_time(points: Sequence[TrackPoint], index: int, tz_name: str) -> str:
    """Display time of ``points[index]``, or a placeholder for an out-of-range index."""

    if not 0 <= index < len(points):
        return NO_TIME_TEXT
    return format_local_time(points[index].timestamp, tz_name)


@dataclass(frozen=True, slots=True)
class DeltaStats:
    """Sampling interval stats (seconds)."""

    count: int
    min_s: float
    median_s: float
    p95_s: float
    max_s: float


def delta_stats(timestamps: Iterable[datetime]) -> DeltaStats | None:
    """Compute basic sampling-interval statistics.

    Args:
        timestamps: Sample times in document order. Backwards steps are ignored.

    Returns:
        DeltaStats or None if there are no forward intervals.
    """

    ts = list(timestamps)
    if len(ts) < 2:
        return None
    deltas = [(ts[i] - ts[i - 1]).total_seconds() for i in range(1, len(ts)) if ts[i] >= ts[i - 1]]
    if not deltas:
        return None
    deltas.sort()
    n = len(deltas)
    median = deltas[n // 2] if n % 2 == 1 else 0.5 * (deltas[n // 2 - 1] + deltas[n // 2])
    p95 = deltas[int(0.95 * (n - 1))]
    return DeltaStats(
        count=n,
        min_s=deltas[0],
        median_s=median,
        p95_s=p95,
        max_s=deltas[-1],
    )
