"""GPX input: streaming event reader and track point extraction."""

from __future__ import annotations

import logging
import math
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator, Union

from track_replay.models import Coordinate, TrackPoint
from track_replay.timeutils import parse_gpx_time, utc_now
from track_replay.transform import wgs84_to_gcj02

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

POINT_ELEMENT = "trkpt"
ELEVATION_ELEMENT = "ele"
TIME_ELEMENT = "time"


@dataclass(frozen=True, slots=True)
class ElementOpen:
    name: str
    attrs: dict[str, str]


@dataclass(frozen=True, slots=True)
class Text:
    text: str


@dataclass(frozen=True, slots=True)
class ElementClose:
    name: str


GpxEvent = Union[ElementOpen, Text, ElementClose]


@dataclass(frozen=True, slots=True)
class GpxSummary:
    """Quick summary of GPX parsing."""

    points_total: int
    points_parsed: int
    points_skipped: int
    malformed: bool


def _local_name(tag: str) -> str:
    # "{http://www.topografix.com/GPX/1/1}trkpt" -> "trkpt"
    return tag.rsplit("}", 1)[-1]


def iter_events(data: bytes) -> Iterator[GpxEvent]:
    """Yield markup events from an in-memory document, one chunk at a time.

    Namespaces are stripped from element and attribute names. Closed elements are
    detached from their parent so memory stays bounded for long tracks.

    Args:
        data: Raw document bytes.

    Yields:
        ElementOpen / Text / ElementClose events in document order.

    Raises:
        xml.etree.ElementTree.ParseError: When the markup is malformed or truncated.
            Events before the error have already been yielded.
    """

    parser = ET.XMLPullParser(events=("start", "end"))
    stack: list[ET.Element] = []
    view = memoryview(data)

    def drain() -> Iterator[GpxEvent]:
        for event, elem in parser.read_events():
            if event == "start":
                stack.append(elem)
                attrs = {_local_name(k): v for k, v in elem.attrib.items()}
                yield ElementOpen(name=_local_name(elem.tag), attrs=attrs)
            else:
                if elem.text:
                    yield Text(text=elem.text)
                yield ElementClose(name=_local_name(elem.tag))
                stack.pop()
                if stack:
                    stack[-1].remove(elem)

    for offset in range(0, len(view), CHUNK_SIZE):
        parser.feed(bytes(view[offset : offset + CHUNK_SIZE]))
        yield from drain()
    try:
        parser.close()
    except ET.ParseError:
        yield from drain()
        raise
    yield from drain()


def _parse_coordinate(value: str | None, limit: float) -> float | None:
    if value is None:
        return None
    try:
        v = float(value.strip())
    except ValueError:
        return None
    if not math.isfinite(v) or abs(v) > limit:
        return None
    return v


def _parse_elevation(text: str) -> float:
    try:
        v = float(text)
    except ValueError:
        return 0.0
    return v if math.isfinite(v) else 0.0


@dataclass(slots=True)
class _PendingPoint:
    """Fields collected for the track point currently open."""

    lat: float | None = None
    lon: float | None = None
    ele: float | None = None
    time: datetime | None = None


@dataclass(slots=True)
class _ParseState:
    apply_transform: bool
    clock: Callable[[], datetime]
    pending: _PendingPoint = field(default_factory=_PendingPoint)
    text: str = ""
    in_point: bool = False
    points: list[TrackPoint] = field(default_factory=list)
    points_seen: int = 0


def _handle_event(state: _ParseState, event: GpxEvent) -> None:
    if isinstance(event, ElementOpen):
        state.text = ""
        if event.name == POINT_ELEMENT:
            state.in_point = True
            state.pending = _PendingPoint(
                lat=_parse_coordinate(event.attrs.get("lat"), 90.0),
                lon=_parse_coordinate(event.attrs.get("lon"), 180.0),
            )
        return

    if isinstance(event, Text):
        state.text += event.text.strip()
        return

    # ElementClose
    if event.name == ELEVATION_ELEMENT:
        if state.in_point:
            state.pending.ele = _parse_elevation(state.text)
    elif event.name == TIME_ELEMENT:
        if state.in_point:
            state.pending.time = parse_gpx_time(state.text)
    elif event.name == POINT_ELEMENT:
        state.points_seen += 1
        p = state.pending
        if p.lat is not None and p.lon is not None:
            if state.apply_transform:
                coord = wgs84_to_gcj02(p.lat, p.lon)
            else:
                coord = Coordinate(latitude=p.lat, longitude=p.lon)
            state.points.append(
                TrackPoint(
                    coordinate=coord,
                    elevation_m=p.ele if p.ele is not None else 0.0,
                    timestamp=p.time if p.time is not None else state.clock(),
                )
            )
        state.pending = _PendingPoint()
        state.in_point = False
    state.text = ""


def _parse(
    data: bytes,
    apply_transform: bool,
    clock: Callable[[], datetime],
) -> tuple[list[TrackPoint], GpxSummary]:
    state = _ParseState(apply_transform=apply_transform, clock=clock)
    malformed = False
    try:
        for event in iter_events(data):
            _handle_event(state, event)
    except ET.ParseError as exc:
        malformed = True
        logger.warning("GPX格式错误，已保留前 %s 个轨迹点：%s", len(state.points), exc)

    summary = GpxSummary(
        points_total=state.points_seen,
        points_parsed=len(state.points),
        points_skipped=state.points_seen - len(state.points),
        malformed=malformed,
    )
    if summary.points_skipped > 0:
        logger.warning("GPX中有 %s 个轨迹点缺少有效经纬度已跳过", summary.points_skipped)
    return state.points, summary


def parse_gpx(
    data: bytes,
    apply_transform: bool = True,
    *,
    clock: Callable[[], datetime] = utc_now,
) -> list[TrackPoint]:
    """Extract track points from GPX bytes.

    Never raises on bad input: points without a valid lat/lon are dropped, a missing or
    bad <ele> becomes 0.0, a missing or bad <time> becomes ``clock()``, and malformed
    markup ends the pass keeping the points completed so far.

    Args:
        data: Raw GPX document.
        apply_transform: Convert WGS-84 positions to GCJ-02.
        clock: Source of the default timestamp.

    Returns:
        Track points in document order.
    """

    points, _ = _parse(data, apply_transform, clock)
    return points


def load_gpx(path: str | Path, apply_transform: bool = True) -> tuple[list[TrackPoint], GpxSummary]:
    """Read and parse a GPX file.

    Args:
        path: GPX file path.
        apply_transform: Convert WGS-84 positions to GCJ-02.

    Returns:
        (points, summary)

    Raises:
        OSError: If the file cannot be read.
    """

    data = Path(path).read_bytes()
    return _parse(data, apply_transform, utc_now)
