"""Shared test fixtures and sample GPX documents."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Callable

import pytest

from track_replay.models import Coordinate, TrackPoint

T0 = datetime(2024, 11, 17, 0, 0, 0, tzinfo=UTC)

SAMPLE_GPX = b"""<?xml version="1.0" encoding="UTF-8"?>
<gpx version="1.1" creator="test" xmlns="http://www.topografix.com/GPX/1/1">
  <metadata><time>2024-11-17T00:00:00Z</time></metadata>
  <trk>
    <name>sample</name>
    <trkseg>
      <trkpt lat="22.660000" lon="114.040000">
        <ele>12.5</ele>
        <time>2024-11-17T08:00:00Z</time>
      </trkpt>
      <trkpt lat="22.661000" lon="114.041000">
        <ele>13.0</ele>
      </trkpt>
      <trkpt lat="22.662000" lon="114.042000">
      </trkpt>
    </trkseg>
  </trk>
</gpx>
"""


class ManualTicker:
    """Ticker stand-in: ticks only when the test calls ``fire()``."""

    def __init__(self, interval_s: float, callback: Callable[[], None]) -> None:
        self.interval_s = interval_s
        self.callback = callback
        self.started = False
        self.stopped = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def fire(self) -> None:
        if self.started and not self.stopped:
            self.callback()


class TickerRecorder:
    """Ticker factory that remembers every ticker it created."""

    def __init__(self) -> None:
        self.tickers: list[ManualTicker] = []

    def __call__(self, interval_s: float, callback: Callable[[], None]) -> ManualTicker:
        t = ManualTicker(interval_s, callback)
        self.tickers.append(t)
        return t

    @property
    def last(self) -> ManualTicker:
        return self.tickers[-1]


@pytest.fixture
def ticker_factory() -> TickerRecorder:
    return TickerRecorder()


@pytest.fixture
def sample_gpx() -> bytes:
    return SAMPLE_GPX


@pytest.fixture
def make_track() -> Callable[..., list[TrackPoint]]:
    """Build a track along the equator, eastwards by ``step_deg`` per point."""

    def _make(
        n: int,
        *,
        step_deg: float = 0.001,
        interval_s: float = 10.0,
        elevation_step: float = 1.0,
    ) -> list[TrackPoint]:
        return [
            TrackPoint(
                coordinate=Coordinate(latitude=0.0, longitude=i * step_deg),
                elevation_m=i * elevation_step,
                timestamp=T0 + timedelta(seconds=i * interval_s),
            )
            for i in range(n)
        ]

    return _make


def gpx_document(*trkpts: str) -> bytes:
    body = "\n".join(trkpts)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<gpx version="1.1" xmlns="http://www.topografix.com/GPX/1/1"><trk><trkseg>\n'
        f"{body}\n"
        "</trkseg></trk></gpx>\n"
    ).encode("utf-8")


@pytest.fixture
def build_gpx() -> Callable[..., bytes]:
    return gpx_document
