"""Inspect parsed GPX tracks and export readable time series."""

from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable, Sequence

from track_replay.geo import track_length_m
from track_replay.models import TrackPoint
from track_replay.timeutils import DeltaStats, delta_stats, epoch_ms_from_dt, tzinfo_from_name


@dataclass(frozen=True, slots=True)
class InspectResult:
    """High-level track inspection result."""

    points: int
    start_time: datetime | None
    end_time: datetime | None
    delta: DeltaStats | None
    min_lat: float | None
    max_lat: float | None
    min_lon: float | None
    max_lon: float | None
    duplicate_timestamps: int
    length_m: float


def inspect_points(points: Sequence[TrackPoint]) -> InspectResult:
    """Inspect already-loaded points."""

    if not points:
        return InspectResult(
            points=0,
            start_time=None,
            end_time=None,
            delta=None,
            min_lat=None,
            max_lat=None,
            min_lon=None,
            max_lon=None,
            duplicate_timestamps=0,
            length_m=0.0,
        )

    times = sorted(p.timestamp for p in points)
    dupe = 0
    for i in range(1, len(times)):
        if times[i] == times[i - 1]:
            dupe += 1

    lats = [p.latitude for p in points]
    lons = [p.longitude for p in points]
    return InspectResult(
        points=len(points),
        start_time=times[0],
        end_time=times[-1],
        delta=delta_stats(p.timestamp for p in points),
        min_lat=min(lats),
        max_lat=max(lats),
        min_lon=min(lons),
        max_lon=max(lons),
        duplicate_timestamps=dupe,
        length_m=track_length_m(points),
    )


def export_readable_csv(points: Iterable[TrackPoint], out_path: str | Path, tz_name: str) -> int:
    """Export points to a human-readable CSV.

    Output columns:
        - index: position in the track
        - time_local: ISO datetime (local timezone)
        - epoch_ms, latitude, longitude, elevation_m

    Returns:
        Number of rows written.
    """

    tz = tzinfo_from_name(tz_name)
    p = Path(out_path)
    rows = 0
    with p.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(
            f,
            fieldnames=[
                "index",
                "time_local",
                "epoch_ms",
                "latitude",
                "longitude",
                "elevation_m",
            ],
        )
        w.writeheader()
        for i, pt in enumerate(points):
            w.writerow(
                {
                    "index": i,
                    "time_local": pt.timestamp.astimezone(tz).isoformat(sep=" "),
                    "epoch_ms": epoch_ms_from_dt(pt.timestamp),
                    "latitude": pt.latitude,
                    "longitude": pt.longitude,
                    "elevation_m": pt.elevation_m,
                }
            )
            rows += 1
    return rows
