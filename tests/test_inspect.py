"""Tests for track inspection and CSV export."""

from __future__ import annotations

import csv

import pytest

from track_replay.geo import haversine_m
from track_replay.inspect import export_readable_csv, inspect_points


class TestInspectPoints:
    def test_empty(self) -> None:
        res = inspect_points([])
        assert res.points == 0
        assert res.start_time is None
        assert res.delta is None
        assert res.length_m == 0.0

    def test_basic(self, make_track) -> None:
        pts = make_track(4, interval_s=5.0)
        res = inspect_points(pts)
        assert res.points == 4
        assert res.start_time == pts[0].timestamp
        assert res.end_time == pts[-1].timestamp
        assert res.delta is not None
        assert res.delta.count == 3
        assert res.delta.median_s == 5.0
        assert (res.min_lon, res.max_lon) == (0.0, pytest.approx(0.003))
        assert res.duplicate_timestamps == 0
        assert res.length_m == pytest.approx(3 * haversine_m(0.0, 0.0, 0.0, 0.001))

    def test_duplicate_timestamps(self, make_track) -> None:
        pts = make_track(3, interval_s=0.0)
        assert inspect_points(pts).duplicate_timestamps == 2


class TestExportReadableCsv:
    def test_rows(self, tmp_path, make_track) -> None:
        out = tmp_path / "readable.csv"
        rows = export_readable_csv(make_track(3, elevation_step=1.5), out, "Asia/Shanghai")
        assert rows == 3

        with out.open(encoding="utf-8", newline="") as f:
            data = list(csv.DictReader(f))
        assert [r["index"] for r in data] == ["0", "1", "2"]
        assert data[0]["time_local"] == "2024-11-17 08:00:00+08:00"
        assert data[1]["epoch_ms"] == str(1731801600000 + 10_000)
        assert float(data[2]["elevation_m"]) == 3.0

    def test_invalid_tz(self, tmp_path, make_track) -> None:
        with pytest.raises(ValueError):
            export_readable_csv(make_track(1), tmp_path / "x.csv", "Not/AZone")
