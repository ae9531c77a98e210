"""Smoke tests for the command-line interface."""

from __future__ import annotations

import json

import pytest

from track_replay.cli import build_parser, main


@pytest.fixture
def gpx_file(tmp_path, build_gpx):
    path = tmp_path / "ride.gpx"
    path.write_bytes(
        build_gpx(
            *(
                f'<trkpt lat="22.66{i}" lon="114.04{i}"><ele>{10 + i}</ele>'
                f"<time>2024-11-17T00:00:{i * 5:02d}Z</time></trkpt>"
                for i in range(5)
            )
        )
    )
    return path


class TestParser:
    def test_requires_command(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_play_defaults(self) -> None:
        args = build_parser().parse_args(["play", "--gpx", "x.gpx"])
        assert args.speed == 10.0
        assert args.keep_direction is False
        assert args.realtime is False


class TestCommands:
    def test_inspect(self, gpx_file, capsys) -> None:
        assert main(["inspect", "--gpx", str(gpx_file), "--json"]) == 0
        out = capsys.readouterr().out
        assert "total=5, parsed=5, skipped=0" in out
        payload = json.loads(out[out.index("{") :])
        assert payload["points"] == 5
        assert payload["points_skipped"] == 0

    def test_export_readable(self, gpx_file, tmp_path, capsys) -> None:
        out_csv = tmp_path / "out.csv"
        assert main(["export-readable", "--gpx", str(gpx_file), "--out", str(out_csv)]) == 0
        assert out_csv.read_text(encoding="utf-8").count("\n") == 6
        assert "已导出" in capsys.readouterr().out

    def test_play_prints_every_frame(self, gpx_file, capsys) -> None:
        assert main(["play", "--gpx", str(gpx_file), "--speed", "1", "--no-transform"]) == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert len(lines) == 5
        assert lines[0].startswith("[    0/4]")
        assert lines[-1].startswith("[    4/4]")
        assert "progress=100.0%" in lines[-1]

    def test_play_every_n(self, gpx_file, capsys) -> None:
        assert main(["play", "--gpx", str(gpx_file), "--speed", "1", "--every", "3"]) == 0
        lines = capsys.readouterr().out.strip().splitlines()
        # initial frame, step 3, and the final frame
        assert [line[:9] for line in lines] == ["[    0/4]", "[    3/4]", "[    4/4]"]

    def test_play_realtime(self, gpx_file, capsys) -> None:
        argv = ["play", "--gpx", str(gpx_file), "--speed", "2", "--realtime", "--tick-interval", "0.005"]
        assert main(argv) == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert [line[:9] for line in lines] == ["[    0/4]", "[    2/4]", "[    4/4]"]

    def test_play_empty_track(self, tmp_path, capsys) -> None:
        path = tmp_path / "empty.gpx"
        path.write_bytes(b"<gpx/>")
        assert main(["play", "--gpx", str(path)]) == 1
        assert "没有可回放的轨迹点" in capsys.readouterr().err

    def test_missing_file(self, tmp_path, capsys) -> None:
        assert main(["inspect", "--gpx", str(tmp_path / "nope.gpx")]) == 1
        assert "无法读取文件" in capsys.readouterr().err

    def test_invalid_tz(self, gpx_file, capsys) -> None:
        assert main(["inspect", "--gpx", str(gpx_file), "--tz", "Bad/Zone"]) == 1
        assert "无效时区" in capsys.readouterr().err

    def test_convert(self, capsys) -> None:
        assert main(["convert", "--lat", "22.66", "--lon", "114.04"]) == 0
        assert "lat=22.65726206, lon=114.04509435" in capsys.readouterr().out

    def test_convert_outside_region(self, capsys) -> None:
        assert main(["convert", "--lat", "51.5", "--lon", "-0.12"]) == 0
        out = capsys.readouterr().out
        assert "lat=51.50000000, lon=-0.12000000" in out
        assert "未转换" in out
