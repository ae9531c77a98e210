"""Command-line interface for track_replay.

Run:
    python -m track_replay inspect --gpx track.gpx
    python -m track_replay play --gpx track.gpx --speed 10
"""

from __future__ import annotations

import argparse
import logging
import sys
import threading
from dataclasses import asdict

from track_replay.gpx_io import load_gpx
from track_replay.inspect import export_readable_csv, inspect_points
from track_replay.models import (
    DEFAULT_PLAYBACK_SPEED,
    DEFAULT_TZ,
    TICK_INTERVAL_S,
    PlaybackSnapshot,
    PlaybackStatus,
)
from track_replay.playback import PlaybackEngine, PlaybackSettings
from track_replay.timeutils import NO_TIME_TEXT, format_local_time, tzinfo_from_name
from track_replay.transform import out_of_china, wgs84_to_gcj02


def _cmd_inspect(args: argparse.Namespace) -> int:
    tz = tzinfo_from_name(args.tz)
    points, summary = load_gpx(args.gpx, apply_transform=not args.no_transform)
    res = inspect_points(points)

    print("### 轨迹点")
    print(
        f"total={summary.points_total}, parsed={summary.points_parsed}, skipped={summary.points_skipped}, "
        f"malformed={summary.malformed}"
    )
    print()

    if res.start_time is not None and res.end_time is not None:
        print("### 时间范围（本地时区）")
        start = res.start_time.astimezone(tz)
        end = res.end_time.astimezone(tz)
        print(f"start={start.isoformat(sep=' ')}, end={end.isoformat(sep=' ')}")
        print()

    if res.delta is not None:
        print("### 采样间隔（秒）")
        print(
            f"count={res.delta.count}, min={res.delta.min_s:.3f}, median={res.delta.median_s:.3f}, "
            f"p95={res.delta.p95_s:.3f}, max={res.delta.max_s:.3f}"
        )
        print()

    print("### 经纬度范围（粗略）")
    print(f"lat=[{res.min_lat}, {res.max_lat}], lon=[{res.min_lon}, {res.max_lon}]")
    print()

    print("### 轨迹长度（米）")
    print(f"{res.length_m:.1f}")
    print()

    print("### 重复时间戳")
    print(res.duplicate_timestamps)
    print()

    if args.json:
        import json

        payload = asdict(res) | asdict(summary)
        print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))
    return 0


def _cmd_export_readable(args: argparse.Namespace) -> int:
    points, _ = load_gpx(args.gpx, apply_transform=not args.no_transform)
    rows = export_readable_csv(points, args.out, args.tz)
    print(f"已导出：{args.out}（{rows} 行）")
    return 0


def _format_frame(snap: PlaybackSnapshot, tz_name: str) -> str:
    t = format_local_time(snap.current_time, tz_name) if snap.current_time is not None else NO_TIME_TEXT
    lat = snap.location.latitude if snap.location is not None else float("nan")
    lon = snap.location.longitude if snap.location is not None else float("nan")
    return (
        f"[{snap.cursor:>5}/{max(0, snap.length - 1)}] {t} lat={lat:.6f} lon={lon:.6f} "
        f"ele={snap.elevation_m:.1f}m speed={snap.speed_kmh:.1f}km/h heading={snap.heading_deg:.1f}° "
        f"progress={100.0 * snap.progress:5.1f}%"
    )


def _cmd_play(args: argparse.Namespace) -> int:
    tzinfo_from_name(args.tz)
    points, _ = load_gpx(args.gpx, apply_transform=not args.no_transform)
    if not points:
        print("没有可回放的轨迹点。", file=sys.stderr)
        return 1

    settings = PlaybackSettings(
        playback_speed=args.speed,
        keep_current_direction=args.keep_direction,
        tick_interval_s=args.tick_interval,
    )
    engine = PlaybackEngine(settings)
    engine.load(points)
    every = max(1, int(args.every))
    print(_format_frame(engine.snapshot(), args.tz))

    if not args.realtime:
        steps = 0
        while True:
            engine.step()
            snap = engine.snapshot()
            if snap.status is PlaybackStatus.PAUSED:
                break
            steps += 1
            if steps % every == 0 or snap.progress >= 1.0:
                print(_format_frame(snap, args.tz))
        return 0

    done = threading.Event()
    ticks = {"n": 0}

    def on_change(snap: PlaybackSnapshot) -> None:
        if snap.status is PlaybackStatus.PAUSED:
            done.set()
            return
        if snap.status is not PlaybackStatus.PLAYING:
            return
        ticks["n"] += 1
        # the first PLAYING notification comes from play() itself
        if ticks["n"] > 1 and ((ticks["n"] - 1) % every == 0 or snap.progress >= 1.0):
            print(_format_frame(snap, args.tz), flush=True)

    engine.subscribe(on_change)
    engine.play()
    try:
        done.wait()
    except KeyboardInterrupt:
        print("\n收到中断信号：停止回放。", file=sys.stderr, flush=True)
        engine.pause()
    return 0


def _cmd_convert(args: argparse.Namespace) -> int:
    c = wgs84_to_gcj02(args.lat, args.lon)
    note = "（不在中国范围内，未转换）" if out_of_china(args.lat, args.lon) else ""
    print(f"gcj02: lat={c.latitude:.8f}, lon={c.longitude:.8f}{note}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""

    p = argparse.ArgumentParser(prog="track_replay")
    p.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="日志级别",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    p_ins = sub.add_parser("inspect", help="分析 GPX 的点数/时间范围/采样间隔等")
    p_ins.add_argument("--gpx", type=str, required=True, help="输入GPX路径")
    p_ins.add_argument("--no-transform", action="store_true", help="保留原始WGS84坐标，不转换为GCJ-02")
    p_ins.add_argument("--tz", type=str, default=DEFAULT_TZ, help="时区（IANA），默认 Asia/Shanghai")
    p_ins.add_argument("--json", action="store_true", help="额外输出JSON（便于后处理）")
    p_ins.set_defaults(func=_cmd_inspect)

    p_exp = sub.add_parser("export-readable", help="导出可读时间的轨迹点CSV")
    p_exp.add_argument("--gpx", type=str, required=True, help="输入GPX路径")
    p_exp.add_argument("--out", type=str, default="readable.csv", help="输出CSV路径")
    p_exp.add_argument("--no-transform", action="store_true", help="保留原始WGS84坐标，不转换为GCJ-02")
    p_exp.add_argument("--tz", type=str, default=DEFAULT_TZ, help="时区（IANA）")
    p_exp.set_defaults(func=_cmd_export_readable)

    p_play = sub.add_parser("play", help="在终端中回放轨迹（逐帧输出位置/速度/方向）")
    p_play.add_argument("--gpx", type=str, required=True, help="输入GPX路径")
    p_play.add_argument(
        "--speed",
        type=float,
        default=DEFAULT_PLAYBACK_SPEED,
        help="回放速度：每帧前进的轨迹点数（1-100）",
    )
    p_play.add_argument("--keep-direction", action="store_true", help="保持当前方向，相机不随运动方向旋转")
    p_play.add_argument("--no-transform", action="store_true", help="保留原始WGS84坐标，不转换为GCJ-02")
    p_play.add_argument(
        "--realtime",
        action="store_true",
        help="按定时器节奏回放（每帧间隔 --tick-interval 秒），否则尽快输出全部帧",
    )
    p_play.add_argument("--tick-interval", type=float, default=TICK_INTERVAL_S, help="帧间隔（秒）")
    p_play.add_argument("--every", type=int, default=1, help="每隔N帧输出一行")
    p_play.add_argument("--tz", type=str, default=DEFAULT_TZ, help="时区（IANA）")
    p_play.set_defaults(func=_cmd_play)

    p_cv = sub.add_parser("convert", help="把单个WGS84坐标转换为GCJ-02")
    p_cv.add_argument("--lat", type=float, required=True, help="纬度")
    p_cv.add_argument("--lon", type=float, required=True, help="经度")
    p_cv.set_defaults(func=_cmd_convert)

    return p


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [track_replay] %(levelname)s %(message)s",
    )
    try:
        return int(args.func(args))
    except OSError as exc:
        print(f"无法读取文件：{exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
