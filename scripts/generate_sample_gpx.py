from __future__ import annotations

import argparse
import math
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Final
from xml.sax.saxutils import escape

from zoneinfo import ZoneInfo


TZ: Final[str] = "Asia/Shanghai"


@dataclass(frozen=True, slots=True)
class Sample:
    lat: float
    lon: float
    ele: float
    time: datetime


def generate_samples(
    *,
    points: int,
    seed: int,
    start_local: datetime,
    start_lat: float,
    start_lon: float,
) -> list[Sample]:
    """Generate a smooth random-walk ride with realistic-ish speed and elevation."""

    rng = random.Random(seed)
    cur = start_local.replace(tzinfo=ZoneInfo(TZ))
    lat, lon = start_lat, start_lon
    ele = rng.uniform(5.0, 40.0)
    heading = rng.uniform(0.0, 360.0)

    out: list[Sample] = []
    for _ in range(points):
        out.append(Sample(lat=lat, lon=lon, ele=ele, time=cur))

        # Mostly 1 s sampling, occasional logger hiccup
        dt_s = 1.0 if rng.random() > 0.02 else rng.uniform(5.0, 20.0)
        speed_mps = max(0.0, rng.gauss(6.0, 1.5))  # ~20 km/h, bicycle
        heading = (heading + rng.gauss(0.0, 8.0)) % 360.0

        dist = speed_mps * dt_s
        lat += dist * math.cos(math.radians(heading)) / 111_320.0
        lon += dist * math.sin(math.radians(heading)) / (111_320.0 * math.cos(math.radians(lat)))
        ele = max(0.0, ele + rng.gauss(0.0, 0.4))
        cur = cur + timedelta(seconds=dt_s)
    return out


def build_gpx(samples: list[Sample], name: str) -> str:
    chunks = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<gpx version="1.1" creator="track_replay" xmlns="http://www.topografix.com/GPX/1/1">',
        f"  <trk><name>{escape(name)}</name><trkseg>",
    ]
    for s in samples:
        ts = s.time.astimezone(ZoneInfo("UTC")).strftime("%Y-%m-%dT%H:%M:%SZ")
        chunks.append(
            f'    <trkpt lat="{s.lat:.7f}" lon="{s.lon:.7f}"><ele>{s.ele:.1f}</ele><time>{ts}</time></trkpt>'
        )
    chunks.append("  </trkseg></trk>")
    chunks.append("</gpx>")
    return "\n".join(chunks) + "\n"


def main() -> int:
    p = argparse.ArgumentParser(description="Generate a fake GPX track for demo/testing (privacy-safe).")
    p.add_argument("--out", type=str, default="sample_data/sample.gpx", help="Output GPX path")
    p.add_argument("--points", type=int, default=1800, help="Number of track points")
    p.add_argument("--seed", type=int, default=42, help="Random seed (reproducible)")
    p.add_argument(
        "--start",
        type=str,
        default="2024-11-17 08:00:00",
        help="Start local time in Asia/Shanghai, e.g. '2024-11-17 08:00:00'",
    )
    p.add_argument("--lat", type=float, default=22.66, help="Start latitude (WGS84)")
    p.add_argument("--lon", type=float, default=114.04, help="Start longitude (WGS84)")
    args = p.parse_args()

    samples = generate_samples(
        points=max(2, args.points),
        seed=args.seed,
        start_local=datetime.fromisoformat(args.start),
        start_lat=args.lat,
        start_lon=args.lon,
    )
    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(build_gpx(samples, name=f"sample ride seed={args.seed}"), encoding="utf-8")

    print(f"Generated: {out_path} (points={len(samples)}, seed={args.seed})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
