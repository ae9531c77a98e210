"""WGS-84 -> GCJ-02 coordinate transform (no external dependencies).

GCJ-02 is the obfuscated datum used by map providers in mainland China. The
correction below is the widely used empirical approximation: it is one-way and
lossy, there is no exact inverse, and a round trip will not reproduce the input.
"""

from __future__ import annotations

import math
from typing import Final

from track_replay.models import Coordinate

# Krasovsky 1940 semi-major axis and eccentricity squared, as used by GCJ-02.
_A: Final[float] = 6378245.0
_EE: Final[float] = 0.00669342162296594323


def out_of_china(lat: float, lon: float) -> bool:
    """Check whether a point lies outside the rough bounding box where GCJ-02 applies."""

    return lon < 72.004 or lon > 137.8347 or lat < 0.8293 or lat > 55.8271


def _transform_lat(x: float, y: float) -> float:
    ret = -100.0 + 2.0 * x + 3.0 * y + 0.2 * y * y + 0.1 * x * y + 0.2 * math.sqrt(abs(x))
    ret += (20.0 * math.sin(6.0 * x * math.pi) + 20.0 * math.sin(2.0 * x * math.pi)) * 2.0 / 3.0
    ret += (20.0 * math.sin(y * math.pi) + 40.0 * math.sin(y / 3.0 * math.pi)) * 2.0 / 3.0
    ret += (160.0 * math.sin(y / 12.0 * math.pi) + 320.0 * math.sin(y * math.pi / 30.0)) * 2.0 / 3.0
    return ret


def _transform_lon(x: float, y: float) -> float:
    ret = 300.0 + x + 2.0 * y + 0.1 * x * x + 0.1 * x * y + 0.1 * math.sqrt(abs(x))
    ret += (20.0 * math.sin(6.0 * x * math.pi) + 20.0 * math.sin(2.0 * x * math.pi)) * 2.0 / 3.0
    ret += (20.0 * math.sin(x * math.pi) + 40.0 * math.sin(x / 3.0 * math.pi)) * 2.0 / 3.0
    ret += (150.0 * math.sin(x / 12.0 * math.pi) + 300.0 * math.sin(x / 30.0 * math.pi)) * 2.0 / 3.0
    return ret


def wgs84_to_gcj02(lat: float, lon: float) -> Coordinate:
    """Convert a WGS-84 coordinate to GCJ-02.

    Args:
        lat: WGS-84 latitude in degrees.
        lon: WGS-84 longitude in degrees.

    Returns:
        GCJ-02 coordinate. Points outside the supported region are returned unchanged.
    """

    if out_of_china(lat, lon):
        return Coordinate(latitude=lat, longitude=lon)

    d_lat = _transform_lat(lon - 105.0, lat - 35.0)
    d_lon = _transform_lon(lon - 105.0, lat - 35.0)
    rad_lat = lat / 180.0 * math.pi
    magic = math.sin(rad_lat)
    magic = 1 - _EE * magic * magic
    sqrt_magic = math.sqrt(magic)
    d_lat = (d_lat * 180.0) / ((_A * (1 - _EE)) / (magic * sqrt_magic) * math.pi)
    d_lon = (d_lon * 180.0) / (_A / sqrt_magic * math.cos(rad_lat) * math.pi)
    return Coordinate(latitude=lat + d_lat, longitude=lon + d_lon)
