"""Data models for track points and playback state."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Final


@dataclass(frozen=True, slots=True)
class Coordinate:
    """A geodetic position in decimal degrees."""

    latitude: float
    longitude: float


@dataclass(frozen=True, slots=True)
class TrackPoint:
    """A single GPX track sample.

    Attributes:
        coordinate: Position (WGS-84, or GCJ-02 when the transform was applied).
        elevation_m: Elevation in meters. 0.0 when the file has no usable <ele>.
        timestamp: Timezone-aware sample time. Parse-time wall clock when the file
            has no usable <time>.
    """

    coordinate: Coordinate
    elevation_m: float
    timestamp: datetime

    @property
    def latitude(self) -> float:
        return self.coordinate.latitude

    @property
    def longitude(self) -> float:
        return self.coordinate.longitude


class PlaybackStatus(Enum):
    """Playback state machine states.

    IDLE and PAUSED both freeze the cursor; IDLE means never started or just reset.
    """

    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass(frozen=True, slots=True)
class CameraPose:
    """Tilted follow-camera parameters handed to a map renderer."""

    center: Coordinate
    heading_deg: float
    distance_m: float
    pitch_deg: float


@dataclass(frozen=True, slots=True)
class PlaybackSnapshot:
    """Read-only view of the playback engine at one moment.

    Note:
        ``location``, ``current_time`` and ``camera`` are None only for an empty track.
    """

    status: PlaybackStatus
    cursor: int
    length: int
    location: Coordinate | None
    current_time: datetime | None
    elevation_m: float
    speed_kmh: float
    heading_deg: float
    progress: float
    camera: CameraPose | None

    @property
    def is_playing(self) -> bool:
        return self.status is PlaybackStatus.PLAYING


DEFAULT_TZ: Final[str] = "Asia/Shanghai"

TICK_INTERVAL_S: Final[float] = 0.1
CAMERA_DISTANCE_M: Final[float] = 800.0
CAMERA_PITCH_DEG: Final[float] = 60.0

DEFAULT_PLAYBACK_SPEED: Final[float] = 10.0
MIN_PLAYBACK_SPEED: Final[float] = 1.0
MAX_PLAYBACK_SPEED: Final[float] = 100.0
