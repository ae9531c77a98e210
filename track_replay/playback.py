"""Track playback: cursor stepping, derived kinematics and follow-camera pose."""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Protocol, Sequence

from track_replay.geo import haversine_m, initial_bearing_deg
from track_replay.models import (
    CAMERA_DISTANCE_M,
    CAMERA_PITCH_DEG,
    DEFAULT_PLAYBACK_SPEED,
    MAX_PLAYBACK_SPEED,
    MIN_PLAYBACK_SPEED,
    TICK_INTERVAL_S,
    CameraPose,
    Coordinate,
    PlaybackSnapshot,
    PlaybackStatus,
    TrackPoint,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PlaybackSettings:
    """Parameters controlling playback."""

    # Index step per tick (floored). This is NOT a time scale.
    playback_speed: float = DEFAULT_PLAYBACK_SPEED
    # Camera heading pinned to 0 (north up) instead of following the track.
    keep_current_direction: bool = False
    tick_interval_s: float = TICK_INTERVAL_S
    camera_distance_m: float = CAMERA_DISTANCE_M
    camera_pitch_deg: float = CAMERA_PITCH_DEG


class Ticker(Protocol):
    def start(self) -> None: ...

    def stop(self) -> None: ...


TickerFactory = Callable[[float, Callable[[], None]], Ticker]
Subscriber = Callable[[PlaybackSnapshot], None]


class ThreadTicker:
    """Call ``callback`` every ``interval_s`` seconds on a daemon thread.

    Calls never overlap: the next wait only starts once the previous call returned,
    so a slow callback makes ticks coalesce instead of piling up.
    """

    def __init__(self, interval_s: float, callback: Callable[[], None]) -> None:
        self._interval_s = interval_s
        self._callback = callback
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="track-replay-ticker", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stopped.set()
        t = self._thread
        if t is not None and t is not threading.current_thread():
            t.join()

    def _run(self) -> None:
        while not self._stopped.wait(self._interval_s):
            self._callback()


def sanitize_speed(value: float) -> float | None:
    """Clamp a playback speed into range; None for NaN or non-positive values."""

    if math.isnan(value) or value <= 0:
        return None
    return min(max(float(value), MIN_PLAYBACK_SPEED), MAX_PLAYBACK_SPEED)


class PlaybackEngine:
    """Deterministic playback over a loaded track.

    State machine: IDLE -> PLAYING <-> PAUSED, ``reset()`` and ``load()`` go back to IDLE.
    Each tick advances the cursor by ``floor(playback_speed)`` points and stops (without
    looping) on the tick that finds the cursor already at the last point.

    Every mutator takes the engine lock, so external calls and ticks never interleave.
    Subscribers are notified with a fresh snapshot after each change, outside the lock.
    """

    def __init__(
        self,
        settings: PlaybackSettings | None = None,
        *,
        ticker_factory: TickerFactory = ThreadTicker,
    ) -> None:
        s = settings or PlaybackSettings()
        self._lock = threading.RLock()
        self._ticker_factory = ticker_factory
        self._ticker: Ticker | None = None
        self._subscribers: list[Subscriber] = []

        self._tick_interval_s = s.tick_interval_s if s.tick_interval_s > 0 else TICK_INTERVAL_S
        self._camera_distance_m = s.camera_distance_m
        self._camera_pitch_deg = s.camera_pitch_deg
        self._keep_current_direction = s.keep_current_direction
        self._playback_speed = sanitize_speed(s.playback_speed) or DEFAULT_PLAYBACK_SPEED

        self._points: tuple[TrackPoint, ...] = ()
        self._status = PlaybackStatus.IDLE
        self._cursor = 0
        self._elevation_m = 0.0
        self._speed_kmh = 0.0
        self._heading_deg = 0.0
        self._progress = 0.0

    # ---- control surface ----

    def load(self, points: Sequence[TrackPoint]) -> None:
        """Replace the track; cursor, derived values and status start over."""

        with self._lock:
            ticker = self._detach_ticker()
            self._points = tuple(points)
            self._status = PlaybackStatus.IDLE
            self._cursor = 0
            self._elevation_m = 0.0
            self._speed_kmh = 0.0
            self._heading_deg = 0.0
            self._progress = 0.0
            snap = self._snapshot_locked()
        logger.debug("已加载轨迹：%s 个点", snap.length)
        self._finish(ticker, snap)

    def play(self) -> None:
        """Start periodic stepping. No-op for an empty track or while already playing."""

        with self._lock:
            if not self._points or self._status is PlaybackStatus.PLAYING:
                return
            self._status = PlaybackStatus.PLAYING
            self._ticker = self._ticker_factory(self._tick_interval_s, self._on_tick)
            self._ticker.start()
            snap = self._snapshot_locked()
        logger.debug("开始回放：cursor=%s", snap.cursor)
        self._notify(snap)

    def pause(self) -> None:
        """Stop stepping; cursor and derived values stay as last computed."""

        with self._lock:
            if not self._points:
                return
            ticker = self._detach_ticker()
            self._status = PlaybackStatus.PAUSED
            snap = self._snapshot_locked()
        self._finish(ticker, snap)

    def reset(self) -> None:
        """Stop stepping and rewind to the first point."""

        with self._lock:
            ticker = self._detach_ticker()
            self._status = PlaybackStatus.IDLE
            self._cursor = 0
            self._progress = 0.0
            snap = self._snapshot_locked()
        self._finish(ticker, snap)

    def step(self) -> None:
        """Advance one tick (also usable for manual, timer-less stepping)."""

        with self._lock:
            if not self._points:
                return
            ticker = self._step_locked()
            snap = self._snapshot_locked()
        self._finish(ticker, snap)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a state-changed callback; returns a function that unregisters it."""

        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    # ---- adjustable settings ----

    @property
    def playback_speed(self) -> float:
        with self._lock:
            return self._playback_speed

    @playback_speed.setter
    def playback_speed(self, value: float) -> None:
        speed = sanitize_speed(value)
        if speed is None:
            logger.warning("忽略无效的回放速度：%r", value)
            return
        with self._lock:
            self._playback_speed = speed

    @property
    def keep_current_direction(self) -> bool:
        with self._lock:
            return self._keep_current_direction

    @keep_current_direction.setter
    def keep_current_direction(self, value: bool) -> None:
        with self._lock:
            self._keep_current_direction = bool(value)
            snap = self._snapshot_locked()
        self._notify(snap)

    # ---- read-only view ----

    @property
    def points(self) -> tuple[TrackPoint, ...]:
        with self._lock:
            return self._points

    @property
    def status(self) -> PlaybackStatus:
        with self._lock:
            return self._status

    @property
    def is_playing(self) -> bool:
        return self.status is PlaybackStatus.PLAYING

    @property
    def cursor(self) -> int:
        with self._lock:
            return self._cursor

    @property
    def elevation_m(self) -> float:
        with self._lock:
            return self._elevation_m

    @property
    def speed_kmh(self) -> float:
        with self._lock:
            return self._speed_kmh

    @property
    def heading_deg(self) -> float:
        with self._lock:
            return self._heading_deg

    @property
    def progress(self) -> float:
        with self._lock:
            return self._progress

    @property
    def location(self) -> Coordinate | None:
        with self._lock:
            return self._points[self._cursor].coordinate if self._points else None

    @property
    def current_time(self) -> datetime | None:
        with self._lock:
            return self._points[self._cursor].timestamp if self._points else None

    @property
    def camera_pose(self) -> CameraPose | None:
        with self._lock:
            return self._camera_locked()

    def snapshot(self) -> PlaybackSnapshot:
        with self._lock:
            return self._snapshot_locked()

    # ---- internals ----

    def _on_tick(self) -> None:
        with self._lock:
            # A tick that lost the race against pause()/reset()/load() is dropped.
            if self._status is not PlaybackStatus.PLAYING:
                return
            ticker = self._step_locked()
            snap = self._snapshot_locked()
        self._finish(ticker, snap)

    def _step_locked(self) -> Ticker | None:
        last = len(self._points) - 1
        if self._cursor >= last:
            logger.debug("回放到达终点：cursor=%s", self._cursor)
            self._status = PlaybackStatus.PAUSED
            return self._detach_ticker()

        self._cursor = min(self._cursor + int(math.floor(self._playback_speed)), last)
        point = self._points[self._cursor]
        self._elevation_m = point.elevation_m

        if self._cursor > 0:
            prev = self._points[self._cursor - 1]
            distance_m = haversine_m(prev.latitude, prev.longitude, point.latitude, point.longitude)
            elapsed_s = (point.timestamp - prev.timestamp).total_seconds()
            # Equal or backwards timestamps keep the previous speed.
            if elapsed_s > 0:
                self._speed_kmh = distance_m / elapsed_s * 3.6
            self._heading_deg = initial_bearing_deg(
                prev.latitude, prev.longitude, point.latitude, point.longitude
            )

        self._progress = self._cursor / last
        return None

    def _detach_ticker(self) -> Ticker | None:
        ticker, self._ticker = self._ticker, None
        return ticker

    def _camera_locked(self) -> CameraPose | None:
        if not self._points:
            return None
        return CameraPose(
            center=self._points[self._cursor].coordinate,
            heading_deg=0.0 if self._keep_current_direction else self._heading_deg,
            distance_m=self._camera_distance_m,
            pitch_deg=self._camera_pitch_deg,
        )

    def _snapshot_locked(self) -> PlaybackSnapshot:
        point = self._points[self._cursor] if self._points else None
        return PlaybackSnapshot(
            status=self._status,
            cursor=self._cursor,
            length=len(self._points),
            location=point.coordinate if point is not None else None,
            current_time=point.timestamp if point is not None else None,
            elevation_m=self._elevation_m,
            speed_kmh=self._speed_kmh,
            heading_deg=self._heading_deg,
            progress=self._progress,
            camera=self._camera_locked(),
        )

    def _finish(self, ticker: Ticker | None, snap: PlaybackSnapshot) -> None:
        # Stopped outside the lock: the ticker thread may be waiting on it.
        if ticker is not None:
            ticker.stop()
        self._notify(snap)

    def _notify(self, snap: PlaybackSnapshot) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for cb in subscribers:
            try:
                cb(snap)
            except Exception:
                logger.exception("回放状态回调失败：%r", cb)
