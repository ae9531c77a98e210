from __future__ import annotations

import hashlib
import time
from typing import Callable

import streamlit as st

from track_replay.gpx_io import parse_gpx
from track_replay.models import (
    DEFAULT_PLAYBACK_SPEED,
    DEFAULT_TZ,
    MAX_PLAYBACK_SPEED,
    MIN_PLAYBACK_SPEED,
    PlaybackSnapshot,
    TrackPoint,
)
from track_replay.playback import PlaybackEngine, PlaybackSettings
from track_replay.timeutils import NO_TIME_TEXT, format_local_time

_MAP_MAX_POINTS = 2000


class _ScriptTicker:
    """Ticker driven by the page loop below instead of a background thread.

    Streamlit can only redraw from the script run, so the loop calls ``callback``
    once per interval while ``running`` is set.
    """

    def __init__(self, interval_s: float, callback: Callable[[], None]) -> None:
        self.interval_s = interval_s
        self.callback = callback
        self.running = False

    def start(self) -> None:
        self.running = True

    def stop(self) -> None:
        self.running = False


def _track_key(data: bytes, apply_transform: bool) -> tuple[str, bool]:
    """Identify an upload by content, not by file name."""

    return hashlib.sha1(data).hexdigest(), apply_transform


@st.cache_data(show_spinner=False)
def _parse(data: bytes, apply_transform: bool) -> list[TrackPoint]:
    return parse_gpx(data, apply_transform)


def _engine() -> PlaybackEngine:
    if "engine" not in st.session_state:
        tickers: list[_ScriptTicker] = []

        def factory(interval_s: float, callback: Callable[[], None]) -> _ScriptTicker:
            t = _ScriptTicker(interval_s, callback)
            tickers[:] = [t]
            return t

        st.session_state.tickers = tickers
        st.session_state.engine = PlaybackEngine(PlaybackSettings(), ticker_factory=factory)
        st.session_state.loaded_key = None
    return st.session_state.engine


def _active_ticker() -> _ScriptTicker | None:
    tickers: list[_ScriptTicker] = st.session_state.tickers
    return tickers[0] if tickers and tickers[0].running else None


def _track_map_data(points: list[TrackPoint], snap: PlaybackSnapshot) -> dict[str, list[object]]:
    stride = max(1, len(points) // _MAP_MAX_POINTS)
    sampled = points[::stride]
    data: dict[str, list[object]] = {
        "lat": [p.latitude for p in sampled],
        "lon": [p.longitude for p in sampled],
        "color": ["#1f77b4"] * len(sampled),
        "size": [4.0] * len(sampled),
    }
    if snap.location is not None:
        data["lat"].append(snap.location.latitude)
        data["lon"].append(snap.location.longitude)
        data["color"].append("#d62728")
        data["size"].append(30.0)
    return data


def _render(snap: PlaybackSnapshot, points: list[TrackPoint], tz_name: str, slots: dict[str, object]) -> None:
    c1, c2, c3, c4, c5 = slots["metrics"]  # type: ignore[misc]
    c1.metric("时间", format_local_time(snap.current_time, tz_name) if snap.current_time else NO_TIME_TEXT)
    c2.metric("海拔", f"{snap.elevation_m:.1f} m")
    c3.metric("速度", f"{snap.speed_kmh:.1f} km/h")
    c4.metric("方向", f"{snap.heading_deg:.1f}°")
    c5.metric("进度", f"{snap.cursor}/{max(0, snap.length - 1)}")
    slots["progress"].progress(min(1.0, max(0.0, snap.progress)))  # type: ignore[union-attr]
    slots["map"].map(_track_map_data(points, snap), latitude="lat", longitude="lon", color="color", size="size")  # type: ignore[union-attr]
    if snap.camera is not None:
        slots["camera"].caption(  # type: ignore[union-attr]
            f"相机：heading={snap.camera.heading_deg:.1f}°, distance={snap.camera.distance_m:.0f} m, "
            f"pitch={snap.camera.pitch_deg:.0f}°"
        )


def main() -> None:
    st.set_page_config(page_title="GPX 轨迹回放", layout="wide")
    st.title("GPX 轨迹回放")

    engine = _engine()

    with st.sidebar:
        st.subheader("轨迹文件")
        uploaded = st.file_uploader("选择 GPX 文件", type=["gpx", "xml"])
        apply_transform = st.checkbox(
            "WGS84 → GCJ-02 坐标转换",
            value=False,
            help="国内地图（高德/Apple 地图中国区）使用 GCJ-02；本页底图为 WGS84，一般不需要转换。",
        )
        tz_name = st.text_input("时区（IANA）", value=DEFAULT_TZ)

        st.subheader("回放设置")
        engine.playback_speed = float(
            st.slider(
                "回放速度（每帧前进点数）",
                min_value=int(MIN_PLAYBACK_SPEED),
                max_value=int(MAX_PLAYBACK_SPEED),
                value=int(DEFAULT_PLAYBACK_SPEED),
            )
        )
        keep = st.checkbox("保持当前方向（不自动旋转）", value=False)
        if keep != engine.keep_current_direction:
            engine.keep_current_direction = keep

    if uploaded is None:
        st.info("请在左侧选择一个 GPX 文件。")
        return

    data = uploaded.getvalue()
    points = _parse(data, apply_transform)
    key = _track_key(data, apply_transform)
    if st.session_state.loaded_key != key:
        engine.load(points)
        st.session_state.loaded_key = key

    if not points:
        st.error(f"文件 {uploaded.name!r} 中没有可用的轨迹点。")
        return

    b1, b2, b3, b4 = st.columns(4)
    if b1.button("播放", type="primary", use_container_width=True):
        engine.play()
    if b2.button("暂停", use_container_width=True):
        engine.pause()
    if b3.button("单步", use_container_width=True):
        engine.step()
    if b4.button("重置", use_container_width=True):
        engine.reset()

    slots: dict[str, object] = {
        "metrics": [col.empty() for col in st.columns(5)],
        "progress": st.empty(),
        "map": st.empty(),
        "camera": st.empty(),
    }
    _render(engine.snapshot(), points, tz_name, slots)

    # A new interaction reruns the script and interrupts this loop.
    ticker = _active_ticker()
    while ticker is not None and ticker.running:
        time.sleep(ticker.interval_s)
        ticker.callback()
        _render(engine.snapshot(), points, tz_name, slots)

    st.caption(f"共 {len(points)} 个轨迹点；状态：{engine.status.value}")


if __name__ == "__main__":
    main()
