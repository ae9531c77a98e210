"""Module entry point: python -m track_replay ..."""

from __future__ import annotations

from track_replay.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
