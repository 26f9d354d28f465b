from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from subcue.schemas.track import CurrentLine, SubtitleTrack


@dataclass
class FileHost:
    """Playback host backed by subtitle files on disk, for the command line.

    Every file becomes an external track numbered from 1. There is no live
    renderer, so the displayed line is always empty, and a delay is only
    reported for roles listed in `delays`.
    """

    paths: list[Path]
    playback_time: float | None = None
    delays: dict[str, float] = field(default_factory=dict)
    _tracks: list[SubtitleTrack] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._tracks = [
            SubtitleTrack(
                track_id=index,
                external_filename=str(path),
                codec=path.suffix.lstrip(".").lower() or None,
                external=True,
            )
            for index, path in enumerate(self.paths, start=1)
        ]

    def list_tracks(self) -> list[SubtitleTrack]:
        return list(self._tracks)

    def current_playback_time(self) -> float | None:
        return self.playback_time

    def current_line(self, role: str) -> CurrentLine:
        del role
        return CurrentLine(text="", start=None, end=None)

    def current_delay(self, role: str) -> float | None:
        return self.delays.get(role)
