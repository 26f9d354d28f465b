from __future__ import annotations

from dataclasses import dataclass

FORMAT_SRT = "srt"
FORMAT_VTT = "vtt"
FORMAT_ASS = "ass"
FORMAT_NONE = "none"
SUPPORTED_FORMATS: tuple[str, ...] = (FORMAT_SRT, FORMAT_VTT, FORMAT_ASS)

EMBEDDED_SOURCE = "embedded"

ERROR_PARSE_SKIP = "parse_skip"
ERROR_SOURCE_UNSUPPORTED = "source_unsupported"
ERROR_SOURCE_MISSING = "source_missing"
ERROR_READ_FAILURE = "read_failure"
ERROR_INVALID_QUERY = "invalid_query"


@dataclass(frozen=True)
class SubtitleCue:
    start: float
    end: float
    text: str


@dataclass(frozen=True)
class CueListResult:
    track_id: int | None
    source: str
    format: str
    cues: tuple[SubtitleCue, ...] = ()
    error: str | None = None
    error_kind: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
