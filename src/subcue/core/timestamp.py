from __future__ import annotations

import math
import re

DIALECT_SRT = "srt"
DIALECT_VTT = "vtt"
DIALECT_ASS = "ass"

_TIMESTAMP_PATTERNS: dict[str, re.Pattern[str]] = {
    DIALECT_SRT: re.compile(r"^(?P<h>\d+):(?P<m>\d{2}):(?P<s>\d{2})[,.](?P<f>\d+)$"),
    DIALECT_VTT: re.compile(r"^(?:(?P<h>\d+):)?(?P<m>\d{2}):(?P<s>\d{2})\.(?P<f>\d+)$"),
    DIALECT_ASS: re.compile(r"^(?P<h>\d+):(?P<m>\d{2}):(?P<s>\d{2})\.(?P<f>\d+)$"),
}


def _to_millis(seconds: float | None) -> int:
    if seconds is None or not math.isfinite(seconds):
        return 0
    return int(round(max(0.0, seconds) * 1000))


def parse_timestamp(value: str | None, dialect: str) -> float | None:
    """Parse a dialect timestamp into seconds, or None when it does not match.

    Fractions are read at millisecond precision: shorter fractions are
    right-padded, longer ones truncated.
    """
    pattern = _TIMESTAMP_PATTERNS.get(dialect)
    if pattern is None:
        raise ValueError(
            f"Unsupported timestamp dialect '{dialect}'. Allowed: {sorted(_TIMESTAMP_PATTERNS)}"
        )
    if value is None:
        return None
    match = pattern.match(value.strip())
    if not match:
        return None
    hours = int(match.group("h") or 0)
    minutes = int(match.group("m"))
    secs = int(match.group("s"))
    millis = int(match.group("f").ljust(3, "0")[:3])
    total_ms = hours * 3_600_000 + minutes * 60_000 + secs * 1_000 + millis
    return total_ms / 1_000.0


def format_timestamp(seconds: float | None) -> str:
    """Format seconds as HH:MM:SS.mmm, clamping negatives to zero."""
    millis = _to_millis(seconds)
    hours = millis // 3_600_000
    minutes = (millis % 3_600_000) // 60_000
    secs = (millis % 60_000) // 1_000
    ms = millis % 1_000
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{ms:03d}"


def format_timestamp_compact(seconds: float | None) -> str:
    millis = _to_millis(seconds)
    hours = millis // 3_600_000
    minutes = (millis % 3_600_000) // 60_000
    secs = (millis % 60_000) // 1_000
    if not hours:
        return f"{minutes:02d}:{secs:02d}"
    return f"{hours}:{minutes:02d}:{secs:02d}"


def format_time_range(start: float | None, end: float | None, *, compact: bool = False) -> str:
    formatter = format_timestamp_compact if compact else format_timestamp
    return f"{formatter(start)} ~ {formatter(end)}"
