from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Sequence

from subcue.core.timestamp import DIALECT_ASS, DIALECT_SRT, DIALECT_VTT, parse_timestamp
from subcue.schemas.subtitle import (
    ERROR_PARSE_SKIP,
    FORMAT_ASS,
    FORMAT_SRT,
    FORMAT_VTT,
    SubtitleCue,
)

logger = logging.getLogger(__name__)

_BLOCK_SEPARATOR = re.compile(r"\n{2,}")
_TIME_LINE_PATTERN = re.compile(r"^(.+?)\s*-->\s*(.+?)(?:\s+.*)?$")
_VTT_HEADER_PATTERN = re.compile(r"^WEBVTT.*(?:\n|$)", re.IGNORECASE)
_VTT_SKIPPED_BLOCK_PATTERN = re.compile(r"^(NOTE|STYLE|REGION)\b", re.IGNORECASE)
_ASS_SECTION_PATTERN = re.compile(r"^\s*\[(.+?)\]\s*$")
_ASS_FORMAT_PATTERN = re.compile(r"^\s*format\s*:\s*", re.IGNORECASE)
_ASS_DIALOGUE_PATTERN = re.compile(r"^\s*dialogue\s*:\s*", re.IGNORECASE)
_ASS_OVERRIDE_TAG_PATTERN = re.compile(r"\{[^}]*\}")
_ASS_DEFAULT_FIELD_COUNT = 10


@dataclass(frozen=True)
class ParsedSubtitles:
    format: str
    cues: tuple[SubtitleCue, ...]


@dataclass(frozen=True)
class AssFieldLayout:
    """Column offsets of a `[Events]` Format line, resolved once per parse."""

    field_count: int = _ASS_DEFAULT_FIELD_COUNT
    start: int = 1
    end: int = 2
    text: int | None = None

    @classmethod
    def from_format_line(cls, rhs: str) -> "AssFieldLayout":
        names = [name.strip().lower() for name in rhs.split(",")]

        def position(name: str, fallback: int | None) -> int | None:
            return names.index(name) if name in names else fallback

        return cls(
            field_count=len(names),
            start=position("start", 1),
            end=position("end", 2),
            text=position("text", None),
        )


def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def detect_format(path: str) -> str:
    lowered = path.lower()
    if lowered.endswith((".ass", ".ssa")):
        return FORMAT_ASS
    if lowered.endswith(".vtt"):
        return FORMAT_VTT
    return FORMAT_SRT


def is_chronological(cues: Sequence[SubtitleCue]) -> bool:
    return all(prev.start <= cur.start for prev, cur in zip(cues, cues[1:]))


def _split_blocks(text: str) -> list[list[str]]:
    return [
        [line for line in block.split("\n") if line]
        for block in _BLOCK_SEPARATOR.split(text)
    ]


def _parse_timed_block(
    lines: list[str], time_index: int, dialect: str
) -> SubtitleCue | None:
    time_line = lines[time_index] if time_index < len(lines) else ""
    match = _TIME_LINE_PATTERN.match(time_line)
    if not match:
        return None
    start = parse_timestamp(match.group(1), dialect)
    end = parse_timestamp(match.group(2), dialect)
    if start is None or end is None:
        return None
    body = "\n".join(lines[time_index + 1 :]).strip()
    return SubtitleCue(start=start, end=end, text=body)


def parse_srt(text: str) -> list[SubtitleCue]:
    cues: list[SubtitleCue] = []
    for lines in _split_blocks(normalize_newlines(text)):
        if len(lines) < 2:
            continue
        time_index = 1 if lines[0].strip().isdigit() else 0
        cue = _parse_timed_block(lines, time_index, DIALECT_SRT)
        if cue is None:
            logger.debug("Skipping malformed SRT block (%s): %r", ERROR_PARSE_SKIP, lines[0])
            continue
        cues.append(cue)
    return cues


def parse_vtt(text: str) -> list[SubtitleCue]:
    body = _VTT_HEADER_PATTERN.sub("", normalize_newlines(text), count=1)
    cues: list[SubtitleCue] = []
    for lines in _split_blocks(body):
        if not lines:
            continue
        if _VTT_SKIPPED_BLOCK_PATTERN.match(lines[0]):
            continue
        # cue identifier line
        time_index = 1 if "-->" not in lines[0] and len(lines) >= 2 else 0
        cue = _parse_timed_block(lines, time_index, DIALECT_VTT)
        if cue is None:
            logger.debug("Skipping malformed WebVTT block (%s): %r", ERROR_PARSE_SKIP, lines[0])
            continue
        cues.append(cue)
    return cues


def split_fields(value: str, count: int) -> list[str]:
    """Split on commas into at most `count` fields; the last keeps the rest."""
    if count <= 1:
        return [value]
    return value.split(",", count - 1)


def _field_at(fields: list[str], index: int | None) -> str | None:
    if index is None:
        return fields[-1]
    return fields[index] if 0 <= index < len(fields) else None


def clean_ass_text(text: str) -> str:
    cleaned = _ASS_OVERRIDE_TAG_PATTERN.sub("", text)
    cleaned = cleaned.replace("\\N", "\n").replace("\\n", "\n").replace("\\h", " ")
    return cleaned.strip()


def parse_ass(text: str) -> list[SubtitleCue]:
    in_events = False
    layout = AssFieldLayout()
    cues: list[SubtitleCue] = []
    for raw_line in normalize_newlines(text).split("\n"):
        line = raw_line.rstrip()
        if not line:
            continue
        section = _ASS_SECTION_PATTERN.match(line)
        if section:
            in_events = section.group(1).lower() == "events"
            continue
        if not in_events:
            continue
        format_match = _ASS_FORMAT_PATTERN.match(line)
        if format_match:
            layout = AssFieldLayout.from_format_line(line[format_match.end() :])
            continue
        dialogue_match = _ASS_DIALOGUE_PATTERN.match(line)
        if not dialogue_match:
            continue
        fields = split_fields(line[dialogue_match.end() :], layout.field_count)
        start = parse_timestamp(_field_at(fields, layout.start), DIALECT_ASS)
        end = parse_timestamp(_field_at(fields, layout.end), DIALECT_ASS)
        if start is None or end is None:
            logger.debug("Skipping malformed ASS dialogue line (%s): %r", ERROR_PARSE_SKIP, line)
            continue
        text_field = _field_at(fields, layout.text) or ""
        cues.append(SubtitleCue(start=start, end=end, text=clean_ass_text(text_field)))
    return cues


_PARSERS = {
    FORMAT_SRT: parse_srt,
    FORMAT_VTT: parse_vtt,
    FORMAT_ASS: parse_ass,
}


def parse_subtitles(path: str, content: str) -> ParsedSubtitles:
    """Parse decoded subtitle text, picking the dialect from the file extension."""
    text = content[1:] if content.startswith("\ufeff") else content
    subtitle_format = detect_format(path)
    cues = _PARSERS[subtitle_format](text)
    if not is_chronological(cues):
        logger.warning(
            "Cues in %s are not in chronological order; active-cue lookups may be wrong.",
            path,
        )
    return ParsedSubtitles(format=subtitle_format, cues=tuple(cues))
