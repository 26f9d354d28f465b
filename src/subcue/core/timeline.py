from __future__ import annotations

import math
from bisect import bisect_left, bisect_right
from dataclasses import dataclass
from typing import Sequence

from subcue.core.timestamp import format_timestamp
from subcue.schemas.subtitle import SubtitleCue

DEFAULT_TEXT_SEPARATOR = " / "


@dataclass(frozen=True)
class SearchState:
    query: str | None
    matches: tuple[int, ...] | None
    focus: int | None

    @property
    def active(self) -> bool:
        return self.matches is not None


def _is_finite(value: float | None) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value)


def flatten_text(text: str, separator: str = DEFAULT_TEXT_SEPARATOR) -> str:
    """Collapse multi-line cue text into a single display/search line."""
    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    return separator.join(line.strip() for line in lines if line.strip())


def effective_bounds(cue: SubtitleCue, delay: float) -> tuple[float, float]:
    return cue.start + delay, cue.end + delay


def format_cue_payload(
    start: float | None,
    end: float | None,
    text: str,
    separator: str = DEFAULT_TEXT_SEPARATOR,
) -> str:
    start_value = start if _is_finite(start) else None
    end_value = end if _is_finite(end) else None
    time_a = format_timestamp(start_value or 0.0)
    time_b = format_timestamp(end_value if end_value is not None else start_value or 0.0)
    return f"{time_a} ~ {time_b} {flatten_text(text, separator)}".strip()


def find_active_cue_index(
    cues: Sequence[SubtitleCue],
    playback_time: float | None,
    delay: float = 0.0,
) -> int | None:
    """Index of the cue shown at `playback_time` once `delay` is applied.

    `cues` must be non-decreasing by start; the lookup is a binary search for
    the rightmost cue starting at or before the shifted time.
    """
    if not cues or not _is_finite(playback_time):
        return None
    shifted = playback_time - (delay if _is_finite(delay) else 0.0)
    best = bisect_right(cues, shifted, key=lambda cue: cue.start) - 1
    if best >= 0 and shifted < cues[best].end:
        return best
    return None


def search_matches(
    cues: Sequence[SubtitleCue],
    query: str | None,
    separator: str = DEFAULT_TEXT_SEPARATOR,
) -> tuple[int, ...] | None:
    """Ascending indices of cues whose flattened text contains `query`.

    Returns None when there is no query at all, which is not the same as a
    query with no matches.
    """
    needle = (query or "").strip().lower()
    if not needle:
        return None
    return tuple(
        index
        for index, cue in enumerate(cues)
        if needle in flatten_text(cue.text, separator).lower()
    )


def find_nearest_match(matches: Sequence[int], anchor: float | None) -> int | None:
    if not matches:
        return None
    target = anchor if _is_finite(anchor) else 0
    position = bisect_left(matches, target)
    after = matches[position] if position < len(matches) else None
    before = matches[position - 1] if position > 0 else None
    if before is None:
        return after
    if after is None:
        return before
    return before if target - before <= after - target else after


def cycle_match(
    matches: Sequence[int],
    current_focus: int | None,
    direction: int,
    *,
    selected: int | None = None,
    active: int | None = None,
) -> int | None:
    """Move the search focus to the next or previous match, wrapping around.

    Without a current focus the nearest match to the selection (then the
    active cue, then index 0) becomes the focus.
    """
    if not matches:
        return None
    if current_focus is None:
        anchor = next((value for value in (selected, active) if value is not None), 0)
        return find_nearest_match(matches, anchor)
    step = -1 if direction < 0 else 1
    position = bisect_left(matches, current_focus)
    if position < len(matches) and matches[position] == current_focus:
        position += step
    elif step < 0:
        position -= 1
    return matches[position % len(matches)]


def build_search_state(
    cues: Sequence[SubtitleCue],
    query: str | None,
    *,
    anchor: int | None = None,
    separator: str = DEFAULT_TEXT_SEPARATOR,
) -> SearchState:
    matches = search_matches(cues, query, separator)
    if matches is None:
        return SearchState(query=None, matches=None, focus=None)
    return SearchState(
        query=(query or "").strip(),
        matches=matches,
        focus=find_nearest_match(matches, anchor),
    )
