from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass

from subcue.core.subtitle import parse_subtitles
from subcue.infra.files import FileReader, looks_like_file_path, read_subtitle_file
from subcue.schemas.subtitle import (
    EMBEDDED_SOURCE,
    ERROR_READ_FAILURE,
    ERROR_SOURCE_MISSING,
    ERROR_SOURCE_UNSUPPORTED,
    FORMAT_NONE,
    CueListResult,
)

logger = logging.getLogger(__name__)

EMBEDDED_TRACK_MESSAGE = (
    "This subtitle track is embedded or bitmap-based, so the full cue list "
    "may not be accessible. Current-line copy still works."
)


@dataclass(frozen=True)
class CacheEntry:
    source: str | None
    result: CueListResult


class CueStore:
    """Per-track cache of the latest cue list, keyed by source identity.

    Failed resolutions are cached too, so a static bad source is not re-read
    until its identity changes or the entry is evicted. Each read carries a
    per-track token; a completion whose token is no longer current is handed
    back to its caller but never committed.
    """

    def __init__(self, reader: FileReader | None = None) -> None:
        self._reader = reader or read_subtitle_file
        self._entries: dict[int, CacheEntry] = {}
        self._tokens: dict[int, int] = {}
        self._counter = itertools.count(1)

    def __contains__(self, track_id: object) -> bool:
        return track_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def cached(self, track_id: int) -> CueListResult | None:
        entry = self._entries.get(track_id)
        return entry.result if entry else None

    def evict(self, track_id: int) -> None:
        self._tokens.pop(track_id, None)
        if self._entries.pop(track_id, None) is not None:
            logger.debug("Evicted cached cues for track %s", track_id)

    def clear(self) -> None:
        self._entries.clear()
        self._tokens.clear()

    def _next_token(self, track_id: int) -> int:
        token = next(self._counter)
        self._tokens[track_id] = token
        return token

    def _commit(self, track_id: int, token: int, source: str | None, result: CueListResult) -> CueListResult:
        if self._tokens.get(track_id) != token:
            logger.debug("Discarding stale cue result for track %s (%s)", track_id, source)
            return result
        self._entries[track_id] = CacheEntry(source=source, result=result)
        return result

    async def resolve_cues(self, track_id: int, source: str | None) -> CueListResult:
        entry = self._entries.get(track_id)
        if entry is not None and entry.source == source:
            logger.debug("Cue cache hit for track %s", track_id)
            self._next_token(track_id)
            return entry.result

        token = self._next_token(track_id)
        if source is None:
            result = CueListResult(
                track_id=track_id,
                source=EMBEDDED_SOURCE,
                format=FORMAT_NONE,
                error=EMBEDDED_TRACK_MESSAGE,
                error_kind=ERROR_SOURCE_MISSING,
            )
            return self._commit(track_id, token, source, result)

        if not looks_like_file_path(source):
            result = CueListResult(
                track_id=track_id,
                source=source,
                format=FORMAT_NONE,
                error=f"Unsupported subtitle source: {source}",
                error_kind=ERROR_SOURCE_UNSUPPORTED,
            )
            return self._commit(track_id, token, source, result)

        try:
            content = await self._reader(source)
            parsed = parse_subtitles(source, content)
        except Exception as exc:
            logger.warning("Failed to load subtitles for track %s from %s: %s", track_id, source, exc)
            result = CueListResult(
                track_id=track_id,
                source=source,
                format=FORMAT_NONE,
                error=str(exc) or exc.__class__.__name__,
                error_kind=ERROR_READ_FAILURE,
            )
            return self._commit(track_id, token, source, result)

        logger.info(
            "Loaded %d %s cues for track %s from %s",
            len(parsed.cues),
            parsed.format,
            track_id,
            source,
        )
        result = CueListResult(
            track_id=track_id,
            source=source,
            format=parsed.format,
            cues=parsed.cues,
        )
        return self._commit(track_id, token, source, result)
