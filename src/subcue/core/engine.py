from __future__ import annotations

import logging
import math
from typing import Callable, Protocol, Sequence

from subcue.core.cue_store import CueStore
from subcue.core.delay import BoundaryResolver, DelayResolver
from subcue.core.timeline import find_active_cue_index, format_cue_payload
from subcue.infra.config import AppConfig, build_app_config, default_app_config
from subcue.infra.files import build_file_reader
from subcue.schemas.subtitle import ERROR_INVALID_QUERY, FORMAT_NONE, CueListResult
from subcue.schemas.track import (
    BOUND_ROLES,
    ROLE_NONE,
    ROLE_PRIMARY,
    ROLE_SECONDARY,
    CurrentLine,
    DelayUpdate,
    SubtitleTrack,
    TrackView,
    normalize_role,
    normalize_track_id,
)

logger = logging.getLogger(__name__)


class PlaybackHost(Protocol):
    def list_tracks(self) -> Sequence[SubtitleTrack]:
        ...

    def current_playback_time(self) -> float | None:
        ...

    def current_line(self, role: str) -> CurrentLine:
        ...

    def current_delay(self, role: str) -> float | None:
        ...


def _invalid_cues(track_id: int | None, message: str) -> CueListResult:
    return CueListResult(
        track_id=track_id,
        source="",
        format=FORMAT_NONE,
        error=message,
        error_kind=ERROR_INVALID_QUERY,
    )


class SubtitleEngine:
    """Host-facing entry point tying the cue store, role bindings and delays together.

    Every method returns a structured result; invalid input never raises into
    the host. When the host reports its own delay for a role, that value
    replaces the engine's before every shift or boundary decision.
    """

    def __init__(
        self,
        host: PlaybackHost,
        *,
        store: CueStore | None = None,
        delays: DelayResolver | None = None,
        boundary_resolver: BoundaryResolver | None = None,
        config: AppConfig | None = None,
    ) -> None:
        if config is None:
            try:
                config = build_app_config()
            except ValueError as exc:
                logger.warning("Ignoring invalid SUBCUE_* settings: %s", exc)
                config = default_app_config()
        self.config = config
        self.host = host
        if store is None:
            store = CueStore(build_file_reader(fallback=self.config.read_fallback))
        self.store = store
        self.delays = delays or DelayResolver(
            noise_floor=self.config.delay_noise_floor,
            boundary_tolerance=self.config.boundary_tolerance,
        )
        self.boundary_resolver = boundary_resolver or self.delays
        self._bindings: dict[str, int | None] = {role: None for role in BOUND_ROLES}

    # Tracks and role bindings.

    def find_track(self, track_id: int) -> SubtitleTrack | None:
        return next(
            (track for track in self.host.list_tracks() if track.track_id == track_id),
            None,
        )

    def bound_track(self, role: str) -> int | None:
        try:
            return self._bindings.get(normalize_role(role))
        except ValueError:
            return None

    def role_for_track(self, track_id: int) -> str:
        if self._bindings[ROLE_PRIMARY] == track_id:
            return ROLE_PRIMARY
        if self._bindings[ROLE_SECONDARY] == track_id:
            return ROLE_SECONDARY
        return ROLE_NONE

    def delay_for_track(self, track_id: int) -> float:
        role = self.role_for_track(track_id)
        return 0.0 if role == ROLE_NONE else self.sync_host_delay(role)

    def tracks(self) -> list[TrackView]:
        available = list(self.host.list_tracks())
        primary_id = self._bindings[ROLE_PRIMARY]
        secondary_id = self._bindings[ROLE_SECONDARY]
        ordered: list[TrackView] = []
        for role, bound_id in ((ROLE_PRIMARY, primary_id), (ROLE_SECONDARY, secondary_id)):
            track = next((t for t in available if t.track_id == bound_id), None)
            if track is not None:
                ordered.append(TrackView(track=track, role=role))
        ordered.extend(
            TrackView(track=track, role=ROLE_NONE)
            for track in available
            if track.track_id not in (primary_id, secondary_id)
        )
        return ordered

    def set_track_role(self, track_id: object, role: str) -> str | None:
        """Bind a track to a role; returns an error message on invalid input."""
        normalized_id = normalize_track_id(track_id)
        if normalized_id is None:
            return "Invalid track id"
        try:
            normalized_role = normalize_role(role)
        except ValueError as exc:
            return str(exc)
        if normalized_role == ROLE_NONE:
            return "A track can only be bound to the primary or secondary role."
        for bound_role, bound_id in self._bindings.items():
            if bound_id == normalized_id and bound_role != normalized_role:
                self._bindings[bound_role] = None
        previous = self._bindings[normalized_role]
        self._bindings[normalized_role] = normalized_id
        if previous is not None:
            self.store.evict(previous)
        self.store.evict(normalized_id)
        logger.debug("Track %s bound to %s", normalized_id, normalized_role)
        return None

    def disable_role(self, role: str) -> str | None:
        try:
            normalized_role = normalize_role(role)
        except ValueError as exc:
            return str(exc)
        if normalized_role == ROLE_NONE:
            return None
        previous = self._bindings[normalized_role]
        self._bindings[normalized_role] = None
        if previous is not None:
            self.store.evict(previous)
        return None

    # Cue lists.

    async def get_cues(self, track_id: object) -> CueListResult:
        normalized_id = normalize_track_id(track_id)
        if normalized_id is None:
            return _invalid_cues(None, "Invalid track id")
        track = self.find_track(normalized_id)
        if track is None:
            return _invalid_cues(normalized_id, "Track not found")
        return await self.store.resolve_cues(normalized_id, track.external_filename)

    def active_cue_index(self, track_id: int) -> int | None:
        result = self.store.cached(track_id)
        if result is None or result.error:
            return None
        return find_active_cue_index(
            result.cues,
            self.host.current_playback_time(),
            self.delay_for_track(track_id),
        )

    # Delays.

    def sync_host_delay(self, role: str) -> float:
        """Adopt the delay the host reports for `role` and return the current value."""
        role = normalize_role(role)
        current = self.delays.get(role)
        reported = self.host.current_delay(role)
        if reported is None or not math.isfinite(reported) or reported == current:
            return current
        logger.debug("Host delay for %s is %.3f", role, reported)
        return self.delays.set(role, reported)

    def _delay_update(self, role: str, action: Callable[[], float]) -> DelayUpdate:
        try:
            return DelayUpdate(role=normalize_role(role), delay=action())
        except ValueError as exc:
            return DelayUpdate(role=str(role), delay=None, error=str(exc))

    def get_delay(self, role: str) -> DelayUpdate:
        return self._delay_update(role, lambda: self.sync_host_delay(role))

    def set_delay(self, role: str, value: float) -> DelayUpdate:
        return self._delay_update(role, lambda: self.delays.set(role, value))

    def add_delay(self, role: str, delta: float) -> DelayUpdate:
        def shift() -> float:
            self.sync_host_delay(role)
            return self.delays.add(role, delta)

        return self._delay_update(role, shift)

    def reset_delay(self, role: str) -> DelayUpdate:
        return self._delay_update(role, lambda: self.delays.reset(role))

    def sync_delay_to_cue_start(self, role: str, cue_start: float) -> DelayUpdate:
        playback_time = self.host.current_playback_time()
        if playback_time is None:
            return DelayUpdate(
                role=str(role),
                delay=None,
                error="No playback time (no file loaded?)",
            )
        return self._delay_update(
            role, lambda: self.delays.sync_to_cue_start(role, cue_start, playback_time)
        )

    # Currently displayed line.

    def current_line(self, role: str) -> CurrentLine:
        normalized_role = ROLE_SECONDARY if role == ROLE_SECONDARY else ROLE_PRIMARY
        line = self.host.current_line(normalized_role)
        start, end = self.boundary_resolver.resolve_displayed_boundaries(
            line.start,
            line.end,
            self.host.current_playback_time(),
            self.sync_host_delay(normalized_role),
        )
        return CurrentLine(text=line.text, start=start, end=end)

    def current_line_payload(self, role: str) -> tuple[str | None, str | None]:
        """Copy payload of the displayed line as `(payload, error)`."""
        line = self.current_line(role)
        if not line.text:
            return None, "No subtitle text available"
        return (
            format_cue_payload(line.start, line.end, line.text, self.config.text_separator),
            None,
        )
