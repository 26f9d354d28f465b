from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import pytest

from subcue.core.cue_store import CueStore
from subcue.core.delay import PassthroughBoundaryResolver
from subcue.core.engine import SubtitleEngine
from subcue.infra.config import build_app_config
from subcue.schemas.subtitle import ERROR_INVALID_QUERY, ERROR_SOURCE_MISSING
from subcue.schemas.track import CurrentLine, SubtitleTrack

SRT_TEXT = (
    "1\n00:00:01,000 --> 00:00:02,000\nfirst\n\n"
    "2\n00:00:04,000 --> 00:00:06,000\nsecond\n"
)


@dataclass
class _FakeHost:
    tracks: list[SubtitleTrack]
    playback_time: float | None = None
    lines: dict[str, CurrentLine] = field(default_factory=dict)
    delays: dict[str, float] = field(default_factory=dict)

    def list_tracks(self) -> list[SubtitleTrack]:
        return self.tracks

    def current_playback_time(self) -> float | None:
        return self.playback_time

    def current_line(self, role: str) -> CurrentLine:
        return self.lines.get(role, CurrentLine(text="", start=None, end=None))

    def current_delay(self, role: str) -> float | None:
        return self.delays.get(role)


class _CountingReader:
    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self, path: str) -> str:
        self.calls += 1
        return SRT_TEXT


def _build_engine(host: _FakeHost, reader: _CountingReader | None = None) -> SubtitleEngine:
    return SubtitleEngine(
        host,
        store=CueStore(reader or _CountingReader()),
        config=build_app_config(),
    )


def _tracks() -> list[SubtitleTrack]:
    return [
        SubtitleTrack(track_id=1, lang="jpn", codec="ass"),
        SubtitleTrack(track_id=2, external_filename="/subs/movie.en.srt", lang="eng", external=True),
        SubtitleTrack(track_id=3, codec="hdmv_pgs_subtitle"),
    ]


def test_get_cues_resolves_external_track() -> None:
    engine = _build_engine(_FakeHost(tracks=_tracks()))
    result = asyncio.run(engine.get_cues("2"))
    assert result.ok
    assert result.track_id == 2
    assert [cue.text for cue in result.cues] == ["first", "second"]


def test_get_cues_reports_invalid_and_unknown_tracks() -> None:
    engine = _build_engine(_FakeHost(tracks=_tracks()))
    invalid = asyncio.run(engine.get_cues("abc"))
    unknown = asyncio.run(engine.get_cues(42))
    assert invalid.error == "Invalid track id"
    assert invalid.error_kind == ERROR_INVALID_QUERY
    assert unknown.error == "Track not found"
    assert unknown.error_kind == ERROR_INVALID_QUERY
    assert 42 not in engine.store


def test_embedded_track_reports_missing_source() -> None:
    engine = _build_engine(_FakeHost(tracks=_tracks()))
    result = asyncio.run(engine.get_cues(1))
    assert result.error_kind == ERROR_SOURCE_MISSING
    assert result.cues == ()


def test_role_reassignment_evicts_cached_cues() -> None:
    reader = _CountingReader()
    engine = _build_engine(_FakeHost(tracks=_tracks()), reader)

    asyncio.run(engine.get_cues(2))
    asyncio.run(engine.get_cues(2))
    assert reader.calls == 1

    assert engine.set_track_role(2, "secondary") is None
    assert 2 not in engine.store
    asyncio.run(engine.get_cues(2))
    assert reader.calls == 2

    assert engine.disable_role("secondary") is None
    assert 2 not in engine.store
    assert engine.role_for_track(2) == "none"


def test_binding_moves_track_between_roles() -> None:
    engine = _build_engine(_FakeHost(tracks=_tracks()))
    engine.set_track_role(2, "primary")
    engine.set_track_role(2, "secondary")
    assert engine.bound_track("primary") is None
    assert engine.bound_track("secondary") == 2
    assert engine.set_track_role("x", "primary") == "Invalid track id"
    assert "Unsupported role" in (engine.set_track_role(1, "third") or "")
    assert engine.set_track_role(1, "none") is not None


def test_tracks_are_listed_primary_first() -> None:
    engine = _build_engine(_FakeHost(tracks=_tracks()))
    engine.set_track_role(3, "primary")
    engine.set_track_role(1, "secondary")
    views = engine.tracks()
    assert [(view.track.track_id, view.role) for view in views] == [
        (3, "primary"),
        (1, "secondary"),
        (2, "none"),
    ]
    assert views[0].label == "hdmv_pgs_subtitle"
    assert views[1].label == "JPN"
    assert views[2].label == "ENG - movie.en.srt"


def test_delay_operations_return_structured_results() -> None:
    host = _FakeHost(tracks=_tracks(), playback_time=20.0)
    engine = _build_engine(host)

    assert engine.set_delay("primary", 1.5).delay == pytest.approx(1.5)
    assert engine.add_delay("primary", 0.25).delay == pytest.approx(1.75)
    assert engine.get_delay("secondary").delay == 0.0
    synced = engine.sync_delay_to_cue_start("secondary", 18.0)
    assert synced.ok
    assert synced.delay == pytest.approx(2.0)
    assert engine.reset_delay("primary").delay == 0.0

    bad = engine.set_delay("sideways", 1.0)
    assert not bad.ok
    assert bad.delay is None
    assert "Unsupported role" in (bad.error or "")

    host.playback_time = None
    missing = engine.sync_delay_to_cue_start("primary", 1.0)
    assert missing.error == "No playback time (no file loaded?)"


def test_active_cue_index_uses_role_delay() -> None:
    host = _FakeHost(tracks=_tracks(), playback_time=5.5)
    engine = _build_engine(host)
    engine.set_track_role(2, "primary")
    asyncio.run(engine.get_cues(2))

    assert engine.active_cue_index(2) == 1
    engine.set_delay("primary", 4.0)
    assert engine.active_cue_index(2) == 0
    assert engine.active_cue_index(1) is None


def test_current_line_payload_applies_boundary_heuristic() -> None:
    host = _FakeHost(
        tracks=_tracks(),
        playback_time=13.0,
        lines={"primary": CurrentLine(text=" Hi\nthere ", start=10.0, end=12.0)},
    )
    engine = _build_engine(host)
    engine.set_delay("primary", 2.5)

    line = engine.current_line("primary")
    assert (line.start, line.end) == (12.5, 14.5)
    payload, error = engine.current_line_payload("primary")
    assert error is None
    assert payload == "00:00:12.500 ~ 00:00:14.500 Hi / there"

    assert engine.current_line_payload("secondary") == (None, "No subtitle text available")


def test_boundary_heuristic_can_be_disabled() -> None:
    host = _FakeHost(
        tracks=_tracks(),
        playback_time=13.0,
        lines={"primary": CurrentLine(text="Hi", start=10.0, end=12.0)},
    )
    engine = SubtitleEngine(
        host,
        store=CueStore(_CountingReader()),
        boundary_resolver=PassthroughBoundaryResolver(),
    )
    engine.set_delay("primary", 2.5)
    line = engine.current_line("primary")
    assert (line.start, line.end) == (10.0, 12.0)


def test_host_reported_delay_drives_boundaries_and_active_cue() -> None:
    host = _FakeHost(
        tracks=_tracks(),
        playback_time=13.0,
        lines={"primary": CurrentLine(text="Hi", start=10.0, end=12.0)},
        delays={"primary": 2.5},
    )
    engine = _build_engine(host)
    assert engine.delays.get("primary") == 0.0

    line = engine.current_line("primary")
    assert (line.start, line.end) == (12.5, 14.5)
    assert engine.get_delay("primary").delay == pytest.approx(2.5)

    engine.set_track_role(2, "primary")
    asyncio.run(engine.get_cues(2))
    host.playback_time = 5.5
    host.delays["primary"] = 4.0
    assert engine.active_cue_index(2) == 0
    assert engine.add_delay("primary", 0.5).delay == pytest.approx(4.5)


def test_missing_host_delay_keeps_engine_delay() -> None:
    host = _FakeHost(tracks=_tracks(), delays={"secondary": float("nan")})
    engine = _build_engine(host)
    engine.set_delay("primary", 1.25)
    engine.set_delay("secondary", -0.5)
    assert engine.get_delay("primary").delay == pytest.approx(1.25)
    assert engine.get_delay("secondary").delay == pytest.approx(-0.5)


def test_invalid_environment_falls_back_to_default_config(monkeypatch) -> None:
    monkeypatch.setenv("SUBCUE_BOUNDARY_TOLERANCE", "soon")
    engine = SubtitleEngine(_FakeHost(tracks=_tracks()), store=CueStore(_CountingReader()))
    assert engine.config.boundary_tolerance == pytest.approx(0.05)
    assert engine.delays.boundary_tolerance == pytest.approx(0.05)
