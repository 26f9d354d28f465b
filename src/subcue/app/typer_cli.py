from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TaskID,
    TimeElapsedColumn,
)

from subcue.app.file_host import FileHost
from subcue.core.engine import SubtitleEngine
from subcue.core.timeline import (
    cycle_match,
    effective_bounds,
    find_nearest_match,
    flatten_text,
    format_cue_payload,
    search_matches,
)
from subcue.core.timestamp import format_time_range, format_timestamp
from subcue.infra.config import AppConfig, build_app_config, configure_logging
from subcue.schemas.subtitle import SUPPORTED_FORMATS, CueListResult
from subcue.schemas.track import ROLE_PRIMARY

app = typer.Typer(
    name="subcue",
    add_completion=False,
    help="Inspect and resynchronize SRT, WebVTT and ASS/SSA subtitle files.",
)

_SUBTITLE_SUFFIXES = {".srt", ".vtt", ".ass", ".ssa"}
_FILE_TRACK_ID = 1


def _build_config(log_level: str | None) -> AppConfig:
    try:
        config = build_app_config(log_level=log_level)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    configure_logging(config)
    return config


def _require_file(input_path: Path) -> None:
    if not input_path.exists() or not input_path.is_file():
        raise typer.BadParameter(f"Input not found: {input_path}")


def _open_engine(
    input_path: Path, config: AppConfig, playback_time: float | None = None
) -> tuple[SubtitleEngine, CueListResult]:
    host = FileHost(paths=[input_path], playback_time=playback_time)
    engine = SubtitleEngine(host, config=config)
    engine.set_track_role(_FILE_TRACK_ID, ROLE_PRIMARY)
    result = asyncio.run(engine.get_cues(_FILE_TRACK_ID))
    if result.error:
        typer.echo(f"[failed] {result.error}")
        raise typer.Exit(code=2)
    return engine, result


def _describe(result: CueListResult) -> str:
    return f"[{result.format}] {len(result.cues)} cues from {result.source}"


@app.command("cues")
def cues_command(
    input_path: Path = typer.Argument(..., help="Subtitle file (.srt, .vtt, .ass, .ssa)."),
    delay: float = typer.Option(0.0, "--delay", "-d", help="Delay in seconds applied to every cue."),
    compact: bool = typer.Option(False, "--compact", help="Show MM:SS times instead of HH:MM:SS.mmm."),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG|INFO|WARNING|ERROR"),
) -> None:
    """List the cues of a subtitle file with delay-adjusted times."""
    _require_file(input_path)
    config = _build_config(log_level)
    _, result = _open_engine(input_path, config)
    typer.echo(_describe(result))
    for index, cue in enumerate(result.cues):
        start, end = effective_bounds(cue, delay)
        typer.echo(
            f"{index:>5}  {format_time_range(start, end, compact=compact)}  "
            f"{flatten_text(cue.text, config.text_separator)}"
        )


@app.command("search")
def search_command(
    input_path: Path = typer.Argument(..., help="Subtitle file (.srt, .vtt, .ass, .ssa)."),
    query: str = typer.Argument(..., help="Case-insensitive text to look for."),
    anchor: int = typer.Option(0, "--anchor", help="Cue index to measure the nearest match from."),
    step: int = typer.Option(
        0, "--step", help="Move the focus this many matches forward (negative: backward)."
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG|INFO|WARNING|ERROR"),
) -> None:
    """Find cues containing a piece of text."""
    _require_file(input_path)
    if not query.strip():
        raise typer.BadParameter("Search query must not be empty.", param_hint="QUERY")
    config = _build_config(log_level)
    _, result = _open_engine(input_path, config)
    matches = search_matches(result.cues, query, config.text_separator) or ()
    typer.echo(f"[done] {len(matches)} matches for '{query.strip()}' in {len(result.cues)} cues")
    for index in matches:
        cue = result.cues[index]
        typer.echo(
            f"{index:>5}  {format_time_range(cue.start, cue.end)}  "
            f"{flatten_text(cue.text, config.text_separator)}"
        )
    focus = find_nearest_match(matches, anchor)
    for _ in range(abs(step)):
        focus = cycle_match(matches, focus, step)
    if focus is not None:
        typer.echo(f"- focus: {focus}")


@app.command("active")
def active_command(
    input_path: Path = typer.Argument(..., help="Subtitle file (.srt, .vtt, .ass, .ssa)."),
    at: float = typer.Option(..., "--at", help="Playback time in seconds."),
    delay: float = typer.Option(0.0, "--delay", "-d", help="Subtitle delay in seconds."),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG|INFO|WARNING|ERROR"),
) -> None:
    """Show the cue displayed at a playback time."""
    _require_file(input_path)
    config = _build_config(log_level)
    engine, result = _open_engine(input_path, config, playback_time=at)
    update = engine.set_delay(ROLE_PRIMARY, delay)
    if update.error:
        raise typer.BadParameter(update.error, param_hint="--delay")
    index = engine.active_cue_index(_FILE_TRACK_ID)
    if index is None:
        typer.echo(f"[none] No cue is active at {format_timestamp(at)}.")
        return
    start, end = effective_bounds(result.cues[index], delay)
    typer.echo(f"[{index}] {format_cue_payload(start, end, result.cues[index].text, config.text_separator)}")


@app.command("sync")
def sync_command(
    input_path: Path = typer.Argument(..., help="Subtitle file (.srt, .vtt, .ass, .ssa)."),
    cue: int = typer.Option(..., "--cue", help="Index of the cue that should start at --at."),
    at: float = typer.Option(..., "--at", help="Playback time in seconds where the cue starts."),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG|INFO|WARNING|ERROR"),
) -> None:
    """Compute the delay that lines a cue up with a playback time."""
    _require_file(input_path)
    config = _build_config(log_level)
    engine, result = _open_engine(input_path, config, playback_time=at)
    if cue < 0 or cue >= len(result.cues):
        raise typer.BadParameter(
            f"Cue index must be between 0 and {len(result.cues) - 1}, got {cue}",
            param_hint="--cue",
        )
    update = engine.sync_delay_to_cue_start(ROLE_PRIMARY, result.cues[cue].start)
    if update.error:
        typer.echo(f"[failed] {update.error}")
        raise typer.Exit(code=2)
    typer.echo(
        f"[done] delay {update.delay:+.3f}s\n"
        f"- cue: {cue} ({format_timestamp(result.cues[cue].start)})\n"
        f"- playback time: {format_timestamp(at)}"
    )


@app.command("scan")
def scan_command(
    input_dir: Path = typer.Argument(..., help="Directory containing subtitle files."),
    glob_pattern: str = typer.Option("*", "--glob", help="Glob pattern to select inputs (default: *)."),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG|INFO|WARNING|ERROR"),
) -> None:
    """Parse every subtitle file in a directory and report what was found."""
    if not input_dir.exists() or not input_dir.is_dir():
        raise typer.BadParameter(f"Input directory not found: {input_dir}")
    config = _build_config(log_level)
    files = [
        path
        for path in sorted(input_dir.glob(glob_pattern))
        if path.is_file() and path.suffix.lower() in _SUBTITLE_SUFFIXES
    ]
    if not files:
        typer.echo(
            f"[failed] No subtitle files matched the glob pattern "
            f"(formats: {', '.join(SUPPORTED_FORMATS)})."
        )
        raise typer.Exit(code=2)

    host = FileHost(paths=files)
    engine = SubtitleEngine(host, config=config)
    results: list[CueListResult] = []

    async def _scan(progress: Progress, task_id: TaskID) -> None:
        for view in engine.tracks():
            results.append(await engine.get_cues(view.track.track_id))
            progress.update(task_id, advance=1)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        transient=True,
    ) as progress:
        task_id = progress.add_task(description="Parsing subtitles...", total=len(files))
        asyncio.run(_scan(progress, task_id))

    failed = [result for result in results if result.error]
    empty = [result for result in results if not result.error and not result.cues]
    for result in results:
        if result.error:
            typer.echo(f"- [failed] {result.source}: {result.error}")
        else:
            typer.echo(f"- {_describe(result)}")
    typer.echo(
        f"Scan complete: total={len(results)} loaded={len(results) - len(failed) - len(empty)} "
        f"empty={len(empty)} failed={len(failed)}."
    )
    if failed and len(failed) == len(results):
        raise typer.Exit(code=2)


def run() -> None:
    """Console-script entrypoint."""
    app()
