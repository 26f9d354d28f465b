from __future__ import annotations

import asyncio
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Awaitable, Callable

from charset_normalizer import from_bytes

logger = logging.getLogger(__name__)

_NON_FILE_PREFIXES: tuple[str, ...] = ("edl://", "memory://", "http://", "https://")


def looks_like_file_path(source: str) -> bool:
    return not source.startswith(_NON_FILE_PREFIXES)


def get_cat_path() -> Path | None:
    path = shutil.which("cat")
    return Path(path) if path else None


def decode_subtitle_bytes(data: bytes) -> str:
    """Decode as UTF-8 when possible, otherwise use the detected charset."""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        pass
    match = from_bytes(data).best()
    if match is None:
        return data.decode("utf-8", errors="replace")
    logger.debug("Decoded subtitle bytes as %s", match.encoding)
    return str(match)


def _read_with_cat(path: str) -> bytes:
    cat = get_cat_path()
    if cat is None:
        raise OSError(f"Failed to read file: {path}")
    proc = subprocess.run(
        [str(cat), path],
        capture_output=True,
        check=False,
    )
    if proc.returncode != 0:
        detail = proc.stderr.decode("utf-8", errors="replace").strip()
        raise OSError(detail or f"Failed to read file: {path}")
    return proc.stdout


def read_text_file(path: str, *, fallback: bool = True) -> str:
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        if not fallback:
            raise
        logger.debug("Direct read of %s failed (%s); retrying through cat", path, exc)
        data = _read_with_cat(path)
    return decode_subtitle_bytes(data)


FileReader = Callable[[str], Awaitable[str]]


def build_file_reader(*, fallback: bool = True) -> FileReader:
    """Async read capability that runs the blocking read in a worker thread."""

    async def _read(path: str) -> str:
        return await asyncio.to_thread(read_text_file, path, fallback=fallback)

    return _read


read_subtitle_file = build_file_reader()
