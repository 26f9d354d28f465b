from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass

from subcue.core.delay import DEFAULT_BOUNDARY_TOLERANCE, DEFAULT_DELAY_NOISE_FLOOR
from subcue.core.timeline import DEFAULT_TEXT_SEPARATOR

DEFAULT_LOG_LEVEL = "WARNING"
SUPPORTED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class AppConfig:
    boundary_tolerance: float
    delay_noise_floor: float
    text_separator: str
    log_level: str
    read_fallback: bool


def _env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value


def normalize_seconds(value: float | str, name: str) -> float:
    try:
        seconds = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a number of seconds, got '{value}'") from exc
    if not math.isfinite(seconds) or seconds < 0.0:
        raise ValueError(f"{name} must be a finite value >= 0, got '{value}'")
    return seconds


def normalize_text_separator(value: str) -> str:
    if not value:
        raise ValueError("Text separator must not be empty.")
    if "\n" in value or "\r" in value:
        raise ValueError("Text separator must be a single line.")
    return value


def normalize_log_level(value: str) -> str:
    level = value.strip().upper()
    if level not in SUPPORTED_LOG_LEVELS:
        raise ValueError(
            f"Unsupported log level '{value}'. Allowed: {sorted(SUPPORTED_LOG_LEVELS)}"
        )
    return level


def normalize_flag(value: bool | str, name: str) -> bool:
    if isinstance(value, bool):
        return value
    flag = value.strip().lower()
    if flag in _TRUE_VALUES:
        return True
    if flag in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean flag, got '{value}'")


def build_app_config(
    *,
    boundary_tolerance: float | None = None,
    delay_noise_floor: float | None = None,
    text_separator: str | None = None,
    log_level: str | None = None,
    read_fallback: bool | None = None,
) -> AppConfig:
    """Resolve settings from arguments, then SUBCUE_* variables, then defaults."""
    return AppConfig(
        boundary_tolerance=normalize_seconds(
            boundary_tolerance
            if boundary_tolerance is not None
            else _env("SUBCUE_BOUNDARY_TOLERANCE") or DEFAULT_BOUNDARY_TOLERANCE,
            "boundary_tolerance",
        ),
        delay_noise_floor=normalize_seconds(
            delay_noise_floor
            if delay_noise_floor is not None
            else _env("SUBCUE_DELAY_NOISE_FLOOR") or DEFAULT_DELAY_NOISE_FLOOR,
            "delay_noise_floor",
        ),
        text_separator=normalize_text_separator(
            text_separator
            if text_separator is not None
            else os.getenv("SUBCUE_TEXT_SEPARATOR") or DEFAULT_TEXT_SEPARATOR
        ),
        log_level=normalize_log_level(
            log_level or _env("SUBCUE_LOG_LEVEL") or DEFAULT_LOG_LEVEL
        ),
        read_fallback=normalize_flag(
            read_fallback
            if read_fallback is not None
            else _env("SUBCUE_READ_FALLBACK") or True,
            "read_fallback",
        ),
    )


def default_app_config() -> AppConfig:
    return AppConfig(
        boundary_tolerance=DEFAULT_BOUNDARY_TOLERANCE,
        delay_noise_floor=DEFAULT_DELAY_NOISE_FLOOR,
        text_separator=DEFAULT_TEXT_SEPARATOR,
        log_level=DEFAULT_LOG_LEVEL,
        read_fallback=True,
    )


def configure_logging(config: AppConfig) -> None:
    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
