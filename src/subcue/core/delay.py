from __future__ import annotations

import logging
import math
from typing import Protocol

from subcue.schemas.track import BOUND_ROLES, ROLE_NONE, normalize_role

logger = logging.getLogger(__name__)

DEFAULT_DELAY_NOISE_FLOOR = 0.0005
DEFAULT_BOUNDARY_TOLERANCE = 0.05


class BoundaryResolver(Protocol):
    def resolve_displayed_boundaries(
        self,
        start: float | None,
        end: float | None,
        playback_time: float | None,
        delay: float,
    ) -> tuple[float | None, float | None]:
        ...


class PassthroughBoundaryResolver:
    """Trust the host's reported boundaries as-is."""

    def resolve_displayed_boundaries(
        self,
        start: float | None,
        end: float | None,
        playback_time: float | None,
        delay: float,
    ) -> tuple[float | None, float | None]:
        del playback_time, delay
        return start, end


def _require_finite(value: float, name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc
    if not math.isfinite(number):
        raise ValueError(f"{name} must be finite, got {value!r}")
    return number


class DelayResolver:
    """Per-role subtitle delays plus the shifted-boundary heuristic.

    Hosts disagree on whether the currently displayed line's start/end already
    include the role delay. When playback time sits inside the shifted
    interval but outside the reported one, the reported boundaries are taken
    as unshifted and the delay is added.
    """

    def __init__(
        self,
        *,
        noise_floor: float = DEFAULT_DELAY_NOISE_FLOOR,
        boundary_tolerance: float = DEFAULT_BOUNDARY_TOLERANCE,
    ) -> None:
        self.noise_floor = noise_floor
        self.boundary_tolerance = boundary_tolerance
        self._delays: dict[str, float] = {role: 0.0 for role in BOUND_ROLES}

    def _role(self, role: str) -> str:
        normalized = normalize_role(role)
        if normalized == ROLE_NONE:
            raise ValueError("A delay needs a primary or secondary role.")
        return normalized

    def get(self, role: str) -> float:
        return self._delays[self._role(role)]

    def set(self, role: str, value: float) -> float:
        key = self._role(role)
        self._delays[key] = _require_finite(value, "delay")
        logger.debug("Delay for %s set to %.3f", key, self._delays[key])
        return self._delays[key]

    def add(self, role: str, delta: float) -> float:
        return self.set(role, self.get(role) + _require_finite(delta, "delta"))

    def reset(self, role: str) -> float:
        return self.set(role, 0.0)

    def sync_to_cue_start(self, role: str, cue_start: float, playback_time: float) -> float:
        start = _require_finite(cue_start, "cue start")
        now = _require_finite(playback_time, "playback time")
        return self.set(role, now - start)

    def resolve_displayed_boundaries(
        self,
        start: float | None,
        end: float | None,
        playback_time: float | None,
        delay: float,
    ) -> tuple[float | None, float | None]:
        if start is None or end is None or playback_time is None:
            return start, end
        if abs(delay) <= self.noise_floor:
            return start, end
        eps = self.boundary_tolerance
        in_raw = start - eps <= playback_time <= end + eps
        in_shifted = start + delay - eps <= playback_time <= end + delay + eps
        if in_shifted and not in_raw:
            return start + delay, end + delay
        return start, end
