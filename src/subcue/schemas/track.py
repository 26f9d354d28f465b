from __future__ import annotations

from dataclasses import dataclass

ROLE_PRIMARY = "primary"
ROLE_SECONDARY = "secondary"
ROLE_NONE = "none"
BOUND_ROLES: tuple[str, ...] = (ROLE_PRIMARY, ROLE_SECONDARY)


def normalize_role(value: str | None) -> str:
    """Map a host-supplied role name onto one of the known roles."""
    if value is None:
        return ROLE_NONE
    role = str(value).strip().lower()
    if not role or role == ROLE_NONE:
        return ROLE_NONE
    if role not in BOUND_ROLES:
        raise ValueError(f"Unsupported role '{value}'. Allowed: {', '.join(BOUND_ROLES)}")
    return role


def normalize_track_id(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def _basename(path: str) -> str:
    normalized = path.replace("\\", "/")
    return normalized.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class SubtitleTrack:
    track_id: int
    external_filename: str | None = None
    lang: str | None = None
    title: str | None = None
    codec: str | None = None
    external: bool = False
    selected: bool = False

    @property
    def label(self) -> str:
        parts: list[str] = []
        if self.lang and self.lang.strip():
            parts.append(self.lang.upper())
        if self.title and self.title.strip():
            parts.append(self.title.strip())
        if not parts and self.codec and self.codec.strip():
            parts.append(self.codec.strip())
        if self.external and self.external_filename:
            parts.append(_basename(self.external_filename))
        return " - ".join(parts) or f"Subtitle #{self.track_id}"


@dataclass(frozen=True)
class TrackView:
    track: SubtitleTrack
    role: str

    @property
    def label(self) -> str:
        return self.track.label


@dataclass(frozen=True)
class CurrentLine:
    text: str
    start: float | None
    end: float | None


@dataclass(frozen=True)
class DelayUpdate:
    role: str
    delay: float | None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
