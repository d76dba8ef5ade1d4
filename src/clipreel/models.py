"""Data model for clipreel.

Clip sources and acquisition attempts, layout configuration (aspect ratio,
camera position, camera region), job records and compilation results.
Layout configuration is immutable; clip sources gain a local path once
acquired.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from .errors import LayoutError


# ── Clips ─────────────────────────────────────────────────────────

# Catalog thumbnails look like ".../<slug>-preview-480x272.jpg".
_THUMBNAIL_SLUG_RE = re.compile(r"^(?P<base>.+)-preview-\d+x\d+\.jpg$")


@dataclass
class ClipSource:
    """One requested clip and what we know about where to fetch it."""

    clip_id: str
    candidate_urls: list[str] = field(default_factory=list)
    thumbnail_url: str | None = None
    title: str | None = None
    local_path: Path | None = None

    @classmethod
    def from_payload(cls, data: dict | str) -> "ClipSource":
        """Build from a catalog-style record or a bare clip id."""
        if isinstance(data, str):
            return cls(clip_id=data)
        if "id" not in data:
            raise ValueError("Clip entry: missing required field 'id'")
        urls = list(data.get("urls") or [])
        if data.get("url") and data["url"] not in urls:
            urls.insert(0, data["url"])
        return cls(
            clip_id=str(data["id"]),
            candidate_urls=urls,
            thumbnail_url=data.get("thumbnail_url"),
            title=data.get("title"),
        )

    def to_payload(self) -> dict:
        out = {"id": self.clip_id}
        if self.candidate_urls:
            out["urls"] = list(self.candidate_urls)
        if self.thumbnail_url:
            out["thumbnail_url"] = self.thumbnail_url
        if self.title:
            out["title"] = self.title
        return out

    def thumbnail_video_url(self) -> str | None:
        """Derive the CDN mp4 URL from the preview thumbnail, if possible."""
        if not self.thumbnail_url:
            return None
        m = _THUMBNAIL_SLUG_RE.match(self.thumbnail_url)
        if not m:
            return None
        return f"{m.group('base')}.mp4"


@dataclass(frozen=True)
class AcquisitionAttempt:
    """Outcome of one strategy for one clip."""

    strategy: str
    ok: bool
    url: str | None = None
    reason: str | None = None

    def __str__(self):
        if self.ok:
            return f"{self.strategy}: ok ({self.url})"
        return f"{self.strategy}: {self.reason}"


@dataclass
class AcquiredClip:
    clip: ClipSource
    path: Path
    attempts: list[AcquisitionAttempt] = field(default_factory=list)


# ── Layout configuration ──────────────────────────────────────────


class AspectRatio(Enum):
    PORTRAIT = "9:16"
    LANDSCAPE = "16:9"
    SQUARE = "1:1"

    @property
    def canvas(self) -> tuple[int, int]:
        return _CANVASES[self]


_CANVASES = {
    AspectRatio.PORTRAIT: (1080, 1920),
    AspectRatio.LANDSCAPE: (1920, 1080),
    AspectRatio.SQUARE: (1080, 1080),
}


class CameraPosition(Enum):
    TOP_LEFT = "top left"
    TOP_RIGHT = "top right"
    BOTTOM_LEFT = "bottom left"
    BOTTOM_RIGHT = "bottom right"
    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"
    CENTER = "center"
    TOP_FULL = "top full"
    BOTTOM_FULL = "bottom full"

    @property
    def is_stack(self) -> bool:
        return self in (CameraPosition.TOP_FULL, CameraPosition.BOTTOM_FULL)

    @property
    def is_top(self) -> bool:
        return self.value.startswith("top")


def _parse_enum(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    text = str(value).strip().lower().replace("_", " ").replace("-", " ")
    for member in enum_cls:
        if member.value == text:
            return member
    raise ValueError(
        f"Invalid {field_name} '{value}'. "
        f"Valid: {sorted(m.value for m in enum_cls)}"
    )


@dataclass(frozen=True)
class CameraRegion:
    """Pixel rectangle of the presenter camera in source-frame coordinates."""

    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_payload(cls, data: dict) -> "CameraRegion":
        missing = [k for k in ("x", "y", "width", "height") if k not in data]
        if missing:
            raise ValueError(f"Camera region: missing field(s) {missing}")
        return cls(
            x=int(round(float(data["x"]))),
            y=int(round(float(data["y"]))),
            width=int(round(float(data["width"]))),
            height=int(round(float(data["height"]))),
        )

    def to_payload(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    def validate_within(self, source_w: int, source_h: int) -> None:
        if self.width <= 0 or self.height <= 0:
            raise LayoutError(
                f"Camera region must have positive size, got {self.width}x{self.height}"
            )
        if self.x < 0 or self.y < 0:
            raise LayoutError(
                f"Camera region origin must be non-negative, got ({self.x}, {self.y})"
            )
        if self.x + self.width > source_w or self.y + self.height > source_h:
            raise LayoutError(
                f"Camera region {self.width}x{self.height}+{self.x}+{self.y} "
                f"exceeds source frame {source_w}x{source_h}"
            )


@dataclass(frozen=True)
class LayoutTemplate:
    aspect_ratio: AspectRatio = AspectRatio.PORTRAIT
    camera_position: CameraPosition = CameraPosition.BOTTOM
    has_intro: bool = False
    has_outro: bool = False

    @property
    def canvas(self) -> tuple[int, int]:
        return self.aspect_ratio.canvas

    @classmethod
    def from_payload(cls, data: dict | None) -> "LayoutTemplate":
        """Accept snake_case or the dashboard's camelCase keys."""
        data = data or {}
        aspect = data.get("aspect_ratio", data.get("aspectRatio", "9:16"))
        position = data.get("camera_position", data.get("cameraPosition", "bottom"))
        return cls(
            aspect_ratio=_parse_enum(AspectRatio, aspect, "aspect_ratio"),
            camera_position=_parse_enum(CameraPosition, position, "camera_position"),
            has_intro=bool(data.get("has_intro", data.get("hasIntro", False))),
            has_outro=bool(data.get("has_outro", data.get("hasOutro", False))),
        )

    def to_payload(self) -> dict:
        return {
            "aspect_ratio": self.aspect_ratio.value,
            "camera_position": self.camera_position.value,
            "has_intro": self.has_intro,
            "has_outro": self.has_outro,
        }


# ── Jobs ──────────────────────────────────────────────────────────


class JobState(Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Job:
    """A compilation job as tracked by the queue's status store.

    State changes go through clipreel.jobs so the transition rules and the
    progress invariant are enforced in one place.
    """

    job_id: str
    payload: dict
    state: JobState = JobState.WAITING
    progress: int = 0
    result: dict | None = None
    error: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    finished_at: datetime | None = None

    def snapshot(self) -> dict:
        out = {"state": self.state.value, "progress": self.progress}
        if self.state is JobState.COMPLETED:
            out["result"] = dict(self.result) if self.result is not None else None
        elif self.state is JobState.FAILED:
            out["error"] = self.error
        return out


@dataclass
class CompilationRequest:
    """The broker payload of one compilation job, parsed."""

    clips: list[ClipSource]
    template: LayoutTemplate = field(default_factory=LayoutTemplate)
    camera_region: CameraRegion | None = None
    outro_path: Path | None = None
    intro_path: Path | None = None
    title: str = "Untitled Compilation"
    metadata: dict = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict) -> "CompilationRequest":
        clips = payload.get("clips")
        if not clips or not isinstance(clips, list):
            raise ValueError("No clips provided")
        options = payload.get("options") or {}
        region = payload.get("camera_region") or payload.get("camRegion")
        metadata = dict(payload.get("metadata") or {})
        title = options.get("title") or metadata.get("title") or "Untitled Compilation"
        return cls(
            clips=[ClipSource.from_payload(c) for c in clips],
            template=LayoutTemplate.from_payload(payload.get("template")),
            camera_region=CameraRegion.from_payload(region) if region else None,
            outro_path=Path(options["outro_path"]) if options.get("outro_path") else None,
            intro_path=Path(options["intro_path"]) if options.get("intro_path") else None,
            title=title,
            metadata=metadata,
        )

    def to_payload(self) -> dict:
        options = {"title": self.title}
        if self.outro_path:
            options["outro_path"] = str(self.outro_path)
        if self.intro_path:
            options["intro_path"] = str(self.intro_path)
        payload = {
            "clips": [c.to_payload() for c in self.clips],
            "template": self.template.to_payload(),
            "options": options,
            "metadata": dict(self.metadata),
        }
        if self.camera_region:
            payload["camera_region"] = self.camera_region.to_payload()
        return payload


@dataclass
class CompilationResult:
    """Successful output of a job. Owned by the caller once returned."""

    compilation_id: str
    video_path: Path
    thumbnail_path: Path | None
    title: str
    duration: float
    clip_ids: list[str] = field(default_factory=list)
    skipped_clip_ids: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)

    @property
    def filename(self) -> str:
        return self.video_path.name

    def to_dict(self) -> dict:
        out = {
            "success": True,
            "compilation_id": self.compilation_id,
            "video_path": str(self.video_path),
            "filename": self.filename,
            "title": self.title,
            "duration": round(self.duration, 3),
            "clip_ids": list(self.clip_ids),
            "skipped_clip_ids": list(self.skipped_clip_ids),
            "warnings": list(self.warnings),
            "metadata": dict(self.metadata),
        }
        if self.thumbnail_path is not None:
            out["thumbnail_path"] = str(self.thumbnail_path)
        return out
