"""Settings and job manifest loading.

Settings come from three layers, later ones winning:
  1. Dataclass defaults.
  2. An optional YAML settings file.
  3. Environment variables (CLIPREEL_*, plus TWITCH_CLIENT_ID and
     TWITCH_CLIENT_SECRET for the catalog API credentials).

Settings file schema:
  paths:
    data: "/srv/clipreel"
  temp_dir: "${data}/temp"
  output_dir: "${data}/compilations"
  outro_dir: "${data}/outros"
  encoding:
    preset: fast
    crf: 23
    fps: 30
  max_concurrent_downloads: 4

Job manifest schema (used by `clipreel compile`):
  title: "Friday highlights"
  paths:
    outros: "/srv/outros"
  template:
    aspect_ratio: "9:16"
    camera_position: "bottom full"
    has_outro: true
  camera_region: {x: 1500, y: 780, width: 400, height: 280}
  outro: "${outros}/channel.mp4"
  clips:
    - id: AwkwardHelplessSalamanderSwiftRage
      url: "https://.../clip.mp4"     # optional
    - BraveTenderPeachKappa           # bare id
"""

import os
import re
from dataclasses import dataclass, fields, replace
from pathlib import Path

import yaml

from .errors import ConfigError
from .models import CompilationRequest


VALID_PRESETS = {
    "ultrafast", "superfast", "veryfast", "faster", "fast",
    "medium", "slow", "slower", "veryslow",
}

VIDEO_EXTENSIONS = {".mp4", ".mov", ".avi", ".mkv", ".webm"}


# ── Path utilities ─────────────────────────────────────────────────

def resolve_path_vars(text: str, paths: dict[str, str]) -> str:
    """Replace ${name} variables in a string using the paths dict."""
    def _replace(match):
        key = match.group(1)
        if key not in paths:
            raise ConfigError(f"Unknown path variable: ${{{key}}}")
        return str(paths[key])
    return re.sub(r"\$\{(\w+)\}", _replace, text)


def _resolve_all(obj, paths: dict):
    """Recursively resolve ${var} in all string values."""
    if isinstance(obj, str):
        return resolve_path_vars(obj, paths)
    elif isinstance(obj, dict):
        return {k: _resolve_all(v, paths) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_resolve_all(item, paths) for item in obj]
    return obj


# ── Settings ───────────────────────────────────────────────────────


@dataclass
class Settings:
    temp_dir: Path = Path("temp")
    output_dir: Path = Path("uploads/compilations")
    outro_dir: Path = Path("outros")

    # Encoding.
    preset: str = "fast"
    crf: int = 23
    fps: int = 30
    audio_rate: int = 44100

    # Thumbnail.
    thumbnail_offset: float = 1.0
    thumbnail_size: tuple[int, int] = (1280, 720)

    # Acquisition.
    max_concurrent_downloads: int = 4
    http_timeout: float = 30.0
    ytdlp_path: str = "yt-dlp"
    recode_downloads: bool = True
    client_id: str | None = None
    client_secret: str | None = None
    gql_client_id: str = "kimne78kx3ncx6brgo4mv6wki5h1ko"
    token_url: str = "https://id.twitch.tv/oauth2/token"
    api_url: str = "https://api.twitch.tv/helix"
    gql_url: str = "https://gql.twitch.tv/gql"
    clip_page_url: str = "https://clips.twitch.tv"

    # Transcoder override. None means the imageio-ffmpeg bundled binary.
    ffmpeg_path: str | None = None

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def ensure_directories(self) -> None:
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)


_PATH_FIELDS = {"temp_dir", "output_dir", "outro_dir"}
_INT_FIELDS = {"crf", "fps", "audio_rate", "max_concurrent_downloads"}
_FLOAT_FIELDS = {"thumbnail_offset", "http_timeout"}
_BOOL_FIELDS = {"recode_downloads"}

_ENV_OVERRIDES = {
    "CLIPREEL_TEMP_DIR": "temp_dir",
    "CLIPREEL_OUTPUT_DIR": "output_dir",
    "CLIPREEL_OUTRO_DIR": "outro_dir",
    "CLIPREEL_PRESET": "preset",
    "CLIPREEL_CRF": "crf",
    "CLIPREEL_FPS": "fps",
    "CLIPREEL_MAX_DOWNLOADS": "max_concurrent_downloads",
    "CLIPREEL_YTDLP": "ytdlp_path",
    "CLIPREEL_FFMPEG": "ffmpeg_path",
    "TWITCH_CLIENT_ID": "client_id",
    "TWITCH_CLIENT_SECRET": "client_secret",
}


def _coerce(name: str, value):
    if name in _PATH_FIELDS:
        return Path(value)
    if name in _INT_FIELDS:
        return int(value)
    if name in _FLOAT_FIELDS:
        return float(value)
    if name in _BOOL_FIELDS:
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)
    if name == "thumbnail_size":
        w, h = value
        return (int(w), int(h))
    return value


def load_settings(
    path: str | Path | None = None,
    environ: dict | None = None,
) -> Settings:
    """Load, merge and validate settings.

    Args:
        path: Optional YAML settings file.
        environ: Environment mapping; defaults to os.environ.

    Returns:
        Validated Settings.

    Raises:
        ConfigError: Unknown keys or invalid values.
        FileNotFoundError: Missing settings file.
    """
    environ = os.environ if environ is None else environ
    values = {}

    if path is not None:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ConfigError("Settings: top level must be a mapping")
        paths = raw.pop("paths", {}) or {}
        raw = _resolve_all(raw, paths)

        # Nested encoding block flattens onto the top-level fields.
        encoding = raw.pop("encoding", {}) or {}
        raw.update(encoding)

        known = {f.name for f in fields(Settings)}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise ConfigError(f"Settings: unknown key(s) {unknown}")
        values.update(raw)

    for env_key, name in _ENV_OVERRIDES.items():
        if environ.get(env_key):
            values[name] = environ[env_key]

    try:
        coerced = {k: _coerce(k, v) for k, v in values.items()}
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Settings: {exc}") from exc

    settings = replace(Settings(), **coerced)
    validate_settings(settings)
    return settings


def validate_settings(settings: Settings) -> None:
    if settings.preset not in VALID_PRESETS:
        raise ConfigError(
            f"Settings: invalid preset '{settings.preset}'. "
            f"Valid: {sorted(VALID_PRESETS)}"
        )
    if not 0 <= settings.crf <= 51:
        raise ConfigError(f"Settings: crf must be within 0-51, got {settings.crf}")
    if settings.fps <= 0:
        raise ConfigError(f"Settings: fps must be > 0, got {settings.fps}")
    if settings.max_concurrent_downloads < 1:
        raise ConfigError(
            "Settings: max_concurrent_downloads must be >= 1, "
            f"got {settings.max_concurrent_downloads}"
        )
    if settings.thumbnail_offset < 0:
        raise ConfigError(
            f"Settings: thumbnail_offset must be >= 0, got {settings.thumbnail_offset}"
        )
    w, h = settings.thumbnail_size
    if w <= 0 or h <= 0:
        raise ConfigError(f"Settings: thumbnail_size must be positive, got {w}x{h}")


def find_outro(outro_dir: Path) -> Path | None:
    """First video file (by name) in the outro directory, if any."""
    if not outro_dir.is_dir():
        return None
    candidates = sorted(
        p for p in outro_dir.iterdir()
        if p.is_file() and p.suffix.lower() in VIDEO_EXTENSIONS
    )
    return candidates[0] if candidates else None


# ── Job manifests ──────────────────────────────────────────────────


def load_job_manifest(manifest_path: str | Path) -> CompilationRequest:
    """Load a compilation job manifest into a CompilationRequest.

    Processing pipeline:
      1. Parse YAML.
      2. Resolve ${path} variables in all string values.
      3. Map manifest keys onto the broker payload shape.
      4. Parse and validate via CompilationRequest.from_payload.

    Raises:
        ConfigError: Missing/invalid fields.
    """
    with open(manifest_path) as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ConfigError("Job manifest: top level must be a mapping")
    if "clips" not in raw:
        raise ConfigError("Job manifest: missing required 'clips' field")

    paths = raw.get("paths", {}) or {}
    resolved = _resolve_all({k: v for k, v in raw.items() if k != "paths"}, paths)

    options = {}
    if resolved.get("title"):
        options["title"] = resolved["title"]
    if resolved.get("outro"):
        options["outro_path"] = resolved["outro"]
    if resolved.get("intro"):
        options["intro_path"] = resolved["intro"]

    payload = {
        "clips": resolved["clips"],
        "template": resolved.get("template") or {},
        "options": options,
        "metadata": resolved.get("metadata") or {},
    }
    if resolved.get("camera_region"):
        payload["camera_region"] = resolved["camera_region"]

    try:
        return CompilationRequest.from_payload(payload)
    except ValueError as exc:
        raise ConfigError(f"Job manifest: {exc}") from exc
