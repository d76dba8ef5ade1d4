"""Transcoding engine access — ffmpeg invocation and media probing.

ffmpeg is the bundled imageio-ffmpeg binary unless settings override it.
Probing goes through moviepy's ffmpeg info parser (imageio-ffmpeg does not
ship ffprobe).
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

import imageio_ffmpeg
from moviepy.video.io.ffmpeg_reader import ffmpeg_parse_infos

from .errors import ProbeError, TranscodeError

logger = logging.getLogger(__name__)

_FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()


@dataclass(frozen=True)
class MediaInfo:
    path: Path
    width: int
    height: int
    fps: float
    duration: float
    has_audio: bool

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)


def probe(path: str | Path) -> MediaInfo:
    """Read size, frame rate, duration and audio presence of a media file.

    Raises:
        ProbeError: Missing file, unreadable container, or no video stream.
    """
    path = Path(path)
    if not path.is_file():
        raise ProbeError(path, "file not found")
    try:
        infos = ffmpeg_parse_infos(str(path))
    except (OSError, IndexError, KeyError, ValueError) as exc:
        raise ProbeError(path, str(exc)) from exc

    if not infos.get("video_found"):
        raise ProbeError(path, "no video stream")

    width, height = infos["video_size"]
    duration = infos.get("video_duration") or infos.get("duration") or 0.0
    return MediaInfo(
        path=path,
        width=int(width),
        height=int(height),
        fps=float(infos.get("video_fps") or 0.0),
        duration=float(duration),
        has_audio=bool(infos.get("audio_found")),
    )


def run_ffmpeg(args: list[str], stage: str, ffmpeg: str | None = None) -> None:
    """Run ffmpeg with the given arguments, raising on non-zero exit.

    Blocking: the calling stage waits for the process to finish.

    Raises:
        TranscodeError: Carries the exit code and stderr text.
    """
    cmd = [ffmpeg or _FFMPEG, "-hide_banner", "-y", *[str(a) for a in args]]
    logger.debug("ffmpeg [%s]: %s", stage, " ".join(cmd))
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as exc:
        raise TranscodeError(stage, -1, str(exc)) from exc
    if result.returncode != 0:
        raise TranscodeError(stage, result.returncode, result.stderr)


def encode_args(preset: str, crf: int, fps: int | None, audio: bool) -> list[str]:
    """Standard H.264/AAC mp4 output options."""
    args = [
        "-c:v", "libx264", "-preset", preset, "-crf", str(crf),
        "-pix_fmt", "yuv420p",
    ]
    if fps:
        args += ["-r", str(fps)]
    if audio:
        args += ["-c:a", "aac", "-b:a", "160k"]
    else:
        args += ["-an"]
    args += ["-movflags", "+faststart"]
    return args


def ffmpeg_version(ffmpeg: str | None = None) -> str | None:
    """First line of `ffmpeg -version`, or None if it cannot run."""
    try:
        result = subprocess.run(
            [ffmpeg or _FFMPEG, "-version"], capture_output=True, text=True,
        )
    except OSError:
        return None
    if result.returncode != 0 or "ffmpeg version" not in result.stdout:
        return None
    return result.stdout.splitlines()[0]
