"""Shared test fixtures for clipreel tests.

Synthetic media is generated with the bundled ffmpeg from lavfi sources, so
no fixture files are checked in.
"""

import subprocess

import imageio_ffmpeg
import pytest

_FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()


def make_video(out, size="320x240", duration=2, rate=10, color="blue", audio=True):
    """Render a short H.264 test video, optionally with a silent AAC track."""
    cmd = [
        _FFMPEG, "-y",
        "-f", "lavfi", "-i", f"color=c={color}:s={size}:d={duration}:r={rate}",
    ]
    if audio:
        cmd += ["-f", "lavfi", "-i", "anullsrc=r=44100:cl=mono", "-shortest"]
    cmd += ["-c:v", "libx264", "-crf", "28", "-pix_fmt", "yuv420p"]
    cmd += ["-c:a", "aac", "-b:a", "32k"] if audio else ["-an"]
    cmd.append(str(out))
    subprocess.run(cmd, check=True, capture_output=True)
    return out


@pytest.fixture
def source_video(tmp_path):
    """2-second 320x240 clip with audio."""
    return make_video(tmp_path / "source.mp4")


@pytest.fixture
def silent_video(tmp_path):
    """2-second 320x240 clip without an audio stream."""
    return make_video(tmp_path / "silent.mp4", color="green", audio=False)


@pytest.fixture
def outro_video(tmp_path):
    """1-second 4:3 bumper with audio, deliberately a different size."""
    return make_video(tmp_path / "outro.mp4", size="160x120", duration=1, color="red")


@pytest.fixture
def silent_outro(tmp_path):
    return make_video(
        tmp_path / "outro_silent.mp4", size="160x120", duration=1, color="red", audio=False,
    )


@pytest.fixture
def fast_settings(tmp_path):
    """Settings tuned for quick test renders into tmp_path."""
    from clipreel.config import Settings

    return Settings(
        temp_dir=tmp_path / "temp",
        output_dir=tmp_path / "out",
        outro_dir=tmp_path / "outros",
        preset="ultrafast",
        crf=35,
        fps=10,
        thumbnail_size=(320, 180),
        recode_downloads=False,
    )


@pytest.fixture
def video_factory(tmp_path):
    """make_video bound to tmp_path: video_factory("name.mp4", duration=1)."""
    def _make(name, **kwargs):
        return make_video(tmp_path / name, **kwargs)
    return _make
