"""Job-scoped file naming and cleanup.

Every file a job writes carries the job's per-attempt token, so concurrent
jobs (and redeliveries of the same job) never collide:

  <temp_dir>/<token>/clip_00.mp4          raw acquired clips
  <output_dir>/<token>_concat.mp4         stage outputs
  <output_dir>/<token>_thumb.jpg

Leaving the `with` block always deletes the token's temp directory. Stage
outputs are deleted too, except those passed to keep(), and only when the
block exits without an exception; on failure nothing is kept.
"""

import logging
import re
import shutil
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9_-]+")


def make_token(job_id: str | int | None = None) -> str:
    """Per-attempt identifier: sanitized job id plus a random suffix."""
    suffix = uuid.uuid4().hex[:12]
    if job_id is None:
        return suffix
    base = _UNSAFE.sub("-", str(job_id)).strip("-")[:40]
    return f"{base}-{suffix}" if base else suffix


class JobWorkspace:
    def __init__(self, temp_root: Path, output_dir: Path, job_id=None):
        self.token = make_token(job_id)
        self.temp_dir = Path(temp_root) / self.token
        self.output_dir = Path(output_dir)
        self._outputs: list[Path] = []
        self._kept: set[Path] = set()

    def __enter__(self) -> "JobWorkspace":
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup(success=exc_type is None)

    def clip_path(self, index: int) -> Path:
        return self.temp_dir / f"clip_{index:02d}.mp4"

    def temp_path(self, name: str) -> Path:
        return self.temp_dir / name

    def stage_output(self, stage: str, suffix: str = ".mp4") -> Path:
        """Register and return the output path for a render stage."""
        path = self.output_dir / f"{self.token}_{stage}{suffix}"
        self._outputs.append(path)
        return path

    def keep(self, *paths: Path | None) -> None:
        for p in paths:
            if p is not None:
                self._kept.add(Path(p))

    def cleanup(self, success: bool) -> None:
        shutil.rmtree(self.temp_dir, ignore_errors=True)
        for path in self._outputs:
            if success and path in self._kept:
                continue
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Could not remove %s: %s", path, exc)
