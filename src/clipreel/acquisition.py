"""Acquisition engine — clip id to downloaded, web-playable mp4.

Walks the strategy chain for each clip (first success wins), then re-encodes
the download for browser playback. Batches run on a bounded thread pool;
one clip failing never aborts the others, but a batch with no successes
raises NoClipsAcquiredError.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import httpx

from .credentials import ClientCredentialsProvider
from .errors import AcquisitionError, NoClipsAcquiredError, TranscodeError
from .media import run_ffmpeg
from .models import AcquiredClip, AcquisitionAttempt, ClipSource
from .strategies import AcquisitionStrategy, default_strategies

logger = logging.getLogger(__name__)


def make_web_compatible(path: Path, ffmpeg: str | None = None) -> bool:
    """Re-encode in place to baseline H.264 / yuv420p / AAC with faststart.

    Best effort: on failure the original file is left untouched and False
    is returned.
    """
    tmp = path.with_name(f"{path.stem}_web{path.suffix or '.mp4'}")
    args = [
        "-i", path,
        "-c:v", "libx264", "-profile:v", "baseline", "-pix_fmt", "yuv420p",
        "-preset", "fast", "-crf", "23",
        "-c:a", "aac",
        "-movflags", "+faststart",
        tmp,
    ]
    try:
        run_ffmpeg(args, "web-compat", ffmpeg=ffmpeg)
        os.replace(tmp, path)
    except (TranscodeError, OSError) as exc:
        logger.warning("Post-processing failed for %s, using original file: %s", path.name, exc)
        tmp.unlink(missing_ok=True)
        return False
    logger.debug("Video post-processed for web compatibility: %s", path.name)
    return True


class AcquisitionEngine:
    def __init__(
        self,
        strategies: list[AcquisitionStrategy],
        max_workers: int = 4,
        recode: bool = True,
        ffmpeg: str | None = None,
    ):
        self.strategies = list(strategies)
        self.max_workers = max_workers
        self.recode = recode
        self.ffmpeg = ffmpeg

    @classmethod
    def from_settings(
        cls,
        settings,
        http: httpx.Client,
        credentials: ClientCredentialsProvider | None = None,
    ) -> "AcquisitionEngine":
        return cls(
            default_strategies(settings, http, credentials),
            max_workers=settings.max_concurrent_downloads,
            recode=settings.recode_downloads,
            ffmpeg=settings.ffmpeg_path,
        )

    def acquire(self, clip: ClipSource, dest: Path) -> AcquiredClip:
        """Run the strategy chain for one clip.

        Raises:
            AcquisitionError: Every strategy failed; carries the trace.
        """
        dest = Path(dest)
        attempts = []
        for strategy in self.strategies:
            try:
                attempt = strategy.attempt(clip, dest)
            except Exception as exc:
                logger.exception("Clip %s: %s strategy raised", clip.clip_id, strategy.name)
                dest.unlink(missing_ok=True)
                attempt = AcquisitionAttempt(strategy.name, False, reason=f"unexpected error: {exc}")
            attempts.append(attempt)
            if attempt.ok:
                logger.info("Clip %s acquired via %s", clip.clip_id, attempt.strategy)
                break
            logger.debug("Clip %s: %s", clip.clip_id, attempt)
        else:
            raise AcquisitionError(clip.clip_id, attempts)

        if self.recode:
            make_web_compatible(dest, ffmpeg=self.ffmpeg)
        clip.local_path = dest
        return AcquiredClip(clip=clip, path=dest, attempts=attempts)

    def acquire_all(self, clips: list[ClipSource], workspace) -> list[AcquiredClip]:
        """Acquire clips concurrently, keeping their original order.

        Returns:
            The successfully acquired clips, in request order.

        Raises:
            NoClipsAcquiredError: Not a single clip could be acquired.
        """
        if not clips:
            raise NoClipsAcquiredError([])

        workers = max(1, min(self.max_workers, len(clips)))
        logger.info("Starting %d clip downloads (%d parallel)", len(clips), workers)

        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(self.acquire, clip, workspace.clip_path(i))
                for i, clip in enumerate(clips)
            ]
            acquired, errors = [], []
            for clip, future in zip(clips, futures):
                try:
                    acquired.append(future.result())
                except AcquisitionError as exc:
                    logger.warning("Skipping clip %s: %s", clip.clip_id, exc)
                    errors.append(exc)

        if not acquired:
            raise NoClipsAcquiredError(errors)

        logger.info("Downloaded %d out of %d clips", len(acquired), len(clips))
        return acquired
