"""Error types for clipreel.

Everything inherits from ClipreelError. Acquisition failures for a single
clip are recoverable at batch level; composition failures at the concat and
reframe stages abort the job. Outro and thumbnail failures are best-effort
and only ever logged.
"""


class ClipreelError(Exception):
    """Base exception for all clipreel failures."""
    pass


class ConfigError(ClipreelError, ValueError):
    """Raised when settings or a job manifest hold invalid values."""
    pass


class CredentialsError(ClipreelError):
    """Raised when the client-credentials exchange cannot produce a token."""
    pass


# ── Acquisition ───────────────────────────────────────────────────


class AcquisitionError(ClipreelError):
    """Raised when every acquisition strategy failed for one clip.

    Carries the per-strategy trace so the caller can see why each
    strategy gave up.
    """

    def __init__(self, clip_id: str, attempts: list):
        self.clip_id = clip_id
        self.attempts = list(attempts)
        trace = "; ".join(str(a) for a in self.attempts) or "no strategies configured"
        super().__init__(f"Could not acquire clip {clip_id}: {trace}")


class NoClipsAcquiredError(ClipreelError):
    """Raised when none of the requested clips could be acquired."""

    def __init__(self, errors: list[AcquisitionError]):
        self.errors = list(errors)
        super().__init__(
            f"Failed to download any clips ({len(self.errors)} requested)"
        )


# ── Layout and transcoding ────────────────────────────────────────


class LayoutError(ClipreelError, ValueError):
    """Raised for an invalid camera region or source geometry."""
    pass


class TranscodeError(ClipreelError):
    """Raised when the ffmpeg process exits non-zero."""

    def __init__(self, stage: str, returncode: int, stderr: str):
        self.stage = stage
        self.returncode = returncode
        self.stderr = stderr
        tail = _tail(stderr)
        super().__init__(f"ffmpeg failed during {stage} (exit {returncode}): {tail}")


class ProbeError(ClipreelError):
    """Raised when a media file cannot be probed."""

    def __init__(self, path, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Cannot read media {self.path}: {reason}")


class CompositionError(ClipreelError):
    """Raised when a mandatory render stage (concat, reframe) fails."""

    def __init__(self, stage: str, detail: str):
        self.stage = stage
        self.detail = detail
        super().__init__(f"Composition failed at {stage}: {detail}")


class OutroUnavailableError(ClipreelError):
    """Raised when an intro/outro cannot be joined. Never fatal."""
    pass


class ThumbnailError(ClipreelError):
    """Raised when the preview frame cannot be extracted. Never fatal."""
    pass


# ── Jobs ──────────────────────────────────────────────────────────


class JobError(ClipreelError):
    """Base exception for job bookkeeping failures."""
    pass


class JobNotFoundError(JobError, KeyError):
    """Raised when a job id is unknown to the queue."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")

    def __str__(self):
        return self.args[0]


class InvalidStateTransitionError(JobError):
    """Raised when attempting an illegal job state transition."""

    def __init__(self, current_state: str, target_state: str):
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(
            f"Invalid job state transition: {current_state} -> {target_state}"
        )


def _tail(text: str, lines: int = 8) -> str:
    """Last few non-empty lines of tool output, joined for a message."""
    kept = [ln.strip() for ln in (text or "").splitlines() if ln.strip()]
    return " | ".join(kept[-lines:]) or "no diagnostic output"
