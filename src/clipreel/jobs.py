"""Job lifecycle: state machine, progress rules, and the orchestrator.

  waiting → active → completed
                   ↘ failed

Terminal states are final. Progress only moves forward while a job is
active and is pinned at 100 on completion. The orchestrator reports these
checkpoints as the pipeline advances:

  accepted 5, acquired 40, concat 55, reframe 70,
  intro/outro 85, thumbnail 95, completed 100
"""

import logging

from .acquisition import AcquisitionEngine
from .composition import CompositionEngine
from .config import Settings, find_outro
from .errors import InvalidStateTransitionError
from .models import CompilationRequest, CompilationResult, Job, JobState, _utcnow
from .workspace import JobWorkspace

logger = logging.getLogger(__name__)


# ── State machine ─────────────────────────────────────────────────


TRANSITIONS: set[tuple[JobState, JobState]] = {
    (JobState.WAITING, JobState.ACTIVE),
    (JobState.ACTIVE, JobState.COMPLETED),
    (JobState.ACTIVE, JobState.FAILED),
}

TERMINAL_STATES = frozenset({JobState.COMPLETED, JobState.FAILED})

CHECKPOINTS = {
    "accepted": 5,
    "acquired": 40,
    "concat": 55,
    "reframe": 70,
    "intro": 85,
    "outro": 85,
    "thumb": 95,
    "completed": 100,
}


def can_transition(current: JobState, target: JobState) -> bool:
    return current == target or (current, target) in TRANSITIONS


def validate_transition(current: JobState, target: JobState) -> None:
    """Raises InvalidStateTransitionError if current → target is not allowed."""
    if not can_transition(current, target):
        raise InvalidStateTransitionError(current.value, target.value)


def transition(job: Job, target: JobState) -> Job:
    """Move job to target state. Same-state transitions are no-ops."""
    if job.state == target:
        return job
    validate_transition(job.state, target)
    job.state = target
    if target is JobState.COMPLETED:
        job.progress = 100
    if target in TERMINAL_STATES:
        job.finished_at = _utcnow()
    return job


def set_progress(job: Job, percent: int) -> int:
    """Advance job progress; returns the effective value.

    Lower values than the current progress are ignored, as is any update
    once the job is terminal.

    Raises:
        ValueError: percent outside 0–100.
    """
    if not 0 <= percent <= 100:
        raise ValueError(f"progress must be within 0-100, got {percent}")
    if job.state in TERMINAL_STATES:
        logger.debug("Ignoring progress %d for %s job %s", percent, job.state.value, job.job_id)
        return job.progress
    if percent > job.progress:
        job.progress = int(percent)
    return job.progress


def describe_failure(exc: BaseException) -> str:
    """Human-readable reason for a failed job."""
    message = str(exc).strip()
    return message or exc.__class__.__name__


# ── Orchestrator ──────────────────────────────────────────────────


class CompilationOrchestrator:
    def __init__(
        self,
        settings: Settings,
        acquisition: AcquisitionEngine,
        composition: CompositionEngine,
    ):
        self.settings = settings
        self.acquisition = acquisition
        self.composition = composition

    def resolve_outro(self, request: CompilationRequest):
        if request.outro_path is not None:
            return request.outro_path
        if request.template.has_outro:
            outro = find_outro(self.settings.outro_dir)
            if outro is None:
                logger.warning("No outro video found in %s", self.settings.outro_dir)
            return outro
        return None

    def run(self, job_id, payload, progress=None) -> CompilationResult:
        """Execute one compilation job end to end.

        Args:
            job_id: Broker job id, used to namespace files.
            payload: Broker payload dict or a CompilationRequest.
            progress: Called with a percentage at each checkpoint.

        Returns:
            CompilationResult for the kept video and thumbnail.

        Raises:
            ValueError: Malformed payload.
            NoClipsAcquiredError: Every clip failed to download.
            CompositionError: Concatenate or reframe failed.
        """
        report = progress or (lambda percent: None)
        if isinstance(payload, CompilationRequest):
            request = payload
        else:
            request = CompilationRequest.from_payload(payload)
        report(CHECKPOINTS["accepted"])

        logger.info("Job %s: compiling %d clips", job_id, len(request.clips))
        with JobWorkspace(self.settings.temp_dir, self.settings.output_dir, job_id) as ws:
            acquired = self.acquisition.acquire_all(request.clips, ws)
            report(CHECKPOINTS["acquired"])

            composed = self.composition.compose(
                [a.path for a in acquired],
                request.template,
                request.camera_region,
                ws,
                outro_path=self.resolve_outro(request),
                intro_path=request.intro_path,
                progress=lambda stage: report(CHECKPOINTS[stage]),
            )

            used = {id(a.clip) for a in acquired}
            result = CompilationResult(
                compilation_id=ws.token,
                video_path=composed.video_path,
                thumbnail_path=composed.thumbnail_path,
                title=request.title,
                duration=composed.duration,
                clip_ids=[a.clip.clip_id for a in acquired],
                skipped_clip_ids=[c.clip_id for c in request.clips if id(c) not in used],
                warnings=list(composed.warnings),
                metadata=dict(request.metadata),
            )

        logger.info("Job %s: wrote %s", job_id, result.video_path)
        return result


def make_worker(queue, orchestrator: CompilationOrchestrator):
    """Adapt the orchestrator to the broker's consume(callback) contract."""

    def work(job_id, payload):
        try:
            result = orchestrator.run(
                job_id, payload, lambda percent: queue.set_progress(job_id, percent),
            )
        except Exception as exc:
            logger.exception("Job %s failed", job_id)
            queue.fail(job_id, describe_failure(exc))
            return None
        queue.complete(job_id, result.to_dict())
        return result

    return work


class CompilationService:
    """Submit/poll facade over a JobQueue."""

    def __init__(self, queue):
        self.queue = queue

    def submit(self, request) -> str:
        """Validate and enqueue a request (CompilationRequest or payload dict).

        Raises:
            ValueError: Malformed payload.
        """
        if isinstance(request, CompilationRequest):
            payload = request.to_payload()
        else:
            payload = CompilationRequest.from_payload(request).to_payload()
        job_id = self.queue.submit(payload)
        logger.info("Queued compilation job %s (%d clips)", job_id, len(payload["clips"]))
        return job_id

    def poll(self, job_id) -> dict:
        """Raises JobNotFoundError for unknown ids."""
        return self.queue.status(job_id)
