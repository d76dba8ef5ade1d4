"""Composition engine — the ordered render pipeline.

Stages run strictly one after another, each writing a job-scoped file:

  concat     join acquired clips (fatal on failure)
  reframe    apply the layout engine's plan (fatal on failure)
  intro      prepend the intro bumper (optional, best effort)
  outro      append the outro bumper (optional, best effort)
  thumb      grab one preview frame (best effort)

Joining a bumper normalizes both sides to the main video's size and frame
rate with contain + pad (bumpers are never cropped) and reconciles audio
so the concat filter always sees matching stream counts:

  main audio | bumper audio | result
  -----------+--------------+--------------------------------------
  yes        | yes          | concat 1:1
  yes        | no           | silent track synthesized for bumper
  no         | yes          | silent track synthesized for main
  no         | no           | video-only concat
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from PIL import Image

from . import graph as g
from .errors import (
    CompositionError,
    LayoutError,
    OutroUnavailableError,
    ProbeError,
    ThumbnailError,
    TranscodeError,
)
from .layout import ReframePlan, plan_reframe
from .media import MediaInfo, encode_args, probe, run_ffmpeg
from .models import CameraRegion, LayoutTemplate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderStage:
    """One executed stage: what it read, how it filtered, what it wrote."""

    name: str
    inputs: tuple[Path, ...]
    graph: g.FilterGraph
    maps: tuple[str, ...]
    output: Path


@dataclass(frozen=True)
class CompositionPlan:
    stages: tuple[RenderStage, ...] = ()

    def extended(self, stage: RenderStage) -> "CompositionPlan":
        return CompositionPlan(self.stages + (stage,))

    def names(self) -> list[str]:
        return [s.name for s in self.stages]


@dataclass
class ComposedVideo:
    video_path: Path
    thumbnail_path: Path | None
    duration: float
    plan: CompositionPlan
    reframe: ReframePlan
    warnings: list[str] = field(default_factory=list)


def _noop_progress(stage: str) -> None:
    pass


class CompositionEngine:
    def __init__(self, settings):
        self.settings = settings
        self.ffmpeg = settings.ffmpeg_path

    # ── Pipeline ──────────────────────────────────────────────────

    def compose(
        self,
        clip_paths: list[Path],
        template: LayoutTemplate,
        camera_region: CameraRegion | None,
        workspace,
        outro_path: Path | None = None,
        intro_path: Path | None = None,
        progress=None,
    ) -> ComposedVideo:
        """Run concat → reframe → intro? → outro? → thumbnail.

        Args:
            clip_paths: Acquired clip files, in compilation order.
            template: Target layout.
            camera_region: Camera rectangle in source coordinates, or None
                for the letterboxed fallback layout.
            workspace: JobWorkspace providing job-scoped output names.
            outro_path / intro_path: Optional bumper files.
            progress: Called with each stage name once it finishes.

        Raises:
            CompositionError: concat or reframe failed.
        """
        progress = progress or _noop_progress
        plan = CompositionPlan()
        warnings = []

        if not clip_paths:
            raise CompositionError("concat", "no input clips")

        try:
            stage = self.concatenate(clip_paths, workspace.stage_output("concat"))
        except (TranscodeError, ProbeError) as exc:
            raise CompositionError("concat", str(exc)) from exc
        plan = plan.extended(stage)
        progress("concat")

        try:
            stage, reframe = self.reframe(
                stage.output, template, camera_region, workspace.stage_output("reframe"),
            )
        except (TranscodeError, ProbeError, LayoutError) as exc:
            raise CompositionError("reframe", str(exc)) from exc
        plan = plan.extended(stage)
        progress("reframe")
        current = stage.output

        for name, bumper, first in (("intro", intro_path, True), ("outro", outro_path, False)):
            if bumper is None:
                continue
            try:
                stage = self.join_bumper(
                    current, Path(bumper), workspace.stage_output(name),
                    stage=name, bumper_first=first,
                )
            except OutroUnavailableError as exc:
                logger.warning("Continuing without %s: %s", name, exc)
                warnings.append(str(exc))
                continue
            plan = plan.extended(stage)
            current = stage.output
            progress(name)

        thumbnail = None
        try:
            thumbnail = self.extract_thumbnail(current, workspace.stage_output("thumb", ".jpg"))
        except ThumbnailError as exc:
            logger.warning("Thumbnail skipped: %s", exc)
            warnings.append(str(exc))
        progress("thumb")

        try:
            duration = probe(current).duration
        except ProbeError as exc:
            raise CompositionError("final", str(exc)) from exc

        workspace.keep(current, thumbnail)
        return ComposedVideo(
            video_path=current,
            thumbnail_path=thumbnail,
            duration=duration,
            plan=plan,
            reframe=reframe,
            warnings=warnings,
        )

    # ── Stages ────────────────────────────────────────────────────

    def concatenate(self, clip_paths: list[Path], output: Path) -> RenderStage:
        """Join clips end to end at the first clip's size.

        Raises:
            ProbeError / TranscodeError
        """
        infos = [probe(p) for p in clip_paths]
        width, height = _even_size(infos[0].size)
        with_audio = any(i.has_audio for i in infos)

        graph = g.FilterGraph()
        segments = []
        for idx, info in enumerate(infos):
            graph = graph.then(
                [f"{idx}:v"],
                [*g.contain(width, height), g.setsar(), g.fps(self.settings.fps)],
                [f"v{idx}"],
            )
            segments.append(f"v{idx}")
            if with_audio:
                graph = self._audio_chain(graph, idx, info)
                segments.append(f"a{idx}")

        outputs = ["outv", "outa"] if with_audio else ["outv"]
        graph = graph.then(
            segments, [g.concat(len(infos), 1, 1 if with_audio else 0)], outputs,
        )
        logger.info("Merging %d clips at %dx%d", len(infos), width, height)
        return self._render("concat", clip_paths, graph, outputs, output, audio=with_audio)

    def reframe(
        self,
        source: Path,
        template: LayoutTemplate,
        camera_region: CameraRegion | None,
        output: Path,
    ) -> tuple[RenderStage, ReframePlan]:
        """Apply the layout plan for the template to the concatenated video.

        Raises:
            ProbeError / LayoutError / TranscodeError
        """
        info = probe(source)
        plan = plan_reframe(template, camera_region, info.size)
        logger.info(
            "Reframing %dx%d to %dx%d (%s, %s)",
            info.width, info.height, *plan.canvas,
            plan.family, template.camera_position.value,
        )
        maps = [plan.video_label]
        if info.has_audio:
            maps.append("0:a")
        stage = self._render("reframe", [source], plan.graph, maps, output, audio=info.has_audio)
        return stage, plan

    def join_bumper(
        self,
        main: Path,
        bumper: Path,
        output: Path,
        stage: str = "outro",
        bumper_first: bool = False,
    ) -> RenderStage:
        """Append (or prepend) a bumper video, reconciling audio.

        Raises:
            OutroUnavailableError: Bumper missing, unreadable, or the join
                failed. Callers treat this as non-fatal.
        """
        if not bumper.is_file():
            raise OutroUnavailableError(f"{stage} file not found: {bumper}")
        try:
            main_info = probe(main)
            bumper_info = probe(bumper)
        except ProbeError as exc:
            raise OutroUnavailableError(f"{stage} unreadable: {exc}") from exc

        width, height = _even_size(main_info.size)
        rate = main_info.fps or self.settings.fps

        # Input 0 is always the main video, input 1 the bumper.
        inputs = [main, bumper]
        infos = [main_info, bumper_info]
        order = [1, 0] if bumper_first else [0, 1]
        with_audio = main_info.has_audio or bumper_info.has_audio

        graph = g.FilterGraph()
        for idx in (0, 1):
            graph = graph.then(
                [f"{idx}:v"],
                [*g.contain(width, height), g.setsar(), g.fps(rate)],
                [f"v{idx}"],
            )
            if with_audio:
                graph = self._audio_chain(graph, idx, infos[idx])

        segments = []
        for idx in order:
            segments.append(f"v{idx}")
            if with_audio:
                segments.append(f"a{idx}")
        outputs = ["outv", "outa"] if with_audio else ["outv"]
        graph = graph.then(segments, [g.concat(2, 1, 1 if with_audio else 0)], outputs)

        logger.info(
            "Adding %s (main audio: %s, %s audio: %s)",
            stage, main_info.has_audio, stage, bumper_info.has_audio,
        )
        try:
            return self._render(stage, inputs, graph, outputs, output, audio=with_audio, fps=None)
        except TranscodeError as exc:
            output.unlink(missing_ok=True)
            raise OutroUnavailableError(f"{stage} join failed: {exc}") from exc

    def extract_thumbnail(self, video: Path, output: Path) -> Path:
        """Grab one frame at the configured offset as a fixed-size JPEG.

        The offset is clamped to half the video duration so short videos
        still yield a frame.

        Raises:
            ThumbnailError
        """
        width, height = self.settings.thumbnail_size
        try:
            info = probe(video)
        except ProbeError as exc:
            raise ThumbnailError(str(exc)) from exc

        offset = self.settings.thumbnail_offset
        if info.duration > 0:
            offset = min(offset, info.duration / 2)
        vf = ",".join(f.render() for f in g.cover(width, height))

        args = [
            "-ss", f"{offset:.3f}",
            "-i", video,
            "-frames:v", "1",
            "-vf", vf,
            "-q:v", "2",
            "-update", "1",
            output,
        ]
        try:
            run_ffmpeg(args, "thumb", ffmpeg=self.ffmpeg)
        except TranscodeError as exc:
            output.unlink(missing_ok=True)
            raise ThumbnailError(str(exc)) from exc

        try:
            with Image.open(output) as img:
                img.verify()
            with Image.open(output) as img:
                size = img.size
        except (OSError, SyntaxError) as exc:
            output.unlink(missing_ok=True)
            raise ThumbnailError(f"unreadable thumbnail: {exc}") from exc
        if size != (width, height):
            output.unlink(missing_ok=True)
            raise ThumbnailError(f"thumbnail is {size[0]}x{size[1]}, expected {width}x{height}")

        logger.info("Thumbnail generated: %s", output.name)
        return output

    # ── Helpers ───────────────────────────────────────────────────

    def _audio_chain(self, graph: g.FilterGraph, idx: int, info: MediaInfo) -> g.FilterGraph:
        rate = self.settings.audio_rate
        if info.has_audio:
            return graph.then([f"{idx}:a"], [g.aformat(rate)], [f"a{idx}"])
        # atrim treats a zero duration as unbounded.
        duration = info.duration if info.duration > 0 else 0.04
        return graph.then([], list(g.silence(duration, rate)), [f"a{idx}"])

    def _render(
        self,
        name: str,
        inputs: list[Path],
        graph: g.FilterGraph,
        maps: list[str],
        output: Path,
        audio: bool,
        fps: int | None = -1,
    ) -> RenderStage:
        if fps == -1:
            fps = self.settings.fps
        args = []
        for path in inputs:
            args += ["-i", path]
        args += ["-filter_complex", graph.render()]
        for m in maps:
            args += ["-map", m if ":" in m else f"[{m}]"]
        args += encode_args(self.settings.preset, self.settings.crf, fps, audio)
        args.append(output)

        output.parent.mkdir(parents=True, exist_ok=True)
        run_ffmpeg(args, name, ffmpeg=self.ffmpeg)
        return RenderStage(
            name=name,
            inputs=tuple(Path(p) for p in inputs),
            graph=graph,
            maps=tuple(maps),
            output=output,
        )


def _even_size(size: tuple[int, int]) -> tuple[int, int]:
    w, h = size
    return max(2, w // 2 * 2), max(2, h // 2 * 2)
