"""CLI for running a compilation job end to end.

Usage:
    # From a job manifest
    clipreel compile --manifest job.yaml

    # Ad hoc
    clipreel compile --clip ID1 --clip ID2 --aspect 9:16 --position "top full" \
        --camera 1440,0,480,270 --outro outros/brand.mp4 --title "Best of"
"""

import argparse
import sys
from pathlib import Path

from .acquisition import AcquisitionEngine
from .cli import (
    add_common_args,
    credentials_for,
    http_client,
    parse_region,
    settings_from_args,
)
from .composition import CompositionEngine
from .config import load_job_manifest
from .jobs import CompilationOrchestrator, CompilationService, make_worker
from .models import (
    AspectRatio,
    CameraPosition,
    ClipSource,
    CompilationRequest,
    LayoutTemplate,
)
from .queue import InMemoryJobQueue


def build_request(parsed) -> CompilationRequest:
    if parsed.manifest:
        request = load_job_manifest(parsed.manifest)
        if parsed.title:
            request.title = parsed.title
        return request

    template = LayoutTemplate.from_payload({
        "aspect_ratio": parsed.aspect,
        "camera_position": parsed.position,
        "has_outro": parsed.outro is not None or parsed.default_outro,
        "has_intro": parsed.intro is not None,
    })
    return CompilationRequest(
        clips=[ClipSource(clip_id=c) for c in parsed.clip],
        template=template,
        camera_region=parsed.camera,
        outro_path=Path(parsed.outro) if parsed.outro else None,
        intro_path=Path(parsed.intro) if parsed.intro else None,
        title=parsed.title or "Untitled Compilation",
    )


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Acquire clips and compile them into one reframed video.",
    )
    parser.add_argument(
        "--manifest", default=None,
        help="Path to job YAML manifest",
    )
    parser.add_argument(
        "--clip", action="append", default=[],
        help="Clip id to include, in order (repeatable)",
    )
    parser.add_argument(
        "--aspect", default="9:16",
        choices=[a.value for a in AspectRatio],
        help="Output aspect ratio",
    )
    parser.add_argument(
        "--position", default="bottom",
        choices=[p.value for p in CameraPosition],
        help="Camera placement",
    )
    parser.add_argument(
        "--camera", type=parse_region, default=None,
        help="Camera region in source pixels: x,y,width,height",
    )
    parser.add_argument("--outro", default=None, help="Outro video to append")
    parser.add_argument(
        "--default-outro", action="store_true",
        help="Append the first video found in the configured outro directory",
    )
    parser.add_argument("--intro", default=None, help="Intro video to prepend")
    parser.add_argument("--title", default=None, help="Compilation title")
    add_common_args(parser)
    parsed = parser.parse_args(args)

    if bool(parsed.manifest) == bool(parsed.clip):
        parser.error("Specify either --manifest or at least one --clip")

    settings = settings_from_args(parsed)
    settings.ensure_directories()
    request = build_request(parsed)

    queue = InMemoryJobQueue()
    service = CompilationService(queue)

    with http_client(settings) as http:
        orchestrator = CompilationOrchestrator(
            settings,
            AcquisitionEngine.from_settings(settings, http, credentials_for(settings, http)),
            CompositionEngine(settings),
        )
        job_id = service.submit(request)
        print(f"Compiling {len(request.clips)} clips as job {job_id}")
        queue.drain(make_worker(queue, orchestrator))

    status = service.poll(job_id)
    if status["state"] != "completed":
        print(f"Failed: {status.get('error')}")
        sys.exit(1)

    result = status["result"]
    print(f"Done: {result['video_path']} ({result['duration']:.1f}s)")
    if result.get("thumbnail_path"):
        print(f"Thumbnail: {result['thumbnail_path']}")
    if result["skipped_clip_ids"]:
        print(f"Skipped clips: {', '.join(result['skipped_clip_ids'])}")
    for warning in result["warnings"]:
        print(f"Warning: {warning}")


if __name__ == "__main__":
    main()
