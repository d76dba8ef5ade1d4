"""CLI for downloading clips without composing them.

Usage:
    clipreel acquire AwkwardHelplessSalamander --output-dir clips/
    clipreel acquire ID --url https://cdn.example/clip.mp4 --no-recode
"""

import argparse
import sys
from pathlib import Path

from .acquisition import AcquisitionEngine
from .cli import add_common_args, credentials_for, http_client, settings_from_args
from .errors import AcquisitionError
from .models import ClipSource


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Download clips through the acquisition strategy chain.",
    )
    parser.add_argument("clip_ids", nargs="+", help="Clip ids (slugs)")
    parser.add_argument(
        "--output-dir", required=True,
        help="Directory for downloaded <clip_id>.mp4 files",
    )
    parser.add_argument(
        "--url", action="append", default=[],
        help="Known media URL to try first (single clip only, repeatable)",
    )
    parser.add_argument(
        "--no-recode", action="store_true",
        help="Keep downloads as-is instead of re-encoding for web playback",
    )
    add_common_args(parser)
    parsed = parser.parse_args(args)

    if parsed.url and len(parsed.clip_ids) != 1:
        parser.error("--url can only be used with a single clip id")

    settings = settings_from_args(parsed)
    out_dir = Path(parsed.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    failures = 0
    with http_client(settings) as http:
        engine = AcquisitionEngine.from_settings(settings, http, credentials_for(settings, http))
        if parsed.no_recode:
            engine.recode = False

        for clip_id in parsed.clip_ids:
            clip = ClipSource(clip_id=clip_id, candidate_urls=list(parsed.url))
            dest = out_dir / f"{clip_id}.mp4"
            try:
                acquired = engine.acquire(clip, dest)
            except AcquisitionError as exc:
                failures += 1
                print(f"FAILED {clip_id}")
                for attempt in exc.attempts:
                    print(f"  {attempt}")
                continue
            print(f"OK     {clip_id} via {acquired.attempts[-1].strategy} -> {dest}")

    print(f"Done: {len(parsed.clip_ids) - failures}/{len(parsed.clip_ids)} clips in {out_dir}")
    if failures == len(parsed.clip_ids):
        sys.exit(1)


if __name__ == "__main__":
    main()
