"""CLI for checking external tools and credentials.

Usage:
    clipreel check
"""

import argparse
import sys

from .cli import add_common_args, settings_from_args
from .media import ffmpeg_version
from .strategies import check_downloader


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Check that ffmpeg, yt-dlp and catalog credentials are available.",
    )
    add_common_args(parser)
    parsed = parser.parse_args(args)
    settings = settings_from_args(parsed)

    ffmpeg = ffmpeg_version(settings.ffmpeg_path)
    ytdlp = check_downloader(settings.ytdlp_path)

    print(f"ffmpeg:      {ffmpeg or 'NOT FOUND'}")
    print(f"yt-dlp:      {ytdlp or 'not found (last-resort strategy disabled)'}")
    print(f"credentials: {'configured' if settings.has_credentials else 'not configured'}")
    print(f"output dir:  {settings.output_dir}")

    if ffmpeg is None:
        sys.exit(1)


if __name__ == "__main__":
    main()
