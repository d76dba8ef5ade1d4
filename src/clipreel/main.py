"""Subcommand dispatcher for clipreel.

Usage:
    clipreel compile  --manifest job.yaml
    clipreel compile  --clip ID --clip ID --aspect 9:16 --position "top full"
    clipreel acquire  ID [ID ...] --output-dir clips/
    clipreel layout   --source 1920x1080 --position "top left" --camera 0,0,480,270
    clipreel check
"""

import argparse
import sys

COMMANDS = {
    "compile": "Run a full compilation job",
    "acquire": "Download clips through the strategy chain",
    "layout": "Print the reframe filter graph for a template",
    "check": "Check ffmpeg, yt-dlp and credentials",
}


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="clipreel",
        description="Clip acquisition, vertical reframing and compilation jobs.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Each subcommand delegates to its own module's main().
    for name, help_text in COMMANDS.items():
        subparsers.add_parser(name, help=help_text, add_help=False)

    # Parse only the subcommand name, pass the rest to the subcommand's parser.
    parsed, remaining = parser.parse_known_args(args)

    if parsed.command not in COMMANDS:
        parser.print_help()
        sys.exit(1)

    if parsed.command == "compile":
        from .compile_cli import main as compile_main
        compile_main(remaining)
    elif parsed.command == "acquire":
        from .acquire_cli import main as acquire_main
        acquire_main(remaining)
    elif parsed.command == "layout":
        from .layout_cli import main as layout_main
        layout_main(remaining)
    elif parsed.command == "check":
        from .check_cli import main as check_main
        check_main(remaining)


if __name__ == "__main__":
    main()
