"""Argument and setup helpers shared by the clipreel subcommands."""

import argparse
import logging

import httpx

from .config import load_settings
from .credentials import ClientCredentialsProvider
from .models import CameraRegion


def add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config", default=None,
        help="Path to settings YAML (environment variables still apply)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Debug logging",
    )


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Per-request lines from the HTTP stack drown out pipeline progress.
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def settings_from_args(parsed):
    configure_logging(parsed.verbose)
    return load_settings(parsed.config)


def http_client(settings) -> httpx.Client:
    return httpx.Client(timeout=settings.http_timeout, follow_redirects=True)


def credentials_for(settings, http: httpx.Client) -> ClientCredentialsProvider:
    return ClientCredentialsProvider(
        settings.client_id, settings.client_secret, settings.token_url, http,
    )


def parse_size(text: str) -> tuple[int, int]:
    """'1920x1080' → (1920, 1080)."""
    try:
        w, h = text.lower().split("x")
        return int(w), int(h)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected WIDTHxHEIGHT, got '{text}'") from None


def parse_region(text: str) -> CameraRegion:
    """'x,y,width,height' → CameraRegion."""
    parts = text.split(",")
    if len(parts) != 4:
        raise argparse.ArgumentTypeError(f"expected x,y,width,height, got '{text}'")
    try:
        x, y, w, h = (int(p) for p in parts)
    except ValueError:
        raise argparse.ArgumentTypeError(f"camera region must be integers, got '{text}'") from None
    return CameraRegion(x, y, w, h)
