"""Acquisition strategies — ways of turning a clip id into a local mp4.

Each strategy implements attempt(clip, dest) and reports the outcome as an
AcquisitionAttempt instead of raising, so the engine can walk the chain and
keep a trace. Order used by default_strategies():

  1. direct   — caller-supplied URLs, or the mp4 derived from the preview
                thumbnail (looked up through the catalog API if needed)
  2. graphql  — upstream GraphQL clip query, best labelled quality
  3. page     — public clip page, embedded mp4 URL or clip data blob
  4. yt-dlp   — external command-line downloader, last resort
"""

import json
import logging
import re
import subprocess
from pathlib import Path

import httpx

from .errors import CredentialsError, ProbeError
from .media import probe
from .models import AcquisitionAttempt, ClipSource

logger = logging.getLogger(__name__)

BROWSER_UA = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

QUALITY_PREFERENCE = ("1080", "720")

CLIP_QUERY = """
query ClipQualities($slug: ID!) {
  clip(slug: $slug) {
    videoQualities {
      sourceURL
      quality
    }
  }
}
"""

_MP4_URL_RE = re.compile(r"https://[^\"'\s]*?\.mp4")
_CLIP_DATA_RE = re.compile(r"window\.__clipData\s*=\s*(\{.*?\})\s*;?\s*</script>", re.S)
_CLIP_DATA_SHORT_RE = re.compile(r"window\.__clipData\s*=\s*(\{[^}]+\})")


class StrategyFailed(Exception):
    """Internal signal: this strategy cannot produce a URL for the clip."""
    pass


# ── Downloads ─────────────────────────────────────────────────────


def download_to(http: httpx.Client, url: str, dest: Path, referer: str | None = None) -> int:
    """Stream url into dest. Returns bytes written.

    The partial file is removed on any failure.

    Raises:
        StrategyFailed: HTTP error, transport error, or empty body.
    """
    headers = {"User-Agent": BROWSER_UA}
    if referer:
        headers["Referer"] = referer

    dest.parent.mkdir(parents=True, exist_ok=True)
    written = 0
    try:
        with http.stream("GET", url, headers=headers) as response:
            if response.is_error:
                raise StrategyFailed(f"HTTP {response.status_code} from {url}")
            with open(dest, "wb") as f:
                for chunk in response.iter_bytes():
                    if chunk:
                        f.write(chunk)
                        written += len(chunk)
    except (httpx.HTTPError, httpx.InvalidURL, OSError) as exc:
        dest.unlink(missing_ok=True)
        raise StrategyFailed(f"download of {url} failed: {exc}") from exc
    except StrategyFailed:
        dest.unlink(missing_ok=True)
        raise

    if written == 0:
        dest.unlink(missing_ok=True)
        raise StrategyFailed(f"empty response from {url}")
    return written


def ensure_video(dest: Path, source: str) -> None:
    """Reject downloads that are not readable video (e.g. an HTML error page).

    Raises:
        StrategyFailed: The file is removed first.
    """
    try:
        probe(dest)
    except ProbeError as exc:
        dest.unlink(missing_ok=True)
        raise StrategyFailed(f"downloaded file is not a video ({source})") from exc


# ── Strategy base classes ─────────────────────────────────────────


class AcquisitionStrategy:
    name = "strategy"

    def attempt(self, clip: ClipSource, dest: Path) -> AcquisitionAttempt:
        raise NotImplementedError

    def _ok(self, url: str) -> AcquisitionAttempt:
        return AcquisitionAttempt(self.name, True, url=url)

    def _failed(self, reason: str) -> AcquisitionAttempt:
        return AcquisitionAttempt(self.name, False, reason=reason)


class UrlStrategy(AcquisitionStrategy):
    """Resolve candidate URLs, then download the first one that works."""

    def __init__(self, http: httpx.Client, referer: str | None = None):
        self.http = http
        self.referer = referer

    def candidates(self, clip: ClipSource) -> list[str]:
        raise NotImplementedError

    def attempt(self, clip: ClipSource, dest: Path) -> AcquisitionAttempt:
        try:
            urls = self.candidates(clip)
        except StrategyFailed as exc:
            return self._failed(str(exc))
        except (httpx.HTTPError, httpx.InvalidURL, CredentialsError) as exc:
            return self._failed(f"request failed: {exc}")
        if not urls:
            return self._failed("no candidate URLs")

        reasons = []
        for url in urls:
            try:
                download_to(self.http, url, dest, referer=self.referer)
                ensure_video(dest, url)
            except StrategyFailed as exc:
                reasons.append(str(exc))
                continue
            return self._ok(url)
        return self._failed("; ".join(reasons))


# ── 1. Direct URLs ────────────────────────────────────────────────


class CatalogClient:
    """Authenticated lookups against the catalog API (clip records only)."""

    def __init__(self, http: httpx.Client, credentials, api_url: str):
        self.http = http
        self.credentials = credentials
        self.api_url = api_url.rstrip("/")

    def get_clip(self, clip_id: str) -> dict | None:
        response = self._get("/clips", {"id": clip_id})
        try:
            body = response.json()
        except ValueError as exc:
            raise StrategyFailed("catalog returned invalid JSON") from exc
        if not isinstance(body, dict):
            raise StrategyFailed("catalog returned an unexpected response")
        data = body.get("data") or []
        if not isinstance(data, list):
            raise StrategyFailed("catalog returned an unexpected response")
        if data and isinstance(data[0], dict):
            return data[0]
        return None

    def _get(self, path: str, params: dict) -> httpx.Response:
        url = f"{self.api_url}{path}"
        response = self.http.get(url, params=params, headers=self.credentials.headers())
        if response.status_code == 401:
            # Token revoked upstream before its declared expiry.
            self.credentials.invalidate()
            response = self.http.get(url, params=params, headers=self.credentials.headers())
        if response.is_error:
            raise StrategyFailed(f"catalog lookup returned HTTP {response.status_code}")
        return response


class DirectUrlStrategy(UrlStrategy):
    name = "direct"

    def __init__(self, http, catalog: CatalogClient | None = None, referer=None):
        super().__init__(http, referer)
        self.catalog = catalog

    def candidates(self, clip: ClipSource) -> list[str]:
        urls = list(clip.candidate_urls)
        if not urls and not clip.thumbnail_url and self.catalog is not None:
            record = self.catalog.get_clip(clip.clip_id)
            if record:
                clip.thumbnail_url = record.get("thumbnail_url")
        derived = clip.thumbnail_video_url()
        if derived and derived not in urls:
            urls.append(derived)
        return urls


# ── 2. GraphQL ────────────────────────────────────────────────────


def select_quality(qualities: list[dict]) -> dict | None:
    """Pick 1080, else 720, else the first entry (upstream order)."""
    qualities = [q for q in qualities if isinstance(q, dict)]
    if not qualities:
        return None
    for label in QUALITY_PREFERENCE:
        for q in qualities:
            if str(q.get("quality")) == label:
                return q
    return qualities[0]


class GraphQLStrategy(UrlStrategy):
    name = "graphql"

    def __init__(self, http, gql_url: str, client_id: str, referer=None):
        super().__init__(http, referer)
        self.gql_url = gql_url
        self.client_id = client_id

    def candidates(self, clip: ClipSource) -> list[str]:
        response = self.http.post(
            self.gql_url,
            json={"query": CLIP_QUERY, "variables": {"slug": clip.clip_id}},
            headers={"Client-ID": self.client_id, "User-Agent": BROWSER_UA},
        )
        if response.is_error:
            raise StrategyFailed(f"GraphQL returned HTTP {response.status_code}")
        try:
            body = response.json()
        except ValueError as exc:
            raise StrategyFailed("GraphQL returned invalid JSON") from exc

        data = body.get("data") if isinstance(body, dict) else None
        clip_data = data.get("clip") if isinstance(data, dict) else None
        qualities = clip_data.get("videoQualities") if isinstance(clip_data, dict) else None
        best = select_quality(qualities if isinstance(qualities, list) else [])
        if not best or not best.get("sourceURL"):
            raise StrategyFailed("GraphQL returned no video qualities")
        return [best["sourceURL"]]


# ── 3. Page scrape ────────────────────────────────────────────────


def extract_video_url(html: str) -> str | None:
    """Find a playable mp4 URL in a clip page.

    An inline https://...mp4 URL wins; otherwise the embedded
    window.__clipData blob's first quality option is used.
    """
    match = _MP4_URL_RE.search(html)
    if match:
        return match.group(0)

    for pattern in (_CLIP_DATA_RE, _CLIP_DATA_SHORT_RE):
        match = pattern.search(html)
        if not match:
            continue
        try:
            data = json.loads(match.group(1))
        except ValueError:
            logger.debug("Unparseable clip data blob")
            continue
        options = data.get("quality_options") if isinstance(data, dict) else None
        if not isinstance(options, list) or not options or not isinstance(options[0], dict):
            continue
        if options[0].get("source"):
            return options[0]["source"]
    return None


class PageScrapeStrategy(UrlStrategy):
    name = "page"

    def __init__(self, http, page_url: str, referer=None):
        super().__init__(http, referer)
        self.page_url = page_url.rstrip("/")

    def candidates(self, clip: ClipSource) -> list[str]:
        response = self.http.get(
            f"{self.page_url}/{clip.clip_id}", headers={"User-Agent": BROWSER_UA},
        )
        if response.is_error:
            raise StrategyFailed(f"clip page returned HTTP {response.status_code}")
        url = extract_video_url(response.text)
        if not url:
            raise StrategyFailed("no video URL found in clip page")
        return [url]


# ── 4. Command-line downloader ────────────────────────────────────


def categorize_downloader_error(stderr: str) -> str:
    """Map downloader stderr onto a user-facing message."""
    if "HTTP Error 404" in stderr:
        return "Clip not found. Please check the clip URL."
    if "403" in stderr:
        return "Access forbidden. The clip may be private or geo-restricted."
    if "Unable to download" in stderr:
        return "Unable to download clip. The clip may be unavailable or private."
    tail = [ln for ln in stderr.strip().splitlines() if ln.strip()]
    return f"Failed to download clip: {tail[-1] if tail else 'unknown error'}"


class CliDownloaderStrategy(AcquisitionStrategy):
    name = "yt-dlp"

    def __init__(self, executable: str, page_url: str):
        self.executable = executable
        self.page_url = page_url.rstrip("/")

    def attempt(self, clip: ClipSource, dest: Path) -> AcquisitionAttempt:
        url = f"{self.page_url}/{clip.clip_id}"
        cmd = [
            self.executable,
            "-f", "best[ext=mp4]/best",
            "--no-playlist",
            "-o", str(dest),
            url,
        ]
        logger.debug("Executing: %s", " ".join(cmd))
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as exc:
            return self._failed(f"{self.executable} is not installed or not runnable: {exc}")

        if result.returncode != 0:
            dest.unlink(missing_ok=True)
            return self._failed(categorize_downloader_error(result.stderr or ""))
        if not dest.exists() or dest.stat().st_size == 0:
            return self._failed("download completed but file not found")
        try:
            ensure_video(dest, url)
        except StrategyFailed as exc:
            return self._failed(str(exc))
        return self._ok(url)


def check_downloader(executable: str = "yt-dlp") -> str | None:
    """Installed downloader version, or None if unavailable."""
    try:
        result = subprocess.run([executable, "--version"], capture_output=True, text=True)
    except OSError:
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def default_strategies(settings, http: httpx.Client, credentials=None) -> list[AcquisitionStrategy]:
    """The standard fallback chain, in order."""
    referer = settings.clip_page_url.rstrip("/") + "/"
    catalog = None
    if credentials is not None and credentials.configured:
        catalog = CatalogClient(http, credentials, settings.api_url)
    return [
        DirectUrlStrategy(http, catalog=catalog, referer=referer),
        GraphQLStrategy(http, settings.gql_url, settings.gql_client_id, referer=referer),
        PageScrapeStrategy(http, settings.clip_page_url, referer=referer),
        CliDownloaderStrategy(settings.ytdlp_path, settings.clip_page_url),
    ]
