"""Client-credentials bearer tokens for the catalog API.

One provider is constructed per process (or per engine) and passed to
whatever needs authenticated calls. The token is cached until shortly
before it expires; concurrent download threads share the provider, so
refreshes are serialized with a lock.
"""

import logging
import threading
import time

import httpx

from .errors import CredentialsError

logger = logging.getLogger(__name__)

# Refresh this many seconds before the upstream-declared expiry.
REFRESH_MARGIN = 300


class ClientCredentialsProvider:
    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        token_url: str,
        http: httpx.Client,
        clock=time.monotonic,
        refresh_margin: int = REFRESH_MARGIN,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self._http = http
        self._clock = clock
        self._refresh_margin = refresh_margin
        self._lock = threading.Lock()
        self._token: str | None = None
        self._expires_at: float = 0.0

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def token(self) -> str:
        """Return a valid access token, refreshing if needed."""
        with self._lock:
            if self._token and self._clock() < self._expires_at:
                return self._token
            return self._refresh_locked()

    def refresh(self) -> str:
        """Force a new token exchange."""
        with self._lock:
            return self._refresh_locked()

    def invalidate(self) -> None:
        with self._lock:
            self._token = None
            self._expires_at = 0.0

    def headers(self) -> dict[str, str]:
        return {
            "Client-ID": self.client_id or "",
            "Authorization": f"Bearer {self.token()}",
        }

    def _refresh_locked(self) -> str:
        if not self.configured:
            raise CredentialsError(
                "Catalog credentials not configured. "
                "Set TWITCH_CLIENT_ID and TWITCH_CLIENT_SECRET."
            )

        logger.info("Requesting new catalog access token")
        try:
            response = self._http.post(
                self.token_url,
                params={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "client_credentials",
                },
            )
        except httpx.HTTPError as exc:
            raise CredentialsError(f"Token request failed: {exc}") from exc

        if response.status_code in (400, 401, 403):
            raise CredentialsError(
                "Invalid catalog credentials. "
                "Check TWITCH_CLIENT_ID and TWITCH_CLIENT_SECRET."
            )
        if response.is_error:
            raise CredentialsError(
                f"Token request failed with HTTP {response.status_code}"
            )

        try:
            data = response.json()
            token = data["access_token"]
            expires_in = float(data.get("expires_in", 0))
        except (ValueError, KeyError, TypeError) as exc:
            raise CredentialsError(f"Malformed token response: {exc}") from exc

        self._token = token
        self._expires_at = self._clock() + max(0.0, expires_in - self._refresh_margin)
        return token
