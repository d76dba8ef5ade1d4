"""Tests for the client-credentials token provider."""

import httpx
import pytest

from clipreel.credentials import ClientCredentialsProvider
from clipreel.errors import CredentialsError

TOKEN_URL = "https://id.example/oauth2/token"


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def _provider(handler, clock=None, client_id="id", client_secret="secret"):
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return ClientCredentialsProvider(
        client_id, client_secret, TOKEN_URL, http, clock=clock or FakeClock(),
    )


def _token_handler(calls, expires_in=3600):
    def handler(request):
        calls.append(request)
        return httpx.Response(
            200, json={"access_token": f"tok{len(calls)}", "expires_in": expires_in},
        )
    return handler


class TestClientCredentialsProvider:
    def test_exchanges_client_credentials(self):
        calls = []
        provider = _provider(_token_handler(calls))
        assert provider.token() == "tok1"
        params = calls[0].url.params
        assert calls[0].method == "POST"
        assert params["grant_type"] == "client_credentials"
        assert params["client_id"] == "id"
        assert params["client_secret"] == "secret"

    def test_caches_until_refresh_margin(self):
        calls, clock = [], FakeClock()
        provider = _provider(_token_handler(calls), clock=clock)
        provider.token()
        clock.now += 3600 - 300 - 1
        assert provider.token() == "tok1"
        clock.now += 2
        assert provider.token() == "tok2"
        assert len(calls) == 2

    def test_invalidate_forces_new_token(self):
        calls = []
        provider = _provider(_token_handler(calls))
        provider.token()
        provider.invalidate()
        assert provider.token() == "tok2"

    def test_headers(self):
        provider = _provider(_token_handler([]))
        headers = provider.headers()
        assert headers["Client-ID"] == "id"
        assert headers["Authorization"] == "Bearer tok1"

    def test_not_configured(self):
        provider = _provider(_token_handler([]), client_secret=None)
        assert not provider.configured
        with pytest.raises(CredentialsError, match="not configured"):
            provider.token()

    def test_rejected_credentials(self):
        provider = _provider(lambda request: httpx.Response(401, json={"message": "no"}))
        with pytest.raises(CredentialsError, match="Invalid catalog credentials"):
            provider.token()

    def test_server_error(self):
        provider = _provider(lambda request: httpx.Response(503))
        with pytest.raises(CredentialsError, match="503"):
            provider.token()

    def test_malformed_response(self):
        provider = _provider(lambda request: httpx.Response(200, json={"expires_in": 10}))
        with pytest.raises(CredentialsError, match="Malformed"):
            provider.token()

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        with pytest.raises(CredentialsError, match="Token request failed"):
            _provider(handler).token()
