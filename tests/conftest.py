"""
Shared fixtures: a scripted stand-in for the upstream APIs and a fake clock.
"""
import httpx
import pytest
from fastapi.testclient import TestClient

from audiox.api.main import create_app
from audiox.config.settings import Settings

START_MS = 1_700_000_000_000


class FakeClock:
    def __init__(self, now_ms: int = START_MS):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int):
        self.now_ms += ms


class FakeUpstream:
    """
    Routes outbound requests by (host, path). Last.fm is routed by its
    ``method`` query parameter since every call shares one path.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []

    def on(self, host, path, handler):
        self.routes[(host, path)] = handler

    def on_lastfm(self, method, handler):
        self.routes[("lastfm", method)] = handler

    def __call__(self, request: httpx.Request):
        self.calls.append(request)
        key = (request.url.host, request.url.path)
        if request.url.host == "ws.audioscrobbler.com":
            key = ("lastfm", request.url.params.get("method"))
        handler = self.routes.get(key)
        if handler is None:
            return httpx.Response(404, json={"error": f"no fake route for {key}"})
        if isinstance(handler, httpx.Response):
            # Canned responses may be served more than once.
            return httpx.Response(handler.status_code, headers=handler.headers, content=handler.content)
        return handler(request)

    def count(self, host, path=None):
        return sum(
            1 for r in self.calls
            if r.url.host == host and (path is None or r.url.path == path)
        )


def token_response(value="tok-1", expires_in=3600):
    return httpx.Response(200, json={"access_token": value, "token_type": "Bearer", "expires_in": expires_in})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def upstream():
    fake = FakeUpstream()
    fake.on("accounts.spotify.com", "/api/token", lambda request: token_response())
    return fake


@pytest.fixture
def settings():
    return Settings(
        lastfm_api_key="lastfm-key",
        spotify_client_id="client-id",
        spotify_client_secret="client-secret",
    )


def build_client(settings, upstream, clock):
    app = create_app(settings, transport=httpx.MockTransport(upstream), clock=clock)
    return TestClient(app)


@pytest.fixture
def client(settings, upstream, clock):
    with build_client(settings, upstream, clock) as test_client:
        yield test_client


@pytest.fixture
def client_without_lastfm(upstream, clock):
    settings = Settings(spotify_client_id="client-id", spotify_client_secret="client-secret")
    with build_client(settings, upstream, clock) as test_client:
        yield test_client
