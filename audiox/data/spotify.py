import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import httpx

from audiox.config.settings import SPOTIFY_API_URL, SPOTIFY_TOKEN_URL, TOKEN_EXPIRY_MARGIN_MS
from audiox.data.http import request_json
from audiox.errors import UpstreamAuthError, UpstreamError

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class AccessToken:
    value: str
    expires_at_ms: int


class SpotifyTokenCache:
    """
    Holds the client-credentials access token for the Spotify Web API.

    A cached token is handed out while ``now < expires_at_ms``; the expiry
    already has a one minute margin subtracted. Refresh is single-flight:
    callers racing at an expiry boundary share one exchange.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        client_id: Optional[str],
        client_secret: Optional[str],
        token_url: str = SPOTIFY_TOKEN_URL,
        clock: Callable[[], int] = _now_ms,
    ):
        self.client = client
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self.clock = clock
        self._token: Optional[AccessToken] = None
        self._lock = asyncio.Lock()
        self.exchange_count = 0

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @property
    def token(self) -> Optional[AccessToken]:
        return self._token

    def _valid(self) -> Optional[str]:
        if self._token is not None and self.clock() < self._token.expires_at_ms:
            return self._token.value
        return None

    async def get_token(self) -> str:
        cached = self._valid()
        if cached:
            return cached

        async with self._lock:
            # Another caller may have refreshed while we waited.
            cached = self._valid()
            if cached:
                return cached
            self._token = await self._exchange()
            return self._token.value

    def invalidate(self):
        self._token = None

    async def _exchange(self) -> AccessToken:
        if not self.configured:
            raise UpstreamAuthError("Spotify client credentials are not configured")

        self.exchange_count += 1
        try:
            data = await request_json(
                self.client,
                "POST",
                self.token_url,
                service="Spotify accounts",
                data={"grant_type": "client_credentials"},
                auth=httpx.BasicAuth(self.client_id, self.client_secret),
            )
        except UpstreamError as exc:
            logger.error("Error getting Spotify token: %s", exc.message)
            raise UpstreamAuthError(exc.message) from exc

        value = data.get("access_token")
        if not value:
            raise UpstreamAuthError("Spotify token response had no access_token")
        expires_in = int(data.get("expires_in", 3600))
        expires_at = self.clock() + expires_in * 1000 - TOKEN_EXPIRY_MARGIN_MS
        logger.info("Refreshed Spotify access token (expires in %ss)", expires_in)
        return AccessToken(value=value, expires_at_ms=expires_at)


class SpotifyClient:
    def __init__(
        self,
        client: httpx.AsyncClient,
        tokens: SpotifyTokenCache,
        base_url: str = SPOTIFY_API_URL,
    ):
        self.client = client
        self.tokens = tokens
        self.base_url = base_url

    async def _get(self, path: str, params: Optional[Dict] = None) -> Dict:
        token = await self.tokens.get_token()
        return await request_json(
            self.client,
            "GET",
            f"{self.base_url}{path}",
            service="Spotify",
            params=params,
            headers={"Authorization": f"Bearer {token}"},
        )

    async def search_artist(self, name: str) -> Optional[Dict]:
        """Top Spotify match for an artist name, or None."""
        data = await self._get("/search", {"q": name, "type": "artist", "limit": 1})
        items = (data.get("artists") or {}).get("items") or []
        return items[0] if items else None

    async def search_track(self, artist: str, track: str) -> Optional[Dict]:
        """Top Spotify match for an artist/track pair, or None."""
        query = f"track:{track} artist:{artist}"
        data = await self._get("/search", {"q": query, "type": "track", "limit": 1})
        items = (data.get("tracks") or {}).get("items") or []
        return items[0] if items else None

    async def get_album(self, album_id: str) -> Dict:
        return await self._get(f"/albums/{album_id}")


def first_image(images: Optional[List[Dict]]) -> Optional[str]:
    # Spotify lists images largest first.
    if images:
        return images[0].get("url")
    return None
