from typing import Any, Dict, List, Optional

import httpx

from audiox.config.settings import LASTFM_BASE_URL
from audiox.errors import NotFound, ServiceUnavailable, UpstreamError, UpstreamRateLimited


# Last.fm error codes, see https://www.last.fm/api/errorcodes
LASTFM_INVALID_PARAMETERS = 6
LASTFM_RATE_LIMIT = 29


class LastFMAPIError(UpstreamError):
    """Last.fm answered with an ``{"error": code, "message": ...}`` payload."""

    def __init__(self, code: int, message: str):
        super().__init__(f"Last.fm error {code}: {message}")
        self.code = code


class LastFMClient:
    def __init__(self, client: httpx.AsyncClient, api_key: Optional[str], base_url: str = LASTFM_BASE_URL):
        self.client = client
        self.api_key = api_key
        self.base_url = base_url

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def _call(self, method: str, **params) -> Dict[str, Any]:
        if not self.api_key:
            raise ServiceUnavailable("Last.fm API key not configured")

        query = {
            'method': method,
            'api_key': self.api_key,
            'format': 'json',
        }
        query.update(params)

        try:
            response = await self.client.get(self.base_url, params=query)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Last.fm request failed: {exc}") from exc

        if response.status_code == 429:
            raise UpstreamRateLimited("Last.fm rate limit hit")

        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamError(f"Last.fm returned invalid JSON (HTTP {response.status_code})") from exc

        # Last.fm reports most failures in the body, sometimes with a 200.
        if isinstance(data, dict) and 'error' in data:
            code = int(data.get('error') or 0)
            if code == LASTFM_RATE_LIMIT:
                raise UpstreamRateLimited("Last.fm rate limit hit")
            raise LastFMAPIError(code, str(data.get('message', '')))
        if response.status_code >= 400:
            raise UpstreamError(f"Last.fm responded with HTTP {response.status_code}")
        return data

    async def get_artist_info(self, artist: str) -> Optional[Dict]:
        """artist.getinfo: bio, tags and a few similar artists."""
        data = await self._call('artist.getinfo', artist=artist)
        return data.get('artist')

    async def get_top_albums(self, artist: str, limit: int = 5) -> List[Dict]:
        data = await self._call('artist.gettopalbums', artist=artist, limit=limit)
        return as_list((data.get('topalbums') or {}).get('album'))

    async def search_artist(self, query: str) -> Dict:
        """artist.search, returned untouched."""
        return await self._call('artist.search', artist=query)

    async def get_track_info(self, artist: str, track: str) -> Dict:
        try:
            data = await self._call('track.getInfo', artist=artist, track=track)
        except LastFMAPIError as exc:
            if exc.code == LASTFM_INVALID_PARAMETERS:
                raise NotFound("Track not found", summary="Track not found") from exc
            raise

        if not data.get('track'):
            raise NotFound("Track not found", summary="Track not found")
        return data['track']


def as_list(value: Any) -> List:
    """Last.fm collapses one-element lists into a bare object."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def largest_image(images: Any) -> Optional[str]:
    # Image lists run small -> mega; take the biggest non-empty one.
    for image in reversed(as_list(images)):
        url = image.get('#text') if isinstance(image, dict) else None
        if url:
            return url
    return None


def tag_names(artist_info: Dict, limit: int = 5) -> List[str]:
    tags = as_list((artist_info.get('tags') or {}).get('tag'))
    return [tag['name'] for tag in tags[:limit] if tag.get('name')]
