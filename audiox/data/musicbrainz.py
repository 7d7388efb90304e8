from typing import Dict, List, Optional

import httpx

from audiox.config.settings import MUSICBRAINZ_API_URL, MUSICBRAINZ_USER_AGENT
from audiox.data.http import request_json

RECORDING_INCLUDES = "artist-credits+releases+work-rels+artist-rels"


class MusicBrainzClient:
    def __init__(self, client: httpx.AsyncClient, base_url: str = MUSICBRAINZ_API_URL):
        self.client = client
        self.base_url = base_url
        # MusicBrainz rejects anonymous clients.
        self.headers = {"User-Agent": MUSICBRAINZ_USER_AGENT}

    async def _get(self, endpoint: str, params: Dict) -> Dict:
        params = dict(params)
        params["fmt"] = "json"
        return await request_json(
            self.client,
            "GET",
            f"{self.base_url}/{endpoint}",
            service="MusicBrainz",
            params=params,
            headers=self.headers,
        )

    async def search_recording(self, artist: str, track: str, limit: int = 1) -> List[Dict]:
        query = f'artist:"{artist}" AND recording:"{track}"'
        data = await self._get("recording/", {"query": query, "limit": limit})
        return data.get("recordings") or []

    async def get_recording(self, recording_id: str) -> Dict:
        return await self._get(f"recording/{recording_id}", {"inc": RECORDING_INCLUDES})


def credited_artist(recording: Dict, fallback: str) -> str:
    credits: Optional[List[Dict]] = recording.get("artist-credit")
    if credits:
        return ", ".join(credit.get("name", "") for credit in credits)
    return fallback
