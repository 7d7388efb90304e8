import asyncio
import logging
from typing import Awaitable, Dict, List

from audiox.cache.track_cache import TrackCreditsCache, make_key
from audiox.config.settings import LIST_FIELD_LIMIT
from audiox.core.outcome import Outcome, attempt
from audiox.data.lastfm import LastFMClient, as_list, largest_image, tag_names
from audiox.data.musicbrainz import MusicBrainzClient, credited_artist
from audiox.data.spotify import SpotifyClient, first_image
from audiox.errors import NotFound, UpstreamError, UpstreamRateLimited

logger = logging.getLogger(__name__)


class MetadataAggregator:
    """Merges Spotify, Last.fm and MusicBrainz lookups into the app's response shapes."""

    def __init__(
        self,
        spotify: SpotifyClient,
        lastfm: LastFMClient,
        musicbrainz: MusicBrainzClient,
        track_cache: TrackCreditsCache,
    ):
        self.spotify = spotify
        self.lastfm = lastfm
        self.musicbrainz = musicbrainz
        self.track_cache = track_cache

    # Artist info

    async def artist_info(self, name: str) -> Dict:
        result = {
            "name": name,
            "image": None,
            "biography": None,
            "tags": [],
            "spotifyId": None,
            "followers": 0,
            "popularity": 0,
            "similarArtists": [],
            "topAlbums": [],
        }

        spotify_artist = await attempt(self.spotify.search_artist(name), "Spotify artist search")
        self._fold_spotify_artist(result, spotify_artist)

        if self.lastfm.configured:
            info, albums = await asyncio.gather(
                attempt(self.lastfm.get_artist_info(name), "Last.fm artist.getinfo"),
                attempt(self.lastfm.get_top_albums(name, limit=LIST_FIELD_LIMIT), "Last.fm artist.gettopalbums"),
            )
            self._fold_lastfm_info(result, info)
            result["topAlbums"] = [
                {"name": album.get("name"), "image": largest_image(album.get("image"))}
                for album in albums.value_or([])[:LIST_FIELD_LIMIT]
            ]

        if result["similarArtists"]:
            result["similarArtists"] = await self._enrich_similar(result["similarArtists"])

        return result

    @staticmethod
    def _fold_spotify_artist(result: Dict, outcome: Outcome):
        artist = outcome.value_or(None)
        if not artist:
            return
        result["spotifyId"] = artist.get("id")
        result["name"] = artist.get("name") or result["name"]
        result["image"] = first_image(artist.get("images"))
        genres = artist.get("genres") or []
        if genres:
            result["tags"] = genres[:LIST_FIELD_LIMIT]
        result["followers"] = int((artist.get("followers") or {}).get("total") or 0)
        result["popularity"] = int(artist.get("popularity") or 0)

    @staticmethod
    def _fold_lastfm_info(result: Dict, outcome: Outcome):
        info = outcome.value_or(None)
        if not info:
            return
        bio = info.get("bio") or {}
        if bio.get("summary"):
            result["biography"] = bio["summary"]
        if not result["tags"]:
            result["tags"] = tag_names(info, limit=LIST_FIELD_LIMIT)
        similar = as_list((info.get("similar") or {}).get("artist"))
        result["similarArtists"] = [
            {"name": artist.get("name"), "image": largest_image(artist.get("image"))}
            for artist in similar[:LIST_FIELD_LIMIT]
        ]

    async def _enrich_similar(self, similar: List[Dict]) -> List[Dict]:
        """Swap each Last.fm image for a Spotify one when Spotify has it."""

        async def enrich(artist: Dict) -> Dict:
            outcome = await attempt(
                self.spotify.search_artist(artist["name"]),
                f"Spotify image lookup for {artist['name']}",
            )
            match = outcome.value_or(None)
            image = first_image(match.get("images")) if match else None
            return {"name": artist["name"], "image": image or artist["image"]}

        return list(await asyncio.gather(*(enrich(artist) for artist in similar)))

    # Last.fm passthroughs

    async def search_artist(self, query: str) -> Dict:
        if not self.lastfm.configured:
            raise UpstreamError("Last.fm API key not configured", summary="Failed to search artists")
        return await rate_limit_as_failure(self.lastfm.search_artist(query))

    async def track_info(self, artist: str, track: str) -> Dict:
        return await rate_limit_as_failure(self.lastfm.get_track_info(artist, track))

    # Spotify track credits

    async def spotify_track_credits(self, artist: str, track: str) -> Dict:
        key = make_key(artist, track)
        cached = await self.track_cache.aget(key)
        if cached is not None:
            logger.info("Track credits cache hit: %s", key)
            return cached

        found = await self.spotify.search_track(artist, track)
        if not found:
            raise NotFound("Track not found on Spotify", summary="Track not found")

        album_ref = found.get("album") or {}
        album: Dict = {}
        if album_ref.get("id"):
            album = await self.spotify.get_album(album_ref["id"])

        credits = build_track_credits(found, album)
        await self.track_cache.aset(key, credits)
        return credits

    # MusicBrainz credits

    async def musicbrainz_credits(self, artist: str, track: str) -> Dict:
        recordings = await rate_limit_as_failure(self.musicbrainz.search_recording(artist, track))
        if not recordings:
            raise NotFound("Recording not found", summary="Recording not found")

        recording = recordings[0]
        details = await rate_limit_as_failure(self.musicbrainz.get_recording(recording["id"]))

        credits = {
            "title": recording.get("title"),
            "artist": credited_artist(recording, artist),
            "producers": [],
            # TODO: no relation type is mapped to writers yet; lyricist/writer rels live on the linked work.
            "writers": [],
            "composers": [],
        }
        for rel in details.get("relations") or []:
            rel_artist = rel.get("artist")
            if not rel_artist:
                continue
            if rel.get("type") == "producer":
                credits["producers"].append(rel_artist.get("name"))
            elif rel.get("type") == "composer":
                credits["composers"].append(rel_artist.get("name"))
        return credits


async def rate_limit_as_failure(awaitable: Awaitable):
    """Only the Spotify credits route answers 429; elsewhere an upstream rate limit is a plain failure."""
    try:
        return await awaitable
    except UpstreamRateLimited as exc:
        raise UpstreamError(exc.message) from exc


def build_track_credits(track: Dict, album: Dict) -> Dict:
    performers = [a.get("name") for a in track.get("artists") or [] if a.get("name")]
    album_ref = track.get("album") or {}
    copyrights = [c.get("text") for c in album.get("copyrights") or [] if c.get("text")]

    return {
        "title": track.get("name"),
        "artist": ", ".join(performers),
        "album": album.get("name") or album_ref.get("name"),
        "releaseDate": album.get("release_date") or album_ref.get("release_date"),
        "popularity": int(track.get("popularity") or 0),
        "label": album.get("label"),
        "copyrights": copyrights,
        "performers": performers,
        # Spotify's public API exposes no songwriter/producer credits.
        "writer": None,
        "producer": None,
    }
