import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx
from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from audiox.cache.track_cache import TrackCreditsCache
from audiox.config.settings import SERVICE_NAME, SERVICE_VERSION, Settings, load_settings
from audiox.core.aggregator import MetadataAggregator
from audiox.data.lastfm import LastFMClient
from audiox.data.musicbrainz import MusicBrainzClient
from audiox.data.spotify import SpotifyClient, SpotifyTokenCache
from audiox.errors import AudioXError, BadRequest

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    clock: Optional[Callable[[], int]] = None,
) -> FastAPI:
    """
    Build the API with its own HTTP pool, token cache and track cache.

    ``transport`` and ``clock`` exist so tests can stand in for the
    upstream services and for wall-clock time.
    """
    settings = settings or load_settings()

    http_client = httpx.AsyncClient(timeout=settings.http_timeout_sec, transport=transport)
    clock_kwargs = {"clock": clock} if clock is not None else {}

    tokens = SpotifyTokenCache(
        http_client,
        settings.spotify_client_id,
        settings.spotify_client_secret,
        **clock_kwargs,
    )
    track_cache = TrackCreditsCache(
        ttl_seconds=settings.track_cache_ttl_sec,
        max_entries=settings.track_cache_max,
        redis_host=settings.redis_host,
        redis_port=settings.redis_port,
        redis_db=settings.redis_db,
        **clock_kwargs,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not settings.lastfm_configured:
            logger.warning("LASTFM_API_KEY not set; Last.fm lookups are disabled")
        if not settings.spotify_configured:
            logger.warning("Spotify credentials not set; Spotify lookups will fail")
        logger.info("Track cache backend: %s", track_cache.backend)
        yield
        await http_client.aclose()

    app = FastAPI(
        title="Audio X Backend",
        description="Artist and track metadata from Spotify, Last.fm and MusicBrainz",
        version=SERVICE_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.track_cache = track_cache
    app.state.aggregator = MetadataAggregator(
        spotify=SpotifyClient(http_client, tokens),
        lastfm=LastFMClient(http_client, settings.lastfm_api_key),
        musicbrainz=MusicBrainzClient(http_client),
        track_cache=track_cache,
    )

    @app.exception_handler(AudioXError)
    async def audiox_error_handler(request: Request, exc: AudioXError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.summary, "message": exc.message},
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    _register_routes(app)
    return app


def get_aggregator(request: Request) -> MetadataAggregator:
    return request.app.state.aggregator


def _require_artist_and_track(artist: Optional[str], track: Optional[str]):
    artist = (artist or "").strip()
    track = (track or "").strip()
    if not artist or not track:
        raise BadRequest("Artist and track parameters are required", summary="Artist and track parameters are required")
    return artist, track


def _register_routes(app: FastAPI):

    @app.get("/", response_class=PlainTextResponse)
    async def root():
        return "Audio X Backend is running"

    @app.get("/health")
    async def health(request: Request):
        state = request.app.state
        return {
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "spotify_configured": state.settings.spotify_configured,
            "lastfm_configured": state.settings.lastfm_configured,
            "cache": await state.track_cache.astats(),
        }

    @app.get("/api/artist")
    @app.get("/api/artist/")
    @app.get("/api/artist/{name}")
    async def artist_info(name: str = "", aggregator: MetadataAggregator = Depends(get_aggregator)):
        name = name.strip()
        if not name:
            raise BadRequest("Artist name is required", summary="Artist name is required")
        try:
            return {"artist": await aggregator.artist_info(name)}
        except AudioXError:
            raise
        except Exception as e:
            logger.exception("Error fetching artist info for %s", name)
            return JSONResponse(
                status_code=500,
                content={"error": "Failed to fetch artist info", "message": str(e)},
            )

    @app.get("/api/search/artist/{query}")
    async def search_artist(query: str, aggregator: MetadataAggregator = Depends(get_aggregator)):
        return await aggregator.search_artist(query)

    @app.get("/api/track")
    async def track_info(
        artist: Optional[str] = Query(None, description="Artist name"),
        track: Optional[str] = Query(None, description="Track title"),
        aggregator: MetadataAggregator = Depends(get_aggregator),
    ):
        artist, track = _require_artist_and_track(artist, track)
        return await aggregator.track_info(artist, track)

    @app.get("/api/spotify/trackinfo")
    async def spotify_track_info(
        artist: Optional[str] = Query(None, description="Artist name"),
        track: Optional[str] = Query(None, description="Track title"),
        aggregator: MetadataAggregator = Depends(get_aggregator),
    ):
        artist, track = _require_artist_and_track(artist, track)
        return await aggregator.spotify_track_credits(artist, track)

    @app.get("/api/musicbrainz")
    async def musicbrainz_credits(
        artist: Optional[str] = Query(None, description="Artist name"),
        track: Optional[str] = Query(None, description="Track title"),
        aggregator: MetadataAggregator = Depends(get_aggregator),
    ):
        artist, track = _require_artist_and_track(artist, track)
        return await aggregator.musicbrainz_credits(artist, track)

