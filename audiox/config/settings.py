import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

SERVICE_NAME = "audio-x-backend"
SERVICE_VERSION = "1.0.0"

LASTFM_BASE_URL = "https://ws.audioscrobbler.com/2.0/"
SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
SPOTIFY_API_URL = "https://api.spotify.com/v1"
MUSICBRAINZ_API_URL = "https://musicbrainz.org/ws/2"
MUSICBRAINZ_USER_AGENT = "AudioX/1.0.0 (https://audio-x.onrender.com)"

TOKEN_EXPIRY_MARGIN_MS = 60_000
LIST_FIELD_LIMIT = 5


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(float(raw))


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _env_str(name: str) -> Optional[str]:
    value = (os.getenv(name) or "").strip()
    return value or None


@dataclass
class Settings:
    host: str = "0.0.0.0"
    port: int = 3000
    lastfm_api_key: Optional[str] = None
    spotify_client_id: Optional[str] = None
    spotify_client_secret: Optional[str] = None
    http_timeout_sec: float = 10.0
    track_cache_ttl_sec: int = 86400  # 24 hours
    track_cache_max: int = 5000
    redis_host: Optional[str] = None
    redis_port: int = 6379
    redis_db: int = 0
    log_level: str = "INFO"

    @property
    def spotify_configured(self) -> bool:
        return bool(self.spotify_client_id and self.spotify_client_secret)

    @property
    def lastfm_configured(self) -> bool:
        return bool(self.lastfm_api_key)


def load_settings() -> Settings:
    """Build settings from the process environment (and .env, if present)."""
    return Settings(
        host=os.getenv("HOST", "0.0.0.0"),
        port=_env_int("PORT", 3000),
        lastfm_api_key=_env_str("LASTFM_API_KEY"),
        spotify_client_id=_env_str("SPOTIFY_CLIENT_ID"),
        spotify_client_secret=_env_str("SPOTIFY_CLIENT_SECRET"),
        http_timeout_sec=max(1.0, _env_float("HTTP_TIMEOUT_SEC", 10.0)),
        track_cache_ttl_sec=max(30, _env_int("TRACK_CACHE_TTL_SEC", 86400)),
        track_cache_max=max(16, _env_int("TRACK_CACHE_MAX", 5000)),
        redis_host=_env_str("REDIS_HOST"),
        redis_port=_env_int("REDIS_PORT", 6379),
        redis_db=_env_int("REDIS_DB", 0),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )
