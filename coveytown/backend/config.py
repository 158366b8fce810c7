"""Configuration helpers for the town service runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class TownServiceSettings:
    host: str
    port: int
    video_secret: str
    video_token_ttl_s: int
    music_api_url: str
    music_timeout_s: float
    song_poll_interval_s: float
    town_capacity: int
    cors_origins: tuple[str, ...]


def _split_origins(raw: str) -> tuple[str, ...]:
    origins = tuple(origin.strip() for origin in raw.split(",") if origin.strip())
    return origins or ("*",)


def load_settings() -> TownServiceSettings:
    return TownServiceSettings(
        host=os.getenv("COVEYTOWN_HOST", "127.0.0.1"),
        port=int(os.getenv("COVEYTOWN_PORT", "8081")),
        video_secret=os.getenv("COVEYTOWN_VIDEO_SECRET", "dev-video-secret"),
        video_token_ttl_s=int(os.getenv("COVEYTOWN_VIDEO_TOKEN_TTL_S", "3600")),
        music_api_url=os.getenv("COVEYTOWN_MUSIC_API_URL", "https://api.spotify.com/v1"),
        music_timeout_s=float(os.getenv("COVEYTOWN_MUSIC_TIMEOUT_S", "5.0")),
        song_poll_interval_s=float(os.getenv("COVEYTOWN_SONG_POLL_INTERVAL_S", "0")),
        town_capacity=int(os.getenv("COVEYTOWN_TOWN_CAPACITY", "50")),
        cors_origins=_split_origins(os.getenv("COVEYTOWN_CORS_ORIGINS", "*")),
    )
