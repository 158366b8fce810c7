"""Backend package for the Covey town service."""

from .areas import BoundingBox, ConversationArea
from .config import TownServiceSettings, load_settings
from .controller import TownController
from .listeners import TownListener
from .models import ChatMessage, PlaybackState, Player, PlayerSession, SongData, UserLocation
from .music import InMemoryMusicSync, MalformedMusicTokenError, MusicSyncAdapter, SpotifyMusicSync
from .store import InMemoryTownStore, TownStore, create_store
from .video import SignedVideoTokenProvider, VideoTokenProvider

__all__ = [
    "BoundingBox",
    "ChatMessage",
    "ConversationArea",
    "create_store",
    "InMemoryMusicSync",
    "InMemoryTownStore",
    "load_settings",
    "MalformedMusicTokenError",
    "MusicSyncAdapter",
    "PlaybackState",
    "Player",
    "PlayerSession",
    "SignedVideoTokenProvider",
    "SongData",
    "SpotifyMusicSync",
    "TownController",
    "TownListener",
    "TownServiceSettings",
    "TownStore",
    "UserLocation",
    "VideoTokenProvider",
]
