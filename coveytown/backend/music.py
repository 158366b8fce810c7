"""Music-streaming integration: adapter contract, Spotify client and an in-memory fake."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from .models import PlaybackState, Player, SongData


logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.spotify.com/v1"


class MalformedMusicTokenError(ValueError):
    """Raised when a linking credential cannot be parsed."""


@dataclass(frozen=True)
class SpotifyToken:
    access_token: str
    expiry: float | None = None


def parse_music_token(raw_token: str) -> SpotifyToken:
    """Parse a JSON credential of the form {"access_token": ..., "expiry": ...}."""
    try:
        payload = json.loads(raw_token)
    except (TypeError, ValueError) as exc:
        raise MalformedMusicTokenError(f'Error parsing token "{raw_token}"') from exc
    if not isinstance(payload, dict):
        raise MalformedMusicTokenError(f'Error parsing token "{raw_token}"')

    access_token = payload.get("access_token")
    if not isinstance(access_token, str) or access_token == "":
        raise MalformedMusicTokenError("Token is missing access_token")

    expiry = payload.get("expiry")
    if expiry is not None and (isinstance(expiry, bool) or not isinstance(expiry, (int, float))):
        raise MalformedMusicTokenError("Token expiry must be numeric")
    return SpotifyToken(access_token=access_token, expiry=expiry)


class MusicSyncAdapter(Protocol):
    async def start_playback(self, town_id: str, player: Player, song: SongData) -> bool:
        """Start song on the player's device; report failure as False, never raise."""

    async def get_current_track(self, town_id: str, player: Player) -> SongData | None:
        """Return the player's currently playing track, if any."""

    async def get_playback_state(self, town_id: str, player: Player) -> PlaybackState | None:
        """Return whether the player's device is playing, if known."""

    def link_player(self, town_id: str, player: Player, raw_token: str) -> None:
        """Associate a raw credential with a player; raise MalformedMusicTokenError if unparseable."""

    def unlink_player(self, town_id: str, player: Player) -> None:
        """Forget the player's credential."""

    def register_town(self, town_id: str) -> None:
        """Prepare bookkeeping for a new town."""

    def unregister_town(self, town_id: str) -> None:
        """Drop all bookkeeping for a town."""


class _TokenBook:
    def __init__(self) -> None:
        self._towns: dict[str, dict[str, SpotifyToken]] = {}

    def register_town(self, town_id: str) -> None:
        self._towns.setdefault(town_id, {})

    def unregister_town(self, town_id: str) -> None:
        self._towns.pop(town_id, None)

    def link_player(self, town_id: str, player: Player, raw_token: str) -> None:
        token = parse_music_token(raw_token)
        tokens = self._towns.get(town_id)
        if tokens is None:
            logger.warning("[MUSIC] Cannot link player %s: town %s is not registered", player.id, town_id)
            return
        tokens[player.id] = token

    def unlink_player(self, town_id: str, player: Player) -> None:
        self._towns.get(town_id, {}).pop(player.id, None)

    def token_for(self, town_id: str, player: Player) -> SpotifyToken | None:
        return self._towns.get(town_id, {}).get(player.id)


class SpotifyMusicSync(_TokenBook):
    """Talks to the Spotify Web API on behalf of linked players."""

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        timeout_s: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__()
        self._client = client if client is not None else httpx.AsyncClient(base_url=api_url, timeout=timeout_s)

    async def aclose(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _headers(token: SpotifyToken) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token.access_token}",
            "Content-Type": "application/json",
        }

    async def _get_json(self, path: str, town_id: str, player: Player) -> dict[str, Any] | None:
        token = self.token_for(town_id, player)
        if token is None:
            return None
        try:
            response = await self._client.get(path, headers=self._headers(token))
            response.raise_for_status()
        except (httpx.HTTPError, RuntimeError) as exc:
            logger.warning("[MUSIC] GET %s failed for player %s: %s", path, player.id, exc)
            return None
        if response.status_code == 204 or not response.content:
            return None
        try:
            payload = response.json()
        except ValueError:
            logger.warning("[MUSIC] GET %s returned a non-JSON body for player %s", path, player.id)
            return None
        return payload if isinstance(payload, dict) else None

    async def get_user_id(self, town_id: str, player: Player) -> str | None:
        payload = await self._get_json("/me", town_id, player)
        if payload is None:
            return None
        user_id = payload.get("id")
        return user_id if isinstance(user_id, str) else None

    async def get_current_track(self, town_id: str, player: Player) -> SongData | None:
        payload = await self._get_json("/me/player/currently-playing", town_id, player)
        if payload is None or not payload.get("item"):
            return None
        item = payload["item"]
        try:
            title = item["name"]
            artist = item["album"]["artists"][0]["name"]
            uri = item["uri"]
        except (KeyError, IndexError, TypeError):
            logger.warning("[MUSIC] Unexpected currently-playing payload for player %s", player.id)
            return None
        return SongData(
            display_title=f"{title} by {artist}",
            uris=(uri,),
            progress=int(payload.get("progress_ms") or 0),
        )

    async def get_playback_state(self, town_id: str, player: Player) -> PlaybackState | None:
        payload = await self._get_json("/me/player", town_id, player)
        if payload is None or not payload.get("item"):
            return None
        return PlaybackState(is_playing=bool(payload.get("is_playing")))

    async def start_playback(self, town_id: str, player: Player, song: SongData) -> bool:
        token = self.token_for(town_id, player)
        if token is None:
            logger.info("[MUSIC] Player %s has no linked account", player.id)
            return False
        try:
            response = await self._client.put(
                "/me/player/play",
                json={"uris": list(song.uris), "position_ms": song.progress},
                headers=self._headers(token),
            )
            response.raise_for_status()
        except (httpx.HTTPError, RuntimeError) as exc:
            logger.warning("[MUSIC] Playback request failed for player %s: %s", player.id, exc)
            return False
        return True


class InMemoryMusicSync(_TokenBook):
    """Scriptable stand-in for a streaming service.

    Tracks and playback states are keyed by player id. Players listed in
    `failing_players` raise from the query methods, which lets callers
    exercise their failure isolation.
    """

    def __init__(self, playback_succeeds: bool = True) -> None:
        super().__init__()
        self.playback_succeeds = playback_succeeds
        self.current_tracks: dict[str, SongData] = {}
        self.playback_states: dict[str, PlaybackState] = {}
        self.failing_players: set[str] = set()
        self.playback_requests: list[tuple[str, str, SongData]] = []
        self.track_queries: list[str] = []
        self.state_queries: list[str] = []

    def registered_towns(self) -> list[str]:
        return list(self._towns)

    async def start_playback(self, town_id: str, player: Player, song: SongData) -> bool:
        self.playback_requests.append((town_id, player.id, song))
        if not self.playback_succeeds:
            return False
        self.current_tracks[player.id] = song
        self.playback_states[player.id] = PlaybackState(is_playing=True)
        return True

    async def get_current_track(self, town_id: str, player: Player) -> SongData | None:
        self.track_queries.append(player.id)
        if player.id in self.failing_players:
            raise RuntimeError(f"music service unavailable for {player.id}")
        return self.current_tracks.get(player.id)

    async def get_playback_state(self, town_id: str, player: Player) -> PlaybackState | None:
        self.state_queries.append(player.id)
        if player.id in self.failing_players:
            raise RuntimeError(f"music service unavailable for {player.id}")
        return self.playback_states.get(player.id)
