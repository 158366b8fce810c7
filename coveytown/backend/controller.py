"""Per-town session controller: players, conversation areas and event fan-out."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from .areas import ConversationArea, find_area_by_label, find_area_containing
from .listeners import TownListener, notify_listeners
from .models import ChatMessage, PlaybackState, Player, PlayerSession, SongData, UserLocation
from .music import MusicSyncAdapter
from .security import generate_id, generate_token
from .video import VideoTokenProvider


logger = logging.getLogger(__name__)


class TownClosedError(RuntimeError):
    """Raised when a player tries to join a town that has been removed."""


class TownController:
    """Owns the state of a single town.

    Every mutating operation holds the town lock for its whole duration,
    including while it awaits the video or music services, so operations on
    the same town never interleave. Listener callbacks run synchronously
    under that lock and must not block.
    """

    def __init__(
        self,
        friendly_name: str,
        is_publicly_listed: bool,
        video: VideoTokenProvider,
        music: MusicSyncAdapter,
        town_id: str | None = None,
        capacity: int = 50,
    ) -> None:
        self.town_id = town_id or generate_id()
        self.friendly_name = friendly_name
        self.is_publicly_listed = is_publicly_listed
        self.town_update_password = generate_token()
        self.capacity = capacity
        self._video = video
        self._music = music
        self._players: list[Player] = []
        self._sessions: list[PlayerSession] = []
        self._conversation_areas: list[ConversationArea] = []
        self._listeners: list[TownListener] = []
        self._subscribed_tokens: set[str] = set()
        self._closed = False
        self._lock = asyncio.Lock()

    @property
    def players(self) -> Sequence[Player]:
        return tuple(self._players)

    @property
    def conversation_areas(self) -> Sequence[ConversationArea]:
        return tuple(self._conversation_areas)

    @property
    def occupancy(self) -> int:
        return len(self._players)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Refuse any further admissions."""
        self._closed = True

    def get_session_by_token(self, session_token: str) -> PlayerSession | None:
        for session in self._sessions:
            if session.session_token == session_token:
                return session
        return None

    async def add_player(self, player: Player) -> PlayerSession:
        async with self._lock:
            if self._closed:
                raise TownClosedError(self.town_id)
            video_token = await self._video.get_token_for_town(self.town_id, player.id)
            if self._closed:
                raise TownClosedError(self.town_id)
            session = PlayerSession(player=player, session_token=generate_token(), video_token=video_token)
            self._sessions.append(session)
            self._players.append(player)
            logger.info("[TOWNS] Player %s joined town %s", player.id, self.town_id)
            self._notify("on_player_joined", player)
            return session

    async def destroy_session(self, session: PlayerSession) -> None:
        async with self._lock:
            if not any(existing is session for existing in self._sessions):
                return
            player = session.player
            self._subscribed_tokens.discard(session.session_token)
            self._leave_active_area(player)
            self._players = [p for p in self._players if p is not player]
            self._sessions = [s for s in self._sessions if s is not session]
            logger.info("[TOWNS] Player %s left town %s", player.id, self.town_id)
            self._notify("on_player_disconnected", player)

    async def update_player_location(self, player: Player, location: UserLocation) -> None:
        async with self._lock:
            if not self._is_member(player):
                return
            if location.conversation_label is not None:
                new_area = find_area_by_label(self._conversation_areas, location.conversation_label)
            else:
                new_area = find_area_containing(self._conversation_areas, location.x, location.y)

            prior_area = find_area_by_label(self._conversation_areas, player.active_conversation_area_label)
            if prior_area is not new_area:
                if prior_area is not None:
                    self._remove_from_area(player, prior_area)
                if new_area is not None:
                    new_area.add_occupant(player.id)
                    self._notify("on_conversation_area_updated", new_area)
            player.active_conversation_area_label = new_area.label if new_area is not None else None

            player.location = location
            self._notify("on_player_moved", player)

    async def add_conversation_area(self, area: ConversationArea) -> bool:
        async with self._lock:
            if find_area_by_label(self._conversation_areas, area.label) is not None:
                return False
            self._conversation_areas.append(area)
            for player in self._players:
                if player.id in area.occupants_by_id:
                    self._leave_active_area(player, keep=area)
                    player.active_conversation_area_label = area.label
            self._notify("on_conversation_area_updated", area)
            return True

    def claim_subscription(self, session: PlayerSession) -> bool:
        """Reserve the single event subscription allowed per live session."""
        if session.session_token in self._subscribed_tokens:
            return False
        if not any(existing is session for existing in self._sessions):
            return False
        self._subscribed_tokens.add(session.session_token)
        return True

    def add_town_listener(self, listener: TownListener) -> None:
        if not any(existing is listener for existing in self._listeners):
            self._listeners.append(listener)

    def remove_town_listener(self, listener: TownListener) -> None:
        self._listeners = [existing for existing in self._listeners if existing is not listener]

    def on_chat_message(self, message: ChatMessage) -> None:
        self._notify("on_chat_message", message)

    async def disconnect_all_players(self) -> None:
        async with self._lock:
            logger.info("[TOWNS] Closing town %s with %d players", self.town_id, len(self._players))
            self._closed = True
            self._notify("on_town_destroyed")
            self._listeners = []
            self._subscribed_tokens = set()
            self._players = []
            self._sessions = []
            self._conversation_areas = []

    async def change_player_song(self, player: Player, song: SongData) -> bool:
        """Ask the music service to play song for player from the beginning.

        The player's song is only replaced, and listeners only notified, once
        the service accepts the request.
        """
        async with self._lock:
            if not self._is_member(player):
                return False
            restarted = song.restarted()
            if not await self._music.start_playback(self.town_id, player, restarted):
                logger.info("[MUSIC] Playback request for player %s was not accepted", player.id)
                return False
            player.song = restarted
            self._notify("on_player_song_updated", player)
            return True

    async def update_player_songs(self) -> None:
        """Refresh every player's now-playing track from the music service."""
        async with self._lock:
            players = list(self._players)
            results = await asyncio.gather(*(self._query_now_playing(player) for player in players))
            for player, (track, state) in zip(players, results):
                if state is not None and state.is_playing and track is not None:
                    player.song = track
                    self._notify("on_player_song_updated", player)
                else:
                    player.song = None

    async def _query_now_playing(self, player: Player) -> tuple[SongData | None, PlaybackState | None]:
        track, state = await asyncio.gather(
            self._music.get_current_track(self.town_id, player),
            self._music.get_playback_state(self.town_id, player),
            return_exceptions=True,
        )
        if isinstance(track, BaseException):
            logger.warning("[MUSIC] Current-track query failed for player %s: %s", player.id, track)
            track = None
        if isinstance(state, BaseException):
            logger.warning("[MUSIC] Playback-state query failed for player %s: %s", player.id, state)
            state = None
        return track, state

    def _is_member(self, player: Player) -> bool:
        return any(existing is player for existing in self._players)

    def _leave_active_area(self, player: Player, keep: ConversationArea | None = None) -> None:
        area = find_area_by_label(self._conversation_areas, player.active_conversation_area_label)
        if area is not None and area is not keep:
            self._remove_from_area(player, area)
        player.active_conversation_area_label = None

    def _remove_from_area(self, player: Player, area: ConversationArea) -> None:
        area.remove_occupant(player.id)
        if area.is_empty:
            self._conversation_areas = [a for a in self._conversation_areas if a is not area]
            self._notify("on_conversation_area_destroyed", area)
        else:
            self._notify("on_conversation_area_updated", area)

    def _notify(self, event: str, *args: object) -> None:
        notify_listeners(self._listeners, event, *args)
