"""Domain models for players, sessions and town directory entries."""

from __future__ import annotations

from dataclasses import dataclass, field

from .security import generate_id


ROTATIONS = ("front", "back", "left", "right")


@dataclass(frozen=True)
class UserLocation:
    x: float = 0.0
    y: float = 0.0
    rotation: str = "front"
    moving: bool = False
    conversation_label: str | None = None


@dataclass(frozen=True)
class SongData:
    display_title: str
    uris: tuple[str, ...]
    progress: int = 0

    def restarted(self) -> SongData:
        """Return a copy of this song positioned at the start of the track."""
        return SongData(display_title=self.display_title, uris=self.uris, progress=0)


@dataclass(frozen=True)
class PlaybackState:
    is_playing: bool


@dataclass(eq=False)
class Player:
    """A participant in a town.

    Players compare by identity; two players with the same name are distinct.
    `active_conversation_area_label` is a lookup key into the owning town's
    conversation areas and may go stale once that area is removed.
    """

    user_name: str
    id: str = field(default_factory=generate_id)
    location: UserLocation = field(default_factory=UserLocation)
    active_conversation_area_label: str | None = None
    song: SongData | None = None


@dataclass(frozen=True)
class PlayerSession:
    player: Player
    session_token: str
    video_token: str


@dataclass(frozen=True)
class ChatMessage:
    author: str
    sid: str
    body: str
    date_created: str


@dataclass(frozen=True)
class TownSummary:
    town_id: str
    friendly_name: str
    is_publicly_listed: bool
    current_occupancy: int
    maximum_occupancy: int
