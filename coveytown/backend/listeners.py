"""Listener contract for town events and the fan-out helper."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Protocol

from .areas import ConversationArea
from .models import ChatMessage, Player


logger = logging.getLogger(__name__)


class TownListener(Protocol):
    def on_player_joined(self, player: Player) -> None:
        """A player was admitted to the town."""

    def on_player_moved(self, player: Player) -> None:
        """A player's location was updated."""

    def on_player_disconnected(self, player: Player) -> None:
        """A player's session ended."""

    def on_player_song_updated(self, player: Player) -> None:
        """A player's now-playing track changed."""

    def on_town_destroyed(self) -> None:
        """The town is closing; no further events follow."""

    def on_conversation_area_updated(self, area: ConversationArea) -> None:
        """An area was created or its occupants changed."""

    def on_conversation_area_destroyed(self, area: ConversationArea) -> None:
        """An area lost its last occupant and was removed."""

    def on_chat_message(self, message: ChatMessage) -> None:
        """A chat message was sent in the town."""


def notify_listeners(listeners: Iterable[TownListener], event: str, *args: Any) -> None:
    """Deliver `event` to every listener, isolating failures per listener."""
    for listener in list(listeners):
        try:
            getattr(listener, event)(*args)
        except Exception:
            logger.exception("[TOWNS] Listener %r failed handling %s", listener, event)
