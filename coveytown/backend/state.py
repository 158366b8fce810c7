"""State builders for the JSON snapshots sent to clients."""

from __future__ import annotations

from typing import Any

from .areas import ConversationArea
from .controller import TownController
from .models import ChatMessage, Player, PlayerSession, SongData, TownSummary, UserLocation


def location_to_dict(location: UserLocation) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "x": location.x,
        "y": location.y,
        "rotation": location.rotation,
        "moving": location.moving,
    }
    if location.conversation_label is not None:
        payload["conversationLabel"] = location.conversation_label
    return payload


def song_to_dict(song: SongData | None) -> dict[str, Any] | None:
    if song is None:
        return None
    return {
        "displayTitle": song.display_title,
        "uris": list(song.uris),
        "progress": song.progress,
    }


def player_to_dict(player: Player) -> dict[str, Any]:
    return {
        "id": player.id,
        "userName": player.user_name,
        "location": location_to_dict(player.location),
        "activeConversationAreaLabel": player.active_conversation_area_label,
        "song": song_to_dict(player.song),
    }


def area_to_dict(area: ConversationArea) -> dict[str, Any]:
    box = area.bounding_box
    return {
        "label": area.label,
        "topic": area.topic,
        "boundingBox": {"x": box.x, "y": box.y, "width": box.width, "height": box.height},
        "occupantsByID": list(area.occupants_by_id),
    }


def chat_message_to_dict(message: ChatMessage) -> dict[str, Any]:
    return {
        "author": message.author,
        "sid": message.sid,
        "body": message.body,
        "dateCreated": message.date_created,
    }


def town_summary_to_dict(summary: TownSummary) -> dict[str, Any]:
    return {
        "coveyTownID": summary.town_id,
        "friendlyName": summary.friendly_name,
        "currentOccupancy": summary.current_occupancy,
        "maximumOccupancy": summary.maximum_occupancy,
    }


def build_join_response(controller: TownController, session: PlayerSession) -> dict[str, Any]:
    """Return the payload a client needs to enter the town it just joined."""
    return {
        "coveyUserID": session.player.id,
        "coveySessionToken": session.session_token,
        "providerVideoToken": session.video_token,
        "currentPlayers": [player_to_dict(player) for player in controller.players],
        "friendlyName": controller.friendly_name,
        "isPubliclyListed": controller.is_publicly_listed,
        "conversationAreas": [area_to_dict(area) for area in controller.conversation_areas],
    }
