"""Request handlers: validate a request, delegate to the registry, wrap the outcome."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .areas import ConversationArea
from .models import Player
from .controller import TownClosedError
from .music import MalformedMusicTokenError, parse_music_token
from .state import build_join_response, town_summary_to_dict
from .store import TownStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResponseEnvelope:
    is_ok: bool
    message: str | None = None
    response: dict[str, Any] | None = None


async def town_join_handler(
    store: TownStore,
    user_name: str,
    town_id: str,
    music_token: str | None = None,
) -> ResponseEnvelope:
    """Admit a new player to a town.

    The returned session token is what the client presents when it opens its
    event socket. A music credential, when supplied, is validated before the
    player is admitted so a bad credential never leaves a half-joined player.
    """
    controller = store.get_controller_for_town(town_id)
    if controller is None:
        return ResponseEnvelope(is_ok=False, message="Error: No such town")

    if music_token:
        try:
            parse_music_token(music_token)
        except MalformedMusicTokenError:
            return ResponseEnvelope(is_ok=False, message="Error: Unable to parse music session token")

    player = Player(user_name=user_name)
    try:
        session = await controller.add_player(player)
    except TownClosedError:
        return ResponseEnvelope(is_ok=False, message="Error: No such town")
    except Exception:
        logger.exception("[TOWNS] Unable to admit player to town %s", town_id)
        return ResponseEnvelope(is_ok=False, message="Error: Unable to obtain a video token for this town")

    if music_token:
        store.music.link_player(town_id, player, music_token)

    return ResponseEnvelope(is_ok=True, response=build_join_response(controller, session))


def town_list_handler(store: TownStore) -> ResponseEnvelope:
    return ResponseEnvelope(
        is_ok=True,
        response={"towns": [town_summary_to_dict(summary) for summary in store.list_towns()]},
    )


def town_create_handler(store: TownStore, friendly_name: str, is_publicly_listed: bool) -> ResponseEnvelope:
    if friendly_name == "":
        return ResponseEnvelope(is_ok=False, message="FriendlyName must be specified")
    controller = store.create_town(friendly_name, is_publicly_listed)
    return ResponseEnvelope(
        is_ok=True,
        response={
            "coveyTownID": controller.town_id,
            "coveyTownPassword": controller.town_update_password,
        },
    )


async def town_delete_handler(store: TownStore, town_id: str, town_update_password: str) -> ResponseEnvelope:
    success = await store.delete_town(town_id, town_update_password)
    return ResponseEnvelope(
        is_ok=success,
        response={},
        message=None if success else "Invalid password. Please double check your town update password.",
    )


def town_update_handler(
    store: TownStore,
    town_id: str,
    town_update_password: str,
    friendly_name: str | None = None,
    is_publicly_listed: bool | None = None,
) -> ResponseEnvelope:
    success = store.update_town(town_id, town_update_password, friendly_name, is_publicly_listed)
    return ResponseEnvelope(
        is_ok=success,
        response={},
        message=None
        if success
        else "Invalid password or update values specified. Please double check your town update password.",
    )


async def conversation_area_create_handler(
    store: TownStore,
    town_id: str,
    session_token: str,
    area: ConversationArea,
) -> ResponseEnvelope:
    failure = f"Unable to create conversation area {area.label} with topic {area.topic}"
    controller = store.get_controller_for_town(town_id)
    if controller is None or controller.get_session_by_token(session_token) is None:
        return ResponseEnvelope(is_ok=False, response={}, message=failure)

    success = await controller.add_conversation_area(area)
    return ResponseEnvelope(is_ok=success, response={}, message=None if success else failure)
