import asyncio
import json

from coveytown.backend.areas import BoundingBox, ConversationArea
from coveytown.backend.handlers import (
    conversation_area_create_handler,
    town_create_handler,
    town_delete_handler,
    town_join_handler,
    town_list_handler,
    town_update_handler,
)


MUSIC_TOKEN = json.dumps({"access_token": "abc", "expiry": 1})


def _area(label: str = "lounge") -> ConversationArea:
    return ConversationArea(label=label, topic="chat", bounding_box=BoundingBox(x=0, y=0, width=10, height=10))


def test_create_handler_rejects_empty_name(store) -> None:
    result = town_create_handler(store, "", True)

    assert result.is_ok is False
    assert result.message == "FriendlyName must be specified"
    assert store.town_ids() == []


def test_create_and_list_handlers(store) -> None:
    created = town_create_handler(store, "Town", True)
    town_create_handler(store, "Secret", False)

    listed = town_list_handler(store)

    assert created.is_ok is True
    assert created.response is not None
    assert created.response["coveyTownPassword"]
    assert [town["coveyTownID"] for town in listed.response["towns"]] == [created.response["coveyTownID"]]


async def test_join_handler_reports_unknown_town(store) -> None:
    result = await town_join_handler(store, "alice", "missing")

    assert result.is_ok is False
    assert result.message == "Error: No such town"


async def test_join_handler_admits_player_and_links_music(store, music) -> None:
    controller = store.create_town("Town", True)

    result = await town_join_handler(store, "alice", controller.town_id, music_token=MUSIC_TOKEN)

    assert result.is_ok is True
    payload = result.response
    session = controller.get_session_by_token(payload["coveySessionToken"])
    assert session is not None
    assert session.player.id == payload["coveyUserID"]
    assert music.token_for(controller.town_id, session.player).access_token == "abc"


async def test_join_handler_rejects_malformed_music_token_before_admitting(store) -> None:
    controller = store.create_town("Town", True)

    result = await town_join_handler(store, "alice", controller.town_id, music_token="{not json")

    assert result.is_ok is False
    assert result.message == "Error: Unable to parse music session token"
    assert controller.players == ()


async def test_join_handler_reports_video_failure_without_admitting(store, video) -> None:
    controller = store.create_town("Town", True)
    video.fail_with = RuntimeError("video down")

    result = await town_join_handler(store, "alice", controller.town_id)

    assert result.is_ok is False
    assert controller.players == ()


async def test_delete_handler_reports_bad_password(store) -> None:
    controller = store.create_town("Town", True)

    failed = await town_delete_handler(store, controller.town_id, "nope")
    deleted = await town_delete_handler(store, controller.town_id, controller.town_update_password)

    assert failed.is_ok is False
    assert failed.message == "Invalid password. Please double check your town update password."
    assert deleted.is_ok is True
    assert deleted.message is None


def test_update_handler_reports_bad_password(store) -> None:
    controller = store.create_town("Town", True)

    failed = town_update_handler(store, controller.town_id, "nope", friendly_name="X")
    updated = town_update_handler(store, controller.town_id, controller.town_update_password, friendly_name="X")

    assert failed.is_ok is False
    assert failed.message.startswith("Invalid password or update values specified.")
    assert updated.is_ok is True
    assert controller.friendly_name == "X"


async def test_conversation_area_handler_requires_valid_session(store) -> None:
    controller = store.create_town("Town", True)
    joined = await town_join_handler(store, "alice", controller.town_id)
    token = joined.response["coveySessionToken"]

    rejected = await conversation_area_create_handler(store, controller.town_id, "bogus", _area())
    created = await conversation_area_create_handler(store, controller.town_id, token, _area())
    duplicate = await conversation_area_create_handler(store, controller.town_id, token, _area())

    assert rejected.is_ok is False
    assert rejected.message == "Unable to create conversation area lounge with topic chat"
    assert created.is_ok is True
    assert duplicate.is_ok is False
    assert [area.label for area in controller.conversation_areas] == ["lounge"]


async def test_join_racing_town_removal_reports_missing_town(store, video) -> None:
    controller = store.create_town("Town", True)
    video.gate = asyncio.Event()

    joining = asyncio.create_task(town_join_handler(store, "alice", controller.town_id))
    while not video.calls:
        await asyncio.sleep(0)
    assert store.prune_town(controller.town_id) is True
    video.gate.set()
    result = await joining

    assert result.is_ok is False
    assert result.message == "Error: No such town"
    assert controller.players == ()
    assert store.get_controller_for_town(controller.town_id) is None
