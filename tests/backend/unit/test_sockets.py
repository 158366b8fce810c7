import json

from coveytown.backend.models import Player, SongData
from coveytown.backend.sockets import TownSocketAdapter, dispatch_frame


async def _drain(adapter: TownSocketAdapter) -> list[dict]:
    sent: list[dict] = []

    async def send(frame: dict) -> None:
        sent.append(frame)

    adapter.on_town_destroyed()
    await adapter.drain(send)
    return sent


async def test_adapter_frames_carry_event_type_and_player_payload() -> None:
    adapter = TownSocketAdapter()
    player = Player("alice", id="p-1")

    adapter.on_player_joined(player)
    adapter.on_player_moved(player)
    sent = await _drain(adapter)

    assert [frame["type"] for frame in sent] == ["newPlayer", "playerMoved", "townClosing"]
    assert sent[0]["payload"]["id"] == "p-1"
    assert sent[2]["payload"] is None


async def test_adapter_drops_frames_beyond_capacity_but_still_closes() -> None:
    adapter = TownSocketAdapter(max_pending=2)
    player = Player("alice")

    for _ in range(5):
        adapter.on_player_moved(player)
    sent = await _drain(adapter)

    assert [frame["type"] for frame in sent] == ["playerMoved", "playerMoved", "townClosing"]
    assert adapter.closing is True


async def test_adapter_ignores_events_after_closing() -> None:
    adapter = TownSocketAdapter()
    adapter.on_town_destroyed()
    adapter.on_player_joined(Player("late"))

    sent: list[dict] = []

    async def send(frame: dict) -> None:
        sent.append(frame)

    await adapter.drain(send)

    assert [frame["type"] for frame in sent] == ["townClosing"]


async def test_dispatch_movement_updates_location(town) -> None:
    session = await town.add_player(Player("alice"))
    adapter = TownSocketAdapter()
    raw = json.dumps({"type": "playerMovement", "payload": {"x": 3, "y": 4, "rotation": "back", "moving": True}})

    await dispatch_frame(raw, town, session, adapter)

    location = session.player.location
    assert (location.x, location.y, location.rotation, location.moving) == (3, 4, "back", True)


async def test_dispatch_chat_stamps_author_and_socket_id(town) -> None:
    session = await town.add_player(Player("alice"))
    adapter = TownSocketAdapter()
    town.add_town_listener(adapter)

    await dispatch_frame(json.dumps({"type": "chatMessage", "payload": {"body": "hello"}}), town, session, adapter)
    sent = await _drain(adapter)

    message = sent[0]["payload"]
    assert sent[0]["type"] == "chatMessage"
    assert message["author"] == session.player.id
    assert message["sid"] == adapter.sid
    assert message["body"] == "hello"
    assert message["dateCreated"]


async def test_dispatch_song_request_restarts_playback(town, music) -> None:
    session = await town.add_player(Player("alice"))
    adapter = TownSocketAdapter()
    raw = json.dumps(
        {"type": "playerSongRequest", "payload": {"displayTitle": "A by B", "uris": ["spotify:track:1"], "progress": 900}}
    )

    await dispatch_frame(raw, town, session, adapter)

    assert session.player.song == SongData(display_title="A by B", uris=("spotify:track:1",), progress=0)
    assert music.playback_requests[-1][1] == session.player.id


async def test_dispatch_answers_malformed_frames_with_error(town) -> None:
    session = await town.add_player(Player("alice"))
    adapter = TownSocketAdapter()

    await dispatch_frame("not json", town, session, adapter)
    await dispatch_frame(json.dumps({"type": "teleport", "payload": {}}), town, session, adapter)
    await dispatch_frame(json.dumps({"type": "playerMovement", "payload": {"x": "far"}}), town, session, adapter)
    sent = await _drain(adapter)

    assert [frame["type"] for frame in sent] == ["error", "error", "error", "townClosing"]
    assert sent[0]["payload"] == {"message": "Malformed message"}
    assert session.player.location.x == 0
