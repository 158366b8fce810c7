"""Socket adapter between town events and a client's WebSocket connection."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, Literal

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field, ValidationError

from .areas import ConversationArea
from .controller import TownController
from .models import ChatMessage, Player, PlayerSession, SongData, UserLocation
from .security import generate_id
from .state import area_to_dict, chat_message_to_dict, player_to_dict
from .store import TownStore


logger = logging.getLogger(__name__)

POLICY_VIOLATION = 1008
MAX_PENDING_FRAMES = 256

_CLOSE = object()


class InboundFrame(BaseModel):
    type: Literal["playerMovement", "chatMessage", "playerSongRequest"]
    payload: dict[str, Any] = Field(default_factory=dict)


class PlayerMovementPayload(BaseModel):
    x: float
    y: float
    rotation: Literal["front", "back", "left", "right"] = "front"
    moving: bool = False
    conversationLabel: str | None = None

    def to_location(self) -> UserLocation:
        return UserLocation(
            x=self.x,
            y=self.y,
            rotation=self.rotation,
            moving=self.moving,
            conversation_label=self.conversationLabel,
        )


class ChatMessagePayload(BaseModel):
    body: str = Field(min_length=1, max_length=1000)
    dateCreated: str | None = None


class SongRequestPayload(BaseModel):
    displayTitle: str = Field(min_length=1)
    uris: list[str] = Field(min_length=1)
    progress: int = Field(default=0, ge=0)

    def to_song(self) -> SongData:
        return SongData(display_title=self.displayTitle, uris=tuple(self.uris), progress=self.progress)


class TownSocketAdapter:
    """A town listener that queues frames for one socket.

    Callbacks never await: frames are buffered and written by `drain`. When
    more than `max_pending` frames are waiting, new ones are dropped. The
    closing frame is always queued.
    """

    def __init__(self, max_pending: int = MAX_PENDING_FRAMES) -> None:
        self.sid = generate_id()
        self.max_pending = max_pending
        self._frames: deque[Any] = deque()
        self._ready = asyncio.Event()
        self._closing = False

    @property
    def closing(self) -> bool:
        return self._closing

    def _push(self, event_type: str, payload: Any = None) -> None:
        if self._closing:
            return
        if len(self._frames) >= self.max_pending:
            logger.warning("[SOCKET] Dropping %s frame for slow socket %s", event_type, self.sid)
            return
        self._frames.append({"type": event_type, "payload": payload})
        self._ready.set()

    def send_error(self, message: str) -> None:
        self._push("error", {"message": message})

    def on_player_joined(self, player: Player) -> None:
        self._push("newPlayer", player_to_dict(player))

    def on_player_moved(self, player: Player) -> None:
        self._push("playerMoved", player_to_dict(player))

    def on_player_disconnected(self, player: Player) -> None:
        self._push("playerDisconnect", player_to_dict(player))

    def on_player_song_updated(self, player: Player) -> None:
        self._push("playerSongUpdated", player_to_dict(player))

    def on_town_destroyed(self) -> None:
        if self._closing:
            return
        self._frames.append({"type": "townClosing", "payload": None})
        self._closing = True
        self._frames.append(_CLOSE)
        self._ready.set()

    def on_conversation_area_updated(self, area: ConversationArea) -> None:
        self._push("conversationUpdated", area_to_dict(area))

    def on_conversation_area_destroyed(self, area: ConversationArea) -> None:
        self._push("conversationDestroyed", area_to_dict(area))

    def on_chat_message(self, message: ChatMessage) -> None:
        self._push("chatMessage", chat_message_to_dict(message))

    async def drain(self, send: Callable[[dict[str, Any]], Awaitable[None]]) -> None:
        """Write queued frames until the town closes."""
        while True:
            await self._ready.wait()
            self._ready.clear()
            while self._frames:
                frame = self._frames.popleft()
                if frame is _CLOSE:
                    return
                await send(frame)


async def dispatch_frame(
    raw: str,
    controller: TownController,
    session: PlayerSession,
    adapter: TownSocketAdapter,
) -> None:
    """Apply one inbound frame; malformed frames are answered with an error frame."""
    try:
        frame = InboundFrame.model_validate_json(raw)
        if frame.type == "playerMovement":
            location = PlayerMovementPayload.model_validate(frame.payload).to_location()
            await controller.update_player_location(session.player, location)
        elif frame.type == "chatMessage":
            chat = ChatMessagePayload.model_validate(frame.payload)
            controller.on_chat_message(
                ChatMessage(
                    author=session.player.id,
                    sid=adapter.sid,
                    body=chat.body,
                    date_created=chat.dateCreated or datetime.now(timezone.utc).isoformat(),
                )
            )
        else:
            song = SongRequestPayload.model_validate(frame.payload).to_song()
            await controller.change_player_song(session.player, song)
    except ValidationError as exc:
        logger.info("[SOCKET] Rejected malformed frame from %s: %s", adapter.sid, exc.errors()[:1])
        adapter.send_error("Malformed message")


async def _receive_frames(
    websocket: WebSocket,
    controller: TownController,
    session: PlayerSession,
    adapter: TownSocketAdapter,
) -> None:
    try:
        while True:
            raw = await websocket.receive_text()
            await dispatch_frame(raw, controller, session, adapter)
    except WebSocketDisconnect:
        return


async def serve_town_subscription(websocket: WebSocket, store: TownStore, town_id: str, token: str | None) -> None:
    """Subscribe an authenticated socket to a town until either side goes away."""
    controller = store.get_controller_for_town(town_id)
    session = controller.get_session_by_token(token) if controller is not None and token else None
    if controller is None or session is None or not controller.claim_subscription(session):
        await websocket.close(code=POLICY_VIOLATION)
        return

    await websocket.accept()
    adapter = TownSocketAdapter()
    controller.add_town_listener(adapter)
    logger.info("[SOCKET] Player %s subscribed to town %s", session.player.id, town_id)

    sender = asyncio.create_task(adapter.drain(websocket.send_json))
    receiver = asyncio.create_task(_receive_frames(websocket, controller, session, adapter))
    try:
        done, pending = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            if task.exception() is not None:
                logger.warning("[SOCKET] Socket %s ended with error: %s", adapter.sid, task.exception())
        if sender in done and adapter.closing:
            await websocket.close()
    finally:
        sender.cancel()
        receiver.cancel()
        store.music.unlink_player(town_id, session.player)
        controller.remove_town_listener(adapter)
        await controller.destroy_session(session)
        store.prune_town(town_id)
        logger.info("[SOCKET] Player %s unsubscribed from town %s", session.player.id, town_id)
