"""FastAPI endpoints for town management, joining and the town event socket."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, Query, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .areas import BoundingBox, ConversationArea
from .config import TownServiceSettings, load_settings
from .handlers import (
    ResponseEnvelope,
    conversation_area_create_handler,
    town_create_handler,
    town_delete_handler,
    town_join_handler,
    town_list_handler,
    town_update_handler,
)
from .music import SpotifyMusicSync
from .scheduler import SongPoller
from .sockets import serve_town_subscription
from .store import TownStore, create_store


class TownCreateRequest(BaseModel):
    friendlyName: str = Field(max_length=200)
    isPubliclyListed: bool = True


class TownUpdateRequest(BaseModel):
    coveyTownPassword: str
    friendlyName: str | None = Field(default=None, max_length=200)
    isPubliclyListed: bool | None = None


class TownJoinRequest(BaseModel):
    userName: str = Field(min_length=1, max_length=100)
    coveyTownID: str
    musicSessionToken: str | None = None


class BoundingBoxPayload(BaseModel):
    x: float
    y: float
    width: float = Field(gt=0)
    height: float = Field(gt=0)


class ConversationAreaPayload(BaseModel):
    label: str = Field(min_length=1)
    topic: str
    boundingBox: BoundingBoxPayload
    occupantsByID: list[str] = Field(default_factory=list)

    def to_area(self) -> ConversationArea:
        box = self.boundingBox
        return ConversationArea(
            label=self.label,
            topic=self.topic,
            bounding_box=BoundingBox(x=box.x, y=box.y, width=box.width, height=box.height),
            occupants_by_id=list(self.occupantsByID),
        )


class ConversationAreaCreateRequest(BaseModel):
    sessionToken: str
    conversationArea: ConversationAreaPayload


class EnvelopeResponse(BaseModel):
    isOK: bool
    message: str | None = None
    response: dict[str, Any] | None = None


def _envelope(result: ResponseEnvelope) -> EnvelopeResponse:
    return EnvelopeResponse(isOK=result.is_ok, message=result.message, response=result.response)


def create_app(store: TownStore | None = None, settings: TownServiceSettings | None = None) -> FastAPI:
    app_settings = settings if settings is not None else load_settings()
    town_store = store if store is not None else create_store(app_settings)
    owned_music = town_store.music if store is None and isinstance(town_store.music, SpotifyMusicSync) else None

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        poller: SongPoller | None = None
        if app_settings.song_poll_interval_s > 0:
            poller = SongPoller(town_store, app_settings.song_poll_interval_s)
            poller.start()
        app.state.song_poller = poller
        try:
            yield
        finally:
            if poller is not None:
                await poller.stop()
            if owned_music is not None:
                await owned_music.aclose()

    app = FastAPI(title="Covey Town Service", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(app_settings.cors_origins),
        allow_credentials="*" not in app_settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.town_store = town_store
    app.state.song_poller = None

    def get_store() -> TownStore:
        return town_store

    @app.post("/towns", response_model=EnvelopeResponse)
    def create_town(payload: TownCreateRequest, local_store: TownStore = Depends(get_store)) -> EnvelopeResponse:
        return _envelope(town_create_handler(local_store, payload.friendlyName, payload.isPubliclyListed))

    @app.get("/towns", response_model=EnvelopeResponse)
    def list_towns(local_store: TownStore = Depends(get_store)) -> EnvelopeResponse:
        return _envelope(town_list_handler(local_store))

    @app.patch("/towns/{town_id}", response_model=EnvelopeResponse)
    def update_town(
        town_id: str,
        payload: TownUpdateRequest,
        local_store: TownStore = Depends(get_store),
    ) -> EnvelopeResponse:
        return _envelope(
            town_update_handler(
                local_store,
                town_id,
                payload.coveyTownPassword,
                friendly_name=payload.friendlyName,
                is_publicly_listed=payload.isPubliclyListed,
            )
        )

    @app.delete("/towns/{town_id}/{town_password}", response_model=EnvelopeResponse)
    async def delete_town(
        town_id: str,
        town_password: str,
        local_store: TownStore = Depends(get_store),
    ) -> EnvelopeResponse:
        return _envelope(await town_delete_handler(local_store, town_id, town_password))

    @app.post("/sessions", response_model=EnvelopeResponse)
    async def join_town(payload: TownJoinRequest, local_store: TownStore = Depends(get_store)) -> EnvelopeResponse:
        return _envelope(
            await town_join_handler(
                local_store,
                user_name=payload.userName,
                town_id=payload.coveyTownID,
                music_token=payload.musicSessionToken,
            )
        )

    @app.post("/towns/{town_id}/conversationAreas", response_model=EnvelopeResponse)
    async def create_conversation_area(
        town_id: str,
        payload: ConversationAreaCreateRequest,
        local_store: TownStore = Depends(get_store),
    ) -> EnvelopeResponse:
        return _envelope(
            await conversation_area_create_handler(
                local_store,
                town_id,
                payload.sessionToken,
                payload.conversationArea.to_area(),
            )
        )

    @app.get("/songPoller/status")
    def song_poller_status() -> dict[str, object]:
        poller: SongPoller | None = app.state.song_poller
        if poller is None:
            return {"running": False, "interval_s": app_settings.song_poll_interval_s}
        return poller.status()

    @app.websocket("/ws/towns/{town_id}")
    async def town_socket(
        websocket: WebSocket,
        town_id: str,
        token: str | None = Query(default=None),
        local_store: TownStore = Depends(get_store),
    ) -> None:
        await serve_town_subscription(websocket, local_store, town_id, token)

    return app


app = create_app()
