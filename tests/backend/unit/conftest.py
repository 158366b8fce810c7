from __future__ import annotations

import asyncio
from unittest.mock import Mock

import pytest

from coveytown.backend.controller import TownController
from coveytown.backend.music import InMemoryMusicSync
from coveytown.backend.store import InMemoryTownStore


class RecordingVideoProvider:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.fail_with: Exception | None = None
        self.gate: asyncio.Event | None = None

    async def get_token_for_town(self, town_id: str, player_id: str) -> str:
        self.calls.append((town_id, player_id))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        return f"video-{town_id}-{player_id}"


@pytest.fixture()
def video() -> RecordingVideoProvider:
    return RecordingVideoProvider()


@pytest.fixture()
def music() -> InMemoryMusicSync:
    return InMemoryMusicSync()


@pytest.fixture()
def town(video: RecordingVideoProvider, music: InMemoryMusicSync) -> TownController:
    music.register_town("town-1")
    return TownController("Testing Town", False, video=video, music=music, town_id="town-1")


@pytest.fixture()
def store(video: RecordingVideoProvider, music: InMemoryMusicSync) -> InMemoryTownStore:
    return InMemoryTownStore(video=video, music=music, town_capacity=10)


@pytest.fixture()
def listeners() -> list[Mock]:
    return [Mock(), Mock(), Mock()]
