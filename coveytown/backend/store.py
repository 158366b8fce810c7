"""Registry of live towns."""

from __future__ import annotations

import hmac
import logging
import threading
from dataclasses import dataclass
from typing import Protocol

from .config import TownServiceSettings
from .controller import TownController
from .models import TownSummary
from .music import MusicSyncAdapter, SpotifyMusicSync
from .video import SignedVideoTokenProvider, VideoTokenProvider


logger = logging.getLogger(__name__)


class TownStore(Protocol):
    music: MusicSyncAdapter

    def create_town(self, friendly_name: str, is_publicly_listed: bool) -> TownController:
        """Create and index a town; raise ValueError for an empty name."""

    def get_controller_for_town(self, town_id: str) -> TownController | None:
        """Return the controller for town_id when it exists."""

    async def delete_town(self, town_id: str, town_update_password: str) -> bool:
        """Close and remove a town when the password matches."""

    def update_town(
        self,
        town_id: str,
        town_update_password: str,
        friendly_name: str | None = None,
        is_publicly_listed: bool | None = None,
    ) -> bool:
        """Apply the provided fields when the password matches."""

    def list_towns(self) -> list[TownSummary]:
        """Return publicly listed towns."""

    def prune_town(self, town_id: str) -> bool:
        """Remove a town that no longer has any players."""

    def town_ids(self) -> list[str]:
        """Return the ids of every live town, listed or not."""


def _password_matches(controller: TownController, candidate: str) -> bool:
    return hmac.compare_digest(controller.town_update_password.encode("utf-8"), candidate.encode("utf-8"))


@dataclass
class InMemoryTownStore:
    video: VideoTokenProvider
    music: MusicSyncAdapter
    town_capacity: int = 50

    def __post_init__(self) -> None:
        self._towns: dict[str, TownController] = {}
        self._lock = threading.Lock()

    def create_town(self, friendly_name: str, is_publicly_listed: bool) -> TownController:
        if friendly_name == "":
            raise ValueError("friendly_name must not be empty")
        controller = TownController(
            friendly_name=friendly_name,
            is_publicly_listed=is_publicly_listed,
            video=self.video,
            music=self.music,
            capacity=self.town_capacity,
        )
        with self._lock:
            self._towns[controller.town_id] = controller
        self.music.register_town(controller.town_id)
        logger.info("[TOWNS] Created town %s (%s)", controller.town_id, friendly_name)
        return controller

    def get_controller_for_town(self, town_id: str) -> TownController | None:
        with self._lock:
            return self._towns.get(town_id)

    async def delete_town(self, town_id: str, town_update_password: str) -> bool:
        with self._lock:
            controller = self._towns.get(town_id)
            if controller is None or not _password_matches(controller, town_update_password):
                return False
            del self._towns[town_id]
            controller.close()
        await controller.disconnect_all_players()
        self.music.unregister_town(town_id)
        logger.info("[TOWNS] Deleted town %s", town_id)
        return True

    def update_town(
        self,
        town_id: str,
        town_update_password: str,
        friendly_name: str | None = None,
        is_publicly_listed: bool | None = None,
    ) -> bool:
        with self._lock:
            controller = self._towns.get(town_id)
            if controller is None or not _password_matches(controller, town_update_password):
                return False
            if friendly_name is None and is_publicly_listed is None:
                return False
            if friendly_name is not None and friendly_name == "":
                return False
            if friendly_name is not None:
                controller.friendly_name = friendly_name
            if is_publicly_listed is not None:
                controller.is_publicly_listed = is_publicly_listed
        logger.info("[TOWNS] Updated town %s", town_id)
        return True

    def list_towns(self) -> list[TownSummary]:
        with self._lock:
            controllers = list(self._towns.values())
        return [
            TownSummary(
                town_id=controller.town_id,
                friendly_name=controller.friendly_name,
                is_publicly_listed=controller.is_publicly_listed,
                current_occupancy=controller.occupancy,
                maximum_occupancy=controller.capacity,
            )
            for controller in controllers
            if controller.is_publicly_listed
        ]

    def town_ids(self) -> list[str]:
        with self._lock:
            return list(self._towns)

    def prune_town(self, town_id: str) -> bool:
        with self._lock:
            controller = self._towns.get(town_id)
            if controller is None or controller.occupancy > 0:
                return False
            del self._towns[town_id]
            controller.close()
        self.music.unregister_town(town_id)
        logger.info("[TOWNS] Removed empty town %s", town_id)
        return True


def create_store(settings: TownServiceSettings) -> InMemoryTownStore:
    return InMemoryTownStore(
        video=SignedVideoTokenProvider(secret=settings.video_secret, ttl_s=settings.video_token_ttl_s),
        music=SpotifyMusicSync(api_url=settings.music_api_url, timeout_s=settings.music_timeout_s),
        town_capacity=settings.town_capacity,
    )
