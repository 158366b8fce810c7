"""Background poller that refreshes now-playing tracks for every town."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from .store import TownStore


logger = logging.getLogger(__name__)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class SongPoller:
    def __init__(self, store: TownStore, interval_s: float) -> None:
        self._store = store
        self._interval_s = interval_s
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()
        self._last_poll_started_at: str | None = None
        self._last_poll_finished_at: str | None = None
        self._last_error: str | None = None

    def start(self) -> bool:
        if self._task is not None and not self._task.done():
            return False
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_loop(), name="coveytown-song-poller")
        logger.info("[POLLER] Song poller started (interval=%.1fs)", self._interval_s)
        return True

    async def stop(self) -> bool:
        task = self._task
        if task is None:
            return False
        self._stop_event.set()
        await task
        self._task = None
        logger.info("[POLLER] Song poller stopped")
        return True

    def status(self) -> dict[str, object]:
        return {
            "running": self._task is not None and not self._task.done(),
            "interval_s": self._interval_s,
            "last_poll_started_at": self._last_poll_started_at,
            "last_poll_finished_at": self._last_poll_finished_at,
            "last_error": self._last_error,
        }

    async def poll_once(self) -> int:
        """Refresh songs in every town, listed or not; return the number polled."""
        self._last_poll_started_at = _utc_now_iso()
        polled = 0
        for town_id in self._store.town_ids():
            controller = self._store.get_controller_for_town(town_id)
            if controller is None:
                continue
            try:
                await controller.update_player_songs()
                polled += 1
            except Exception as exc:
                self._last_error = f"{exc.__class__.__name__}: {exc}"
                logger.exception("[POLLER] Song refresh failed for town %s", town_id)
        self._last_poll_finished_at = _utc_now_iso()
        return polled

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            await self.poll_once()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval_s)
            except asyncio.TimeoutError:
                continue
