"""Timer scheduling for FitBark refresh jobs."""
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Protocol

from homeassistant.core import CALLBACK_TYPE, HomeAssistant, callback
from homeassistant.helpers.event import (
    async_track_point_in_utc_time,
    async_track_time_interval,
)

_LOGGER = logging.getLogger(__name__)

Job = Callable[[], Awaitable[None]]


class Scheduler(Protocol):
    """Fires jobs periodically or once."""

    def every(self, interval: timedelta, job: Job) -> CALLBACK_TYPE:
        """Run ``job`` every ``interval``; returns a cancel callback."""

    def once(self, when: datetime, job: Job) -> CALLBACK_TYPE:
        """Run ``job`` once at ``when``; returns a cancel callback."""

    def cancel_all(self) -> None:
        """Cancel every job scheduled through this scheduler."""


class HassScheduler:
    """Scheduler backed by Home Assistant's event helpers."""

    def __init__(self, hass: HomeAssistant, name: str) -> None:
        """Initialize the scheduler."""
        self.hass = hass
        self.name = name
        self._cancels: List[CALLBACK_TYPE] = []

    def _track(self, cancel: CALLBACK_TYPE) -> CALLBACK_TYPE:
        self._cancels.append(cancel)

        @callback
        def _cancel() -> None:
            if cancel in self._cancels:
                self._cancels.remove(cancel)
                cancel()

        return _cancel

    def every(self, interval: timedelta, job: Job) -> CALLBACK_TYPE:
        async def _run(_now: datetime) -> None:
            await job()

        _LOGGER.debug("%s: scheduling %s every %s", self.name, job, interval)
        return self._track(
            async_track_time_interval(self.hass, _run, interval, name=f"{self.name} {job}")
        )

    def once(self, when: datetime, job: Job) -> CALLBACK_TYPE:
        cancel: CALLBACK_TYPE

        async def _run(_now: datetime) -> None:
            if cancel in self._cancels:
                self._cancels.remove(cancel)
            await job()

        _LOGGER.debug("%s: scheduling %s at %s", self.name, job, when)
        cancel = async_track_point_in_utc_time(self.hass, _run, when)
        return self._track(cancel)

    @callback
    def cancel_all(self) -> None:
        while self._cancels:
            self._cancels.pop()()
