"""Data coordinator for FitBark integration."""
import asyncio
import logging
from datetime import datetime
from typing import Dict, Optional

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryAuthFailed
from homeassistant.helpers import issue_registry as ir
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed
from homeassistant.util import dt as dt_util

from .auth import AuthorizationFlow
from .const import (
    DAILY_REFRESH_INTERVAL,
    DOMAIN,
    INITIAL_DAILY_REFRESH_DELAY,
    ISSUE_TOKEN_EXPIRING,
    PollingInterval,
)
from .models import EntitySnapshot
from .registry import FitBarkRegistry
from .scheduler import Scheduler
from .sync import SyncEngine

_LOGGER = logging.getLogger(__name__)


class FitBarkCoordinator(DataUpdateCoordinator[Dict[str, EntitySnapshot]]):
    """Coordinator holding the snapshots of every linked dog.

    Polling is driven by the injected scheduler rather than the coordinator's
    own update interval, so the poll, the once-daily refresh and manual
    refreshes all go through the same listeners.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        entry: ConfigEntry,
        auth: AuthorizationFlow,
        registry: FitBarkRegistry,
        sync_engine: SyncEngine,
        scheduler: Scheduler,
    ) -> None:
        """Initialize the coordinator."""
        self._auth = auth
        self._registry = registry
        self._sync = sync_engine
        self._scheduler = scheduler

        super().__init__(
            hass,
            _LOGGER,
            config_entry=entry,
            name=f"{DOMAIN}_coordinator",
            update_interval=None,
        )

    def async_schedule(self, polling: PollingInterval) -> None:
        """(Re)schedule polling and the once-daily refresh jobs."""
        self._scheduler.cancel_all()

        if polling.interval is None:
            _LOGGER.info("Automatic FitBark polling is disabled")
        else:
            _LOGGER.info("Polling FitBark %s", polling.label.lower())
            self._scheduler.every(polling.interval, self.async_refresh)

        self._scheduler.every(DAILY_REFRESH_INTERVAL, self.async_refresh_daily)
        self._scheduler.once(
            dt_util.utcnow() + INITIAL_DAILY_REFRESH_DELAY, self.async_refresh_daily
        )

    @property
    def authorization_expires_soon(self) -> Optional[datetime]:
        """Return the token expiry while it is within the warning window."""
        return self._auth.expiry_advisory()

    def async_shutdown_jobs(self) -> None:
        self._scheduler.cancel_all()

    def _require_authorization(self) -> None:
        if not self._auth.token_store.has_valid_access_token():
            raise ConfigEntryAuthFailed("FitBark account is not authorized")

    async def _async_update_data(self) -> Dict[str, EntitySnapshot]:
        """Poll every linked dog."""
        self._require_authorization()
        self._check_token_expiry()

        entities = self._registry.entities()
        if not entities:
            return {}

        results = await asyncio.gather(*(self._sync.async_poll(entity) for entity in entities))
        if not any(results):
            raise UpdateFailed("Polling FitBark failed for every linked dog")

        _LOGGER.debug("Polled %d/%d FitBark dogs", sum(results), len(entities))
        return self._registry.snapshots()

    async def async_refresh_daily(self) -> None:
        """Refresh goal schedules and similar-dog stats of every linked dog."""
        if not self._auth.token_store.has_valid_access_token():
            _LOGGER.debug("Skipping daily FitBark refresh, not authorized")
            return
        await asyncio.gather(
            *(self._sync.async_refresh_daily(entity) for entity in self._registry.entities())
        )
        self.async_set_updated_data(self._registry.snapshots())

    async def async_refresh_now(self, external_id: Optional[str] = None) -> None:
        """Fully refresh one dog, or every dog when no id is given."""
        self._require_authorization()
        if external_id is None:
            entities = self._registry.entities()
        else:
            entity = self._registry.get(external_id)
            entities = [entity] if entity else []
        await asyncio.gather(*(self._sync.async_sync_entity(entity) for entity in entities))
        self.async_set_updated_data(self._registry.snapshots())

    def _check_token_expiry(self) -> None:
        """Raise a repair issue while the token is about to expire."""
        expires_at = self._auth.expiry_advisory()
        if expires_at is None:
            ir.async_delete_issue(self.hass, DOMAIN, ISSUE_TOKEN_EXPIRING)
            return

        _LOGGER.warning("FitBark authorization expires on %s", expires_at)
        ir.async_create_issue(
            self.hass,
            DOMAIN,
            ISSUE_TOKEN_EXPIRING,
            is_fixable=False,
            severity=ir.IssueSeverity.WARNING,
            translation_key=ISSUE_TOKEN_EXPIRING,
            translation_placeholders={"expires": dt_util.as_local(expires_at).strftime("%a, %d %b %Y")},
        )
