"""FitBark integration for Home Assistant."""
import logging
from typing import Any, Dict

import voluptuous as vol
import homeassistant.helpers.config_validation as cv

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, ServiceCall, callback
from homeassistant.exceptions import ConfigEntryAuthFailed, HomeAssistantError
from homeassistant.helpers import device_registry as dr
from homeassistant.helpers.aiohttp_client import async_get_clientsession
from homeassistant.helpers.dispatcher import async_dispatcher_send
from homeassistant.helpers.network import NoURLAvailableError
from homeassistant.helpers.storage import Store
from homeassistant.helpers.typing import ConfigType

from .api import FitBarkApiClient
from .auth import AuthorizationFlow
from .const import (
    ATTR_DAILY_GOAL,
    ATTR_DOG_ID,
    ATTR_KEEP_CREDENTIALS,
    ATTR_START_DATE,
    AUTH_CALLBACK_PATH,
    CONF_ONLY_OWNED,
    CONF_POLL_INTERVAL,
    CONF_REDIRECT_URL,
    DEFAULT_ONLY_OWNED,
    DOMAIN,
    EVENT_DEVICES_DELETED,
    EVENT_DISCOVERY_COMPLETE,
    PLATFORMS,
    SERVICE_DELETE_ALL,
    SERVICE_DISCOVER,
    SERVICE_REFRESH_NOW,
    SERVICE_REFRESH_TOKEN,
    SERVICE_SCHEDULE_GOAL_UPDATE,
    SERVICE_SIGN_OUT,
    SERVICE_VALIDATE_REDIRECT_URIS,
    SIGNAL_DOG_ADDED,
    STORAGE_VERSION,
    PollingInterval,
)
from .coordinator import FitBarkCoordinator
from .discovery import DiscoveryEngine
from .exceptions import FitBarkError, PreconditionFailure, UserInputFailure
from .models import LinkedEntity
from .registry import FitBarkRegistry
from .scheduler import HassScheduler
from .sync import SyncEngine
from .token_store import TokenStore
from .views import async_register_callback_view, build_redirect_url, is_absolute_url

_LOGGER = logging.getLogger(__name__)

CONFIG_SCHEMA = cv.config_entry_only_config_schema(DOMAIN)

SERVICES = (
    SERVICE_REFRESH_NOW,
    SERVICE_SCHEDULE_GOAL_UPDATE,
    SERVICE_SIGN_OUT,
    SERVICE_DELETE_ALL,
    SERVICE_DISCOVER,
    SERVICE_REFRESH_TOKEN,
    SERVICE_VALIDATE_REDIRECT_URIS,
)


def _storage_key(entry: ConfigEntry) -> str:
    return f"{DOMAIN}.{entry.entry_id}"


def signal_dog_added(entry: ConfigEntry) -> str:
    """Dispatcher signal fired when a dog is linked to the given entry."""
    return f"{SIGNAL_DOG_ADDED}_{entry.entry_id}"


async def async_setup(hass: HomeAssistant, config: ConfigType) -> bool:
    """Register the OAuth callback endpoint."""
    async_register_callback_view(hass)
    return True


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up FitBark from a config entry."""
    token_store = TokenStore.from_dict(dict(entry.data))
    api = FitBarkApiClient(async_get_clientsession(hass))

    registry = FitBarkRegistry(Store(hass, STORAGE_VERSION, _storage_key(entry)))
    await registry.async_load()

    try:
        redirect_url = build_redirect_url(hass, fallback=entry.data.get(CONF_REDIRECT_URL))
    except NoURLAvailableError:
        _LOGGER.warning("No external URL configured, using %s as FitBark callback", AUTH_CALLBACK_PATH)
        redirect_url = AUTH_CALLBACK_PATH

    async def persist() -> None:
        hass.config_entries.async_update_entry(
            entry, data={**entry.data, **token_store.as_dict()}
        )

    auth = AuthorizationFlow(
        token_store, api, redirect_url, registry, persist=persist, notify=hass.bus.async_fire
    )
    sync_engine = SyncEngine(token_store, api, registry)
    discovery = DiscoveryEngine(
        token_store,
        api,
        registry,
        sync_engine,
        only_owned=entry.options.get(CONF_ONLY_OWNED, DEFAULT_ONLY_OWNED),
    )
    scheduler = HassScheduler(hass, f"{DOMAIN} {entry.title}")
    coordinator = FitBarkCoordinator(hass, entry, auth, registry, sync_engine, scheduler)

    if not token_store.has_valid_access_token():
        raise ConfigEntryAuthFailed("FitBark account is not authorized")

    device_registry = dr.async_get(hass)

    @callback
    def _dog_added(entity: LinkedEntity) -> None:
        async_dispatcher_send(hass, signal_dog_added(entry), entity)

    @callback
    def _dog_removed(entity: LinkedEntity) -> None:
        device = device_registry.async_get_device(identifiers={(DOMAIN, entity.external_id)})
        if device is not None:
            device_registry.async_remove_device(device.id)

    entry.async_on_unload(registry.add_listeners(_dog_added, _dog_removed))

    if not registry.entities():
        run = await discovery.async_discover()
        if run.failure_message:
            _LOGGER.warning("Initial FitBark discovery failed: %s", run.failure_message)

    await coordinator.async_config_entry_first_refresh()

    hass.data.setdefault(DOMAIN, {})
    hass.data[DOMAIN][entry.entry_id] = {
        "auth": auth,
        "registry": registry,
        "sync_engine": sync_engine,
        "discovery": discovery,
        "coordinator": coordinator,
        "options": dict(entry.options),
    }

    coordinator.async_schedule(PollingInterval.from_option(entry.options.get(CONF_POLL_INTERVAL)))
    entry.async_on_unload(coordinator.async_shutdown_jobs)
    entry.async_on_unload(entry.add_update_listener(_async_update_listener))

    _async_register_services(hass, entry)

    # Set up platforms
    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    return True


def _linked_dog(registry: FitBarkRegistry, dog_id: str) -> LinkedEntity:
    entity = registry.get(dog_id)
    if entity is None:
        raise HomeAssistantError(f"No linked FitBark dog with id {dog_id}")
    return entity


@callback
def _async_register_services(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Register the FitBark services for this entry."""
    data: Dict[str, Any] = hass.data[DOMAIN][entry.entry_id]
    auth: AuthorizationFlow = data["auth"]
    registry: FitBarkRegistry = data["registry"]
    sync_engine: SyncEngine = data["sync_engine"]
    discovery: DiscoveryEngine = data["discovery"]
    coordinator: FitBarkCoordinator = data["coordinator"]

    async def refresh_now(call: ServiceCall) -> None:
        """Fully refresh one dog, or all of them."""
        dog_id = call.data.get(ATTR_DOG_ID)
        if dog_id is not None:
            _linked_dog(registry, dog_id)
        try:
            await coordinator.async_refresh_now(dog_id)
        except ConfigEntryAuthFailed as err:
            raise HomeAssistantError(str(err)) from err

    async def schedule_goal_update(call: ServiceCall) -> None:
        """Schedule a new daily goal for an owned dog."""
        entity = _linked_dog(registry, call.data[ATTR_DOG_ID])
        try:
            await sync_engine.async_schedule_goal_update(
                entity, call.data[ATTR_DAILY_GOAL], call.data[ATTR_START_DATE]
            )
        except (PreconditionFailure, UserInputFailure) as err:
            raise HomeAssistantError(str(err)) from err
        except FitBarkError as err:
            raise HomeAssistantError(f"Failed to schedule daily goal: {err}") from err
        coordinator.async_set_updated_data(registry.snapshots())

    async def sign_out(call: ServiceCall) -> None:
        """Delete every linked dog and forget the authorization."""
        await auth.async_sign_out(keep_credentials=call.data[ATTR_KEEP_CREDENTIALS])
        coordinator.async_set_updated_data(registry.snapshots())
        entry.async_start_reauth(hass)

    async def delete_all(call: ServiceCall) -> None:
        """Remove every linked dog without signing out."""
        deleted = await registry.async_delete_all()
        hass.bus.async_fire(EVENT_DEVICES_DELETED, {"deleted": deleted})
        coordinator.async_set_updated_data(registry.snapshots())

    async def discover(call: ServiceCall) -> None:
        """Link dogs of the account that are not linked yet."""
        run = await discovery.async_discover()
        hass.bus.async_fire(EVENT_DISCOVERY_COMPLETE, run.as_dict())
        coordinator.async_set_updated_data(registry.snapshots())
        if run.failure_message:
            raise HomeAssistantError(run.failure_message)

    async def refresh_token(call: ServiceCall) -> None:
        """Refresh the FitBark access token."""
        try:
            await auth.async_refresh()
        except FitBarkError as err:
            raise HomeAssistantError(f"Failed to refresh the FitBark token: {err}") from err

    async def validate_redirect_uris(call: ServiceCall) -> None:
        """Make sure FitBark knows our callback URL."""
        if not is_absolute_url(auth.redirect_url):
            raise HomeAssistantError(
                f"Cannot register {auth.redirect_url} with FitBark, "
                "configure an external URL for Home Assistant first"
            )
        try:
            await auth.async_validate_redirect_configuration()
        except FitBarkError as err:
            raise HomeAssistantError(f"Failed to validate redirect URIs: {err}") from err

    hass.services.async_register(
        DOMAIN,
        SERVICE_REFRESH_NOW,
        refresh_now,
        schema=vol.Schema({
            vol.Optional(ATTR_DOG_ID): cv.string,
        }),
    )
    hass.services.async_register(
        DOMAIN,
        SERVICE_SCHEDULE_GOAL_UPDATE,
        schedule_goal_update,
        schema=vol.Schema({
            vol.Required(ATTR_DOG_ID): cv.string,
            vol.Required(ATTR_DAILY_GOAL): cv.positive_int,
            vol.Required(ATTR_START_DATE): cv.date,
        }),
    )
    hass.services.async_register(
        DOMAIN,
        SERVICE_SIGN_OUT,
        sign_out,
        schema=vol.Schema({
            vol.Optional(ATTR_KEEP_CREDENTIALS, default=False): cv.boolean,
        }),
    )
    hass.services.async_register(DOMAIN, SERVICE_DELETE_ALL, delete_all, schema=vol.Schema({}))
    hass.services.async_register(DOMAIN, SERVICE_DISCOVER, discover, schema=vol.Schema({}))
    hass.services.async_register(
        DOMAIN, SERVICE_REFRESH_TOKEN, refresh_token, schema=vol.Schema({})
    )
    hass.services.async_register(
        DOMAIN, SERVICE_VALIDATE_REDIRECT_URIS, validate_redirect_uris, schema=vol.Schema({})
    )


async def _async_update_listener(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload when the options change; token updates also land here."""
    if dict(entry.options) == hass.data[DOMAIN][entry.entry_id]["options"]:
        return
    await hass.config_entries.async_reload(entry.entry_id)


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unload_ok:
        # Remove services
        for service in SERVICES:
            hass.services.async_remove(DOMAIN, service)
        hass.data[DOMAIN].pop(entry.entry_id)
    return unload_ok


async def async_remove_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Drop the stored dogs when the entry is deleted."""
    await Store(hass, STORAGE_VERSION, _storage_key(entry)).async_remove()
