"""Unit tests for the FitBark services and entry listeners."""
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest
from homeassistant.exceptions import ConfigEntryAuthFailed, HomeAssistantError

from custom_components.fitbark import _async_register_services, _async_update_listener
from custom_components.fitbark.auth import AuthorizationFlow
from custom_components.fitbark.const import (
    ATTR_DAILY_GOAL,
    ATTR_DOG_ID,
    ATTR_KEEP_CREDENTIALS,
    ATTR_START_DATE,
    AUTH_CALLBACK_PATH,
    CONF_POLL_INTERVAL,
    DOMAIN,
    EVENT_DEVICES_DELETED,
    EVENT_DISCOVERY_COMPLETE,
    SERVICE_DELETE_ALL,
    SERVICE_DISCOVER,
    SERVICE_REFRESH_NOW,
    SERVICE_SCHEDULE_GOAL_UPDATE,
    SERVICE_SIGN_OUT,
    SERVICE_VALIDATE_REDIRECT_URIS,
)
from custom_components.fitbark.coordinator import FitBarkCoordinator
from custom_components.fitbark.discovery import DiscoveryEngine
from custom_components.fitbark.exceptions import ProtocolFailure, UserInputFailure
from custom_components.fitbark.models import DiscoveryRunState, LinkedEntity, RelationshipKind
from custom_components.fitbark.sync import SyncEngine

REDIRECT_URL = "https://ha.example.com/api/fitbark/authentication"


@pytest.fixture
def entry():
    entry = MagicMock()
    entry.entry_id = "entry-1"
    entry.options = {}
    return entry


@pytest.fixture
def auth():
    auth = MagicMock(spec=AuthorizationFlow)
    auth.redirect_url = REDIRECT_URL
    return auth


@pytest.fixture
def discovery():
    return MagicMock(spec=DiscoveryEngine)


@pytest.fixture
def engine():
    return MagicMock(spec=SyncEngine)


@pytest.fixture
def coordinator():
    return MagicMock(spec=FitBarkCoordinator)


@pytest.fixture
def hass(entry, auth, registry, engine, discovery, coordinator):
    hass = MagicMock()
    hass.data = {
        DOMAIN: {
            entry.entry_id: {
                "auth": auth,
                "registry": registry,
                "sync_engine": engine,
                "discovery": discovery,
                "coordinator": coordinator,
                "options": {},
            }
        }
    }
    hass.config_entries.async_reload = AsyncMock()
    return hass


@pytest.fixture
def services(hass, entry):
    """Register the services and return their handlers by name."""
    _async_register_services(hass, entry)
    return {
        call.args[1]: call.args[2] for call in hass.services.async_register.call_args_list
    }


@pytest.fixture
async def rex(registry):
    return await registry.async_create(
        LinkedEntity("rex-1", "Rex's FitBark", RelationshipKind.OWNER)
    )


def _call(**data):
    call = MagicMock()
    call.data = data
    return call


class TestValidateRedirectUris:
    """Callback URL registration from a service call."""

    async def test_registers_absolute_url(self, services, auth):
        await services[SERVICE_VALIDATE_REDIRECT_URIS](_call())

        auth.async_validate_redirect_configuration.assert_awaited_once()

    async def test_refuses_relative_url(self, services, auth):
        auth.redirect_url = AUTH_CALLBACK_PATH

        with pytest.raises(HomeAssistantError):
            await services[SERVICE_VALIDATE_REDIRECT_URIS](_call())
        auth.async_validate_redirect_configuration.assert_not_awaited()

    async def test_remote_failure(self, services, auth):
        auth.async_validate_redirect_configuration.side_effect = ProtocolFailure("not confirmed")

        with pytest.raises(HomeAssistantError):
            await services[SERVICE_VALIDATE_REDIRECT_URIS](_call())


class TestDogServices:
    """Refresh and goal scheduling."""

    async def test_refresh_unknown_dog(self, services, coordinator):
        with pytest.raises(HomeAssistantError):
            await services[SERVICE_REFRESH_NOW](_call(**{ATTR_DOG_ID: "nope"}))
        coordinator.async_refresh_now.assert_not_awaited()

    async def test_refresh_without_authorization(self, services, coordinator):
        coordinator.async_refresh_now.side_effect = ConfigEntryAuthFailed("not authorized")

        with pytest.raises(HomeAssistantError):
            await services[SERVICE_REFRESH_NOW](_call())

    async def test_schedule_goal(self, services, engine, coordinator, rex):
        await services[SERVICE_SCHEDULE_GOAL_UPDATE](
            _call(**{ATTR_DOG_ID: "rex-1", ATTR_DAILY_GOAL: 10000, ATTR_START_DATE: date(2030, 1, 1)})
        )

        engine.async_schedule_goal_update.assert_awaited_once_with(rex, 10000, date(2030, 1, 1))
        coordinator.async_set_updated_data.assert_called_once()

    async def test_schedule_goal_rejected(self, services, engine, rex):
        engine.async_schedule_goal_update.side_effect = UserInputFailure("in the past")

        with pytest.raises(HomeAssistantError):
            await services[SERVICE_SCHEDULE_GOAL_UPDATE](
                _call(
                    **{ATTR_DOG_ID: "rex-1", ATTR_DAILY_GOAL: 10000, ATTR_START_DATE: date(2020, 1, 1)}
                )
            )


class TestAccountServices:
    """Sign-out, deletion and discovery."""

    async def test_sign_out_starts_reauth(self, services, auth, entry, hass):
        await services[SERVICE_SIGN_OUT](_call(**{ATTR_KEEP_CREDENTIALS: False}))

        auth.async_sign_out.assert_awaited_once_with(keep_credentials=False)
        entry.async_start_reauth.assert_called_once_with(hass)

    async def test_delete_all(self, services, hass, registry, rex):
        await services[SERVICE_DELETE_ALL](_call())

        assert registry.entities() == []
        hass.bus.async_fire.assert_called_once_with(EVENT_DEVICES_DELETED, {"deleted": 1})

    async def test_discover_failure(self, services, hass, discovery):
        discovery.async_discover.return_value = DiscoveryRunState(failure_message="boom")

        with pytest.raises(HomeAssistantError):
            await services[SERVICE_DISCOVER](_call())

        event_type, data = hass.bus.async_fire.call_args.args
        assert event_type == EVENT_DISCOVERY_COMPLETE
        assert data["failure_message"] == "boom"


class TestUpdateListener:
    """Reloads on option changes."""

    async def test_token_update_does_not_reload(self, hass, entry):
        await _async_update_listener(hass, entry)

        hass.config_entries.async_reload.assert_not_awaited()

    async def test_option_change_reloads(self, hass, entry):
        entry.options = {CONF_POLL_INTERVAL: "every_5_minutes"}

        await _async_update_listener(hass, entry)

        hass.config_entries.async_reload.assert_awaited_once_with("entry-1")
