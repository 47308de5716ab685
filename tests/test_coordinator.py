"""Unit tests for the FitBark coordinator.

Home Assistant is mocked; the coordinator runs over a real registry and
authorization flow with a mocked sync engine and scheduler.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from homeassistant.exceptions import ConfigEntryAuthFailed
from homeassistant.helpers.update_coordinator import UpdateFailed

from custom_components.fitbark.auth import AuthorizationFlow
from custom_components.fitbark.const import (
    DAILY_REFRESH_INTERVAL,
    DOMAIN,
    ISSUE_TOKEN_EXPIRING,
    PollingInterval,
)
from custom_components.fitbark.coordinator import FitBarkCoordinator
from custom_components.fitbark.models import LinkedEntity, RelationshipKind
from custom_components.fitbark.sync import SyncEngine

MODULE = "custom_components.fitbark.coordinator"
REDIRECT_URL = "https://ha.example.com/api/fitbark/authentication"
NINETY_DAYS = 90 * 24 * 3600


@pytest.fixture
def hass():
    return MagicMock()


@pytest.fixture
def entry():
    entry = MagicMock()
    entry.entry_id = "entry-1"
    return entry


@pytest.fixture
def engine():
    engine = MagicMock(spec=SyncEngine)
    engine.async_poll = AsyncMock(return_value=True)
    engine.async_refresh_daily = AsyncMock(return_value=True)
    engine.async_sync_entity = AsyncMock(return_value=True)
    return engine


@pytest.fixture
def scheduler():
    return MagicMock()


@pytest.fixture
def auth(authorized_store, api):
    authorized_store.set_tokens("tok1", "ref1", NINETY_DAYS)
    return AuthorizationFlow(authorized_store, api, REDIRECT_URL)


@pytest.fixture
def issues():
    with patch(f"{MODULE}.ir") as ir:
        yield ir


@pytest.fixture
def coordinator(hass, entry, auth, registry, engine, scheduler, issues):
    return FitBarkCoordinator(hass, entry, auth, registry, engine, scheduler)


@pytest.fixture
async def dogs(registry):
    return [
        await registry.async_create(LinkedEntity("rex-1", "Rex's FitBark", RelationshipKind.OWNER)),
        await registry.async_create(
            LinkedEntity("fido-2", "Fido's FitBark", RelationshipKind.FOLLOWER)
        ),
    ]


class TestUpdateData:
    """Periodic polling of every linked dog."""

    async def test_requires_token(self, coordinator, auth, engine, dogs):
        auth.token_store.clear_all()

        with pytest.raises(ConfigEntryAuthFailed):
            await coordinator._async_update_data()
        engine.async_poll.assert_not_awaited()

    async def test_no_dogs(self, coordinator, engine):
        assert await coordinator._async_update_data() == {}
        engine.async_poll.assert_not_awaited()

    async def test_polls_every_dog(self, coordinator, engine, dogs):
        data = await coordinator._async_update_data()

        assert engine.async_poll.await_count == 2
        assert set(data) == {"rex-1", "fido-2"}

    async def test_one_failing_dog_is_not_a_failed_update(self, coordinator, engine, dogs):
        engine.async_poll.side_effect = [False, True]

        data = await coordinator._async_update_data()

        assert set(data) == {"rex-1", "fido-2"}

    async def test_every_dog_failing(self, coordinator, engine, dogs):
        engine.async_poll.return_value = False

        with pytest.raises(UpdateFailed):
            await coordinator._async_update_data()


class TestTokenExpiry:
    """Repair issue while the authorization is about to expire."""

    async def test_creates_issue_inside_warning_window(self, coordinator, auth, issues):
        auth.token_store.set_tokens("tok1", "ref1", 3600)

        await coordinator._async_update_data()

        issues.async_create_issue.assert_called_once()
        args, kwargs = issues.async_create_issue.call_args
        assert args[1:] == (DOMAIN, ISSUE_TOKEN_EXPIRING)
        assert kwargs["translation_key"] == ISSUE_TOKEN_EXPIRING
        assert "expires" in kwargs["translation_placeholders"]
        assert coordinator.authorization_expires_soon == auth.token_store.expires_at

    async def test_clears_issue_outside_warning_window(self, coordinator, issues):
        await coordinator._async_update_data()

        issues.async_create_issue.assert_not_called()
        issues.async_delete_issue.assert_called_once()
        assert coordinator.authorization_expires_soon is None


class TestRefreshes:
    """Daily and manual refreshes."""

    async def test_daily_refresh(self, coordinator, engine, dogs):
        await coordinator.async_refresh_daily()

        assert engine.async_refresh_daily.await_count == 2
        assert set(coordinator.data) == {"rex-1", "fido-2"}

    async def test_daily_refresh_skipped_without_token(self, coordinator, auth, engine, dogs):
        auth.token_store.clear_all()

        await coordinator.async_refresh_daily()

        engine.async_refresh_daily.assert_not_awaited()

    async def test_refresh_one_dog(self, coordinator, engine, dogs):
        await coordinator.async_refresh_now("fido-2")

        engine.async_sync_entity.assert_awaited_once_with(dogs[1])

    async def test_refresh_now_requires_token(self, coordinator, auth, engine, dogs):
        auth.token_store.clear_all()

        with pytest.raises(ConfigEntryAuthFailed):
            await coordinator.async_refresh_now()
        engine.async_sync_entity.assert_not_awaited()


class TestSchedule:
    """Job scheduling for a polling option."""

    def test_polling_and_daily_jobs(self, coordinator, scheduler):
        coordinator.async_schedule(PollingInterval.EVERY_5_MINUTES)

        scheduler.cancel_all.assert_called_once()
        intervals = [call.args[0] for call in scheduler.every.call_args_list]
        assert intervals == [PollingInterval.EVERY_5_MINUTES.interval, DAILY_REFRESH_INTERVAL]
        scheduler.once.assert_called_once()

    def test_polling_disabled(self, coordinator, scheduler):
        coordinator.async_schedule(PollingInterval.NEVER)

        intervals = [call.args[0] for call in scheduler.every.call_args_list]
        assert intervals == [DAILY_REFRESH_INTERVAL]
        scheduler.once.assert_called_once()
