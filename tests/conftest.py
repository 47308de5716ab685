"""Shared fixtures for the FitBark tests."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from custom_components.fitbark.api import FitBarkApiClient
from custom_components.fitbark.registry import FitBarkRegistry
from custom_components.fitbark.sync import SyncEngine
from custom_components.fitbark.token_store import TokenStore


@pytest.fixture
def store():
    """Stand-in for homeassistant.helpers.storage.Store."""
    store = MagicMock()
    store.async_load = AsyncMock(return_value=None)
    store.async_save = AsyncMock()
    store.async_delay_save = MagicMock()
    return store


@pytest.fixture
def registry(store):
    return FitBarkRegistry(store)


@pytest.fixture
def token_store():
    """Store holding client credentials but no user token."""
    token_store = TokenStore()
    token_store.set_credentials("abc", "xyz")
    return token_store


@pytest.fixture
def authorized_store(token_store):
    token_store.set_tokens("tok1", "ref1", 3600)
    return token_store


@pytest.fixture
def api():
    return AsyncMock(spec=FitBarkApiClient)


@pytest.fixture
def sync_engine(authorized_store, api, registry):
    return SyncEngine(authorized_store, api, registry)
