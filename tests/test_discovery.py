"""Unit tests for FitBark dog discovery."""
import pytest

from custom_components.fitbark.auth import AuthorizationFlow
from custom_components.fitbark.discovery import NO_DEVICES_MESSAGE, DiscoveryEngine
from custom_components.fitbark.exceptions import RemoteFailure
from custom_components.fitbark.models import DogProfile, DogRelation, RelationshipKind
from custom_components.fitbark.sync import SyncEngine
from custom_components.fitbark.token_store import TokenStore


def _relation(slug, name, status="OWNER", **fields):
    return DogRelation(status=status, dog=DogProfile(slug=slug, name=name, **fields))


@pytest.fixture
def engine(authorized_store, api, registry, sync_engine):
    return DiscoveryEngine(authorized_store, api, registry, sync_engine)


class TestDiscovery:
    """Reconciling remote dog relations with the registry."""

    async def test_requires_token(self, api, registry):
        token_store = TokenStore()
        engine = DiscoveryEngine(token_store, api, registry, SyncEngine(token_store, api, registry))

        run = await engine.async_discover()

        assert run.failure_message == "Missing FitBark access token"
        assert not run.finished
        api.async_get_dog_relations.assert_not_awaited()

    async def test_links_new_dogs(self, engine, api, registry):
        api.async_get_dog_relations.return_value = [
            _relation("rex-1", "Rex", battery_level=80, activity_value=4500, daily_goal=9000),
            _relation("fido-2", "Fido", status="FRIEND"),
        ]

        run = await engine.async_discover()

        assert run.finished
        assert run.failure_message is None
        assert run.newly_discovered_count == 2
        assert run.already_discovered_count == 0
        rex = registry.get("rex-1")
        assert rex.display_name == "Rex's FitBark"
        assert rex.relationship is RelationshipKind.OWNER
        assert registry.get("fido-2").relationship is RelationshipKind.FOLLOWER
        snapshot = registry.snapshot("rex-1")
        assert snapshot.dog_name == "Rex"
        assert snapshot.battery_level == 80
        assert snapshot.percent_complete_today == 50
        assert engine.last_run is run

    async def test_is_idempotent(self, engine, api, registry):
        """Running discovery again never duplicates a dog."""
        api.async_get_dog_relations.return_value = [
            _relation("rex-1", "Rex"),
            _relation("fido-2", "Fido"),
        ]
        await engine.async_discover()

        run = await engine.async_discover()

        assert run.finished
        assert run.newly_discovered_count == 0
        assert run.already_discovered_count == 2
        assert len(registry.entities()) == 2

    async def test_adds_only_new_dogs(self, engine, api, registry):
        api.async_get_dog_relations.return_value = [_relation("rex-1", "Rex")]
        await engine.async_discover()
        api.async_get_dog_relations.return_value = [
            _relation("rex-1", "Rex"),
            _relation("bella-3", "Bella"),
        ]

        run = await engine.async_discover()

        assert run.newly_discovered_count == 1
        assert run.already_discovered_count == 1
        assert registry.registered_ids() == {"rex-1", "bella-3"}

    async def test_no_dogs(self, engine, api, registry):
        api.async_get_dog_relations.return_value = []

        run = await engine.async_discover()

        assert run.failure_message == NO_DEVICES_MESSAGE
        assert not run.finished
        assert registry.entities() == []

    async def test_remote_failure(self, engine, api):
        api.async_get_dog_relations.side_effect = RemoteFailure("Get dog relations request failed", status=500)

        run = await engine.async_discover()

        assert "status 500" in run.failure_message
        assert not run.finished

    async def test_malformed_relation_stops_the_run(self, engine, api, registry):
        api.async_get_dog_relations.return_value = [
            _relation("rex-1", "Rex"),
            _relation(None, "Ghost"),
            _relation("bella-3", "Bella"),
        ]

        run = await engine.async_discover()

        assert "missing dog slug" in run.failure_message
        assert not run.finished
        assert run.newly_discovered_count == 1
        assert registry.registered_ids() == {"rex-1"}

    async def test_relation_without_name(self, engine, api):
        api.async_get_dog_relations.return_value = [_relation("rex-1", None)]

        run = await engine.async_discover()

        assert "missing dog name" in run.failure_message

    async def test_unknown_status(self, engine, api, registry):
        api.async_get_dog_relations.return_value = [_relation("rex-1", "Rex", status="STRANGER")]

        run = await engine.async_discover()

        assert "STRANGER" in run.failure_message
        assert registry.entities() == []

    async def test_only_owned_skips_followed_dogs(self, engine, api, registry):
        engine.only_owned = True
        api.async_get_dog_relations.return_value = [
            _relation("rex-1", "Rex"),
            _relation("fido-2", "Fido", status="FRIEND"),
        ]

        run = await engine.async_discover()

        assert run.finished
        assert run.newly_discovered_count == 1
        assert registry.registered_ids() == {"rex-1"}

    async def test_sign_out_after_discovery(self, engine, authorized_store, api, registry):
        """Three linked dogs are all removed by sign-out."""
        api.async_get_dog_relations.return_value = [
            _relation("rex-1", "Rex"),
            _relation("fido-2", "Fido"),
            _relation("bella-3", "Bella"),
        ]
        await engine.async_discover()
        flow = AuthorizationFlow(authorized_store, api, "https://ha/cb", registry)

        assert await flow.async_sign_out() == 3
        assert registry.entities() == []
        assert not authorized_store.has_valid_access_token()
