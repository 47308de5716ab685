"""Discovery of the dogs linked to the signed-in FitBark account."""
import logging
from typing import Optional

from .api import FitBarkApiClient
from .exceptions import EntityCreationFailure, FitBarkError
from .models import DiscoveryRunState, LinkedEntity, RelationshipKind
from .registry import FitBarkRegistry
from .sync import SyncEngine
from .token_store import TokenStore

_LOGGER = logging.getLogger(__name__)

NO_DEVICES_MESSAGE = (
    "No devices associated with account. You need to be the FitBark owner or "
    "follower of at least one dog before you can continue"
)


class DiscoveryEngine:
    """Reconciles the remote dog relations with the local registry.

    Running discovery again never duplicates a dog: dogs are keyed by their
    FitBark slug and existing ones are only counted.
    """

    def __init__(
        self,
        token_store: TokenStore,
        api: FitBarkApiClient,
        registry: FitBarkRegistry,
        sync_engine: SyncEngine,
        only_owned: bool = False,
    ) -> None:
        """Initialize the engine."""
        self._store = token_store
        self._api = api
        self._registry = registry
        self._sync = sync_engine
        self.only_owned = only_owned
        self.last_run: Optional[DiscoveryRunState] = None

    async def async_discover(self) -> DiscoveryRunState:
        """Run one discovery pass and return its outcome."""
        run = DiscoveryRunState()
        self.last_run = run

        if not self._store.has_valid_access_token():
            _LOGGER.error("Discovery requested without a stored FitBark access token")
            run.failure_message = "Missing FitBark access token"
            return run

        registered = self._registry.registered_ids()
        _LOGGER.info("Starting FitBark dog discovery (already linked: %s)", sorted(registered))

        try:
            relations = await self._api.async_get_dog_relations(self._store.access_token)
        except FitBarkError as err:
            _LOGGER.error("Get dog relations request failed: %s", err)
            run.failure_message = str(err)
            return run

        if not relations:
            _LOGGER.warning("No dogs connected to the current FitBark account")
            run.failure_message = NO_DEVICES_MESSAGE
            return run

        for relation in relations:
            dog = relation.dog
            if not dog.slug or not dog.name:
                missing = "slug" if not dog.slug else "name"
                _LOGGER.error("Dog relation without a %s: %s", missing, relation)
                run.failure_message = f"Invalid dog relation format: {relation} (missing dog {missing})"
                return run

            if dog.slug in registered:
                _LOGGER.debug("%s already discovered, not re-adding", dog.name)
                run.already_discovered_count += 1
                continue

            relationship = relation.relationship
            if self.only_owned and relationship is not RelationshipKind.OWNER:
                _LOGGER.debug("Skipping %s, not an owned dog (%s)", dog.name, relation.status)
                continue

            if relationship is None:
                run.failure_message = (
                    f"Invalid dog relation format: {relation} (unknown status {relation.status!r})"
                )
                return run

            entity = LinkedEntity(
                external_id=dog.slug,
                display_name=f"{dog.name}'s FitBark",
                relationship=relationship,
            )
            try:
                await self._registry.async_create(entity)
            except EntityCreationFailure as err:
                _LOGGER.error("Adding %s failed: %s", dog.name, err)
                run.failure_message = str(err) or f"Unknown failure adding {dog.name}"
                return run

            self._sync.apply_profile(entity, dog)
            registered.add(dog.slug)
            run.newly_discovered_count += 1

        run.finished = True
        _LOGGER.info(
            "FitBark discovery completed: %d new, %d already linked",
            run.newly_discovered_count,
            run.already_discovered_count,
        )
        return run
