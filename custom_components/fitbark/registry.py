"""Local registry of linked FitBark dogs and their attribute snapshots."""
import logging
from typing import Any, Callable, Dict, List, Optional, Set

from homeassistant.helpers.storage import Store

from .const import STORAGE_SAVE_DELAY
from .exceptions import EntityCreationFailure
from .models import EntitySnapshot, LinkedEntity

_LOGGER = logging.getLogger(__name__)

EntityListener = Callable[[LinkedEntity], None]


class FitBarkRegistry:
    """Dogs keyed by FitBark slug, persisted in a Home Assistant ``Store``."""

    def __init__(self, store: Store) -> None:
        """Initialize the registry."""
        self._store = store
        self._entities: Dict[str, LinkedEntity] = {}
        self._snapshots: Dict[str, EntitySnapshot] = {}
        self._added_listeners: List[EntityListener] = []
        self._removed_listeners: List[EntityListener] = []

    async def async_load(self) -> None:
        """Restore the registry from storage."""
        data = await self._store.async_load() or {}
        for raw in data.get("entities", []):
            entity = LinkedEntity.from_dict(raw)
            self._entities[entity.external_id] = entity
        for external_id, raw in data.get("snapshots", {}).items():
            if external_id in self._entities:
                self._snapshots[external_id] = EntitySnapshot.from_dict(raw)
        _LOGGER.debug("Loaded %d linked FitBark dogs from storage", len(self._entities))

    def _data_to_save(self) -> Dict[str, Any]:
        return {
            "entities": [entity.as_dict() for entity in self._entities.values()],
            "snapshots": {
                external_id: snapshot.as_dict()
                for external_id, snapshot in self._snapshots.items()
            },
        }

    def add_listeners(
        self,
        on_added: Optional[EntityListener] = None,
        on_removed: Optional[EntityListener] = None,
    ) -> Callable[[], None]:
        """Subscribe to entity additions/removals; returns an unsubscribe callback."""
        if on_added:
            self._added_listeners.append(on_added)
        if on_removed:
            self._removed_listeners.append(on_removed)

        def remove() -> None:
            if on_added in self._added_listeners:
                self._added_listeners.remove(on_added)
            if on_removed in self._removed_listeners:
                self._removed_listeners.remove(on_removed)

        return remove

    def registered_ids(self) -> Set[str]:
        return set(self._entities)

    def entities(self) -> List[LinkedEntity]:
        return list(self._entities.values())

    def get(self, external_id: str) -> Optional[LinkedEntity]:
        return self._entities.get(external_id)

    def snapshot(self, external_id: str) -> EntitySnapshot:
        """Return the mutable snapshot of a dog, creating an empty one on first use."""
        return self._snapshots.setdefault(external_id, EntitySnapshot())

    def snapshots(self) -> Dict[str, EntitySnapshot]:
        return {external_id: self.snapshot(external_id) for external_id in self._entities}

    async def async_create(self, entity: LinkedEntity) -> LinkedEntity:
        """Register a newly discovered dog."""
        if not entity.external_id:
            raise EntityCreationFailure(f"Cannot add a dog without an identifier: {entity}")
        if entity.external_id in self._entities:
            raise EntityCreationFailure(f"Dog {entity.external_id} is already linked")

        self._entities[entity.external_id] = entity
        self._snapshots.setdefault(entity.external_id, EntitySnapshot(dog_name=entity.display_name))
        await self._store.async_save(self._data_to_save())
        _LOGGER.info("Linked FitBark dog %s (%s)", entity.display_name, entity.external_id)

        for listener in list(self._added_listeners):
            listener(entity)
        return entity

    async def async_delete_all(self) -> int:
        """Remove every linked dog; returns how many were removed."""
        removed = list(self._entities.values())
        self._entities.clear()
        self._snapshots.clear()
        await self._store.async_save(self._data_to_save())

        for entity in removed:
            for listener in list(self._removed_listeners):
                listener(entity)
        _LOGGER.info("Deleted all %d linked FitBark dogs", len(removed))
        return len(removed)

    def async_snapshot_updated(self, external_id: str) -> None:
        """Schedule persistence of an updated snapshot."""
        if external_id in self._entities:
            self._store.async_delay_save(self._data_to_save, STORAGE_SAVE_DELAY)
