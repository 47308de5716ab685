"""Sensor platform for FitBark integration."""
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorEntityDescription,
    SensorStateClass,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import PERCENTAGE, UnitOfTime
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.dispatcher import async_dispatcher_connect
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from . import signal_dog_added
from .const import DOMAIN
from .coordinator import FitBarkCoordinator
from .models import EntitySnapshot, LinkedEntity


@dataclass(frozen=True, kw_only=True)
class FitBarkSensorEntityDescription(SensorEntityDescription):
    """Describes a FitBark sensor and how to read it from a snapshot."""

    value_fn: Callable[[EntitySnapshot], Any] = lambda snapshot: None


SENSOR_DESCRIPTIONS = (
    FitBarkSensorEntityDescription(
        key="battery",
        name="Battery",
        device_class=SensorDeviceClass.BATTERY,
        native_unit_of_measurement=PERCENTAGE,
        state_class=SensorStateClass.MEASUREMENT,
        value_fn=lambda snapshot: snapshot.battery_level,
    ),
    FitBarkSensorEntityDescription(
        key="activity_points",
        name="BarkPoints today",
        icon="mdi:paw",
        state_class=SensorStateClass.TOTAL_INCREASING,
        value_fn=lambda snapshot: snapshot.activity_points,
    ),
    FitBarkSensorEntityDescription(
        key="daily_goal",
        name="Daily goal",
        icon="mdi:flag-checkered",
        value_fn=lambda snapshot: snapshot.daily_goal,
    ),
    FitBarkSensorEntityDescription(
        key="percent_complete_today",
        name="Goal completed today",
        icon="mdi:percent",
        native_unit_of_measurement=PERCENTAGE,
        state_class=SensorStateClass.MEASUREMENT,
        value_fn=lambda snapshot: snapshot.percent_complete_today,
    ),
    FitBarkSensorEntityDescription(
        key="percent_complete_yesterday",
        name="Goal completed yesterday",
        icon="mdi:percent-outline",
        native_unit_of_measurement=PERCENTAGE,
        value_fn=lambda snapshot: snapshot.percent_complete_yesterday,
    ),
    FitBarkSensorEntityDescription(
        key="minutes_play",
        name="Play time today",
        icon="mdi:tennis-ball",
        device_class=SensorDeviceClass.DURATION,
        native_unit_of_measurement=UnitOfTime.MINUTES,
        state_class=SensorStateClass.MEASUREMENT,
        value_fn=lambda snapshot: snapshot.minutes_play,
    ),
    FitBarkSensorEntityDescription(
        key="minutes_active",
        name="Active time today",
        icon="mdi:run",
        device_class=SensorDeviceClass.DURATION,
        native_unit_of_measurement=UnitOfTime.MINUTES,
        state_class=SensorStateClass.MEASUREMENT,
        value_fn=lambda snapshot: snapshot.minutes_active,
    ),
    FitBarkSensorEntityDescription(
        key="minutes_rest",
        name="Rest time today",
        icon="mdi:sleep",
        device_class=SensorDeviceClass.DURATION,
        native_unit_of_measurement=UnitOfTime.MINUTES,
        state_class=SensorStateClass.MEASUREMENT,
        value_fn=lambda snapshot: snapshot.minutes_rest,
    ),
    FitBarkSensorEntityDescription(
        key="hourly_average",
        name="Hourly average",
        icon="mdi:chart-line",
        state_class=SensorStateClass.MEASUREMENT,
        value_fn=lambda snapshot: snapshot.hourly_average,
    ),
    FitBarkSensorEntityDescription(
        key="last_sync",
        name="Last sync",
        device_class=SensorDeviceClass.TIMESTAMP,
        value_fn=lambda snapshot: snapshot.last_remote_sync,
    ),
    FitBarkSensorEntityDescription(
        key="similar_dogs_average_activity",
        name="Similar dogs average activity",
        icon="mdi:dog-side",
        value_fn=lambda snapshot: snapshot.similar_dogs_average_activity,
    ),
    FitBarkSensorEntityDescription(
        key="similar_dogs_average_rest",
        name="Similar dogs average rest",
        icon="mdi:sleep",
        device_class=SensorDeviceClass.DURATION,
        native_unit_of_measurement=UnitOfTime.MINUTES,
        value_fn=lambda snapshot: snapshot.similar_dogs_average_rest_minutes,
    ),
)


def _sensors_for(coordinator: FitBarkCoordinator, entity: LinkedEntity) -> List["FitBarkSensor"]:
    return [FitBarkSensor(coordinator, entity, description) for description in SENSOR_DESCRIPTIONS]


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up FitBark sensors."""
    data = hass.data[DOMAIN][config_entry.entry_id]
    coordinator: FitBarkCoordinator = data["coordinator"]

    entities = []
    for entity in data["registry"].entities():
        entities.extend(_sensors_for(coordinator, entity))
    async_add_entities(entities)

    @callback
    def _dog_added(entity: LinkedEntity) -> None:
        async_add_entities(_sensors_for(coordinator, entity))

    config_entry.async_on_unload(
        async_dispatcher_connect(hass, signal_dog_added(config_entry), _dog_added)
    )


class FitBarkSensor(CoordinatorEntity[FitBarkCoordinator], SensorEntity):
    """A single reading of one linked dog."""

    entity_description: FitBarkSensorEntityDescription
    _attr_has_entity_name = True

    def __init__(
        self,
        coordinator: FitBarkCoordinator,
        entity: LinkedEntity,
        description: FitBarkSensorEntityDescription,
    ) -> None:
        """Initialize the sensor."""
        super().__init__(coordinator)
        self.entity_description = description
        self._dog = entity
        self._attr_unique_id = f"{entity.external_id}_{description.key}"

    @property
    def _snapshot(self) -> Optional[EntitySnapshot]:
        if not self.coordinator.data:
            return None
        return self.coordinator.data.get(self._dog.external_id)

    @property
    def device_info(self) -> Dict[str, Any]:
        """Return device information."""
        return {
            "identifiers": {(DOMAIN, self._dog.external_id)},
            "name": self._dog.display_name,
            "manufacturer": "FitBark",
            "model": "Dog activity monitor",
        }

    @property
    def available(self) -> bool:
        return super().available and self._snapshot is not None

    @property
    def native_value(self) -> Any:
        snapshot = self._snapshot
        if snapshot is None:
            return None
        return self.entity_description.value_fn(snapshot)

    @property
    def extra_state_attributes(self) -> Optional[Dict[str, Any]]:
        """Dog profile details, on the activity sensor only."""
        snapshot = self._snapshot
        if snapshot is None or self.entity_description.key != "activity_points":
            return None
        expires = self.coordinator.authorization_expires_soon
        return {
            "dog_id": self._dog.external_id,
            "dog_name": snapshot.dog_name,
            "relationship": self._dog.relationship.value,
            "birthday": snapshot.birthday.isoformat() if snapshot.birthday else None,
            "breed": snapshot.breed,
            "weight": snapshot.weight,
            "weight_unit": snapshot.weight_unit,
            "bluetooth_id": snapshot.bluetooth_id,
            "scheduled_goal_changes": snapshot.scheduled_goal_changes,
            "authorization_expires": expires.isoformat() if expires else None,
        }
