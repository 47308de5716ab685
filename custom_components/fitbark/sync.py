"""Projection of FitBark snapshots onto the local attribute model."""
import asyncio
import logging
from datetime import date
from typing import Awaitable, Callable, List, Optional

from homeassistant.util import dt as dt_util

from .api import FitBarkApiClient
from .const import PLACEHOLDER_DOG_NAME
from .exceptions import FitBarkError, PreconditionFailure, Unauthorized, UserInputFailure
from .models import (
    DogProfile,
    EntitySnapshot,
    LinkedEntity,
    RelationshipKind,
    ScheduledDailyGoal,
    SimilarDogsStats,
)
from .registry import FitBarkRegistry
from .token_store import TokenStore

_LOGGER = logging.getLogger(__name__)


def percent_of_goal(activity_points: int, daily_goal: int) -> int:
    """Return today's progress towards the daily goal, in whole percent (halves round up)."""
    return (activity_points * 200 + daily_goal) // (2 * daily_goal)


def apply_dog_profile(snapshot: EntitySnapshot, profile: DogProfile) -> EntitySnapshot:
    """Project a dog profile onto a snapshot.

    FitBark resets the activity counter silently at the dog's local midnight,
    so a drop in today's percentage is the only sign that a new day started;
    the previous value then becomes yesterday's.
    """
    if profile.battery_level is not None:
        snapshot.battery_level = profile.battery_level
    if profile.daily_goal is not None:
        snapshot.daily_goal = profile.daily_goal
    if profile.activity_value is not None:
        snapshot.activity_points = profile.activity_value

    goal = profile.daily_goal
    activity = profile.activity_value
    if goal is None or activity is None:
        _LOGGER.debug("No goal/activity in profile of %s, skipping percentages", profile.slug)
    elif goal <= 0:
        _LOGGER.warning(
            "Daily goal of %s is %s, skipping goal percentages", profile.slug, goal
        )
    else:
        percent_today = percent_of_goal(activity, goal)
        previous = snapshot.percent_complete_today
        if previous is not None and percent_today < previous:
            _LOGGER.debug("Day rollover for %s: %s%% -> %s%%", profile.slug, previous, percent_today)
            snapshot.percent_complete_yesterday = previous
        snapshot.percent_complete_today = percent_today

    if profile.hourly_average is not None:
        snapshot.hourly_average = profile.hourly_average
    if profile.min_play is not None:
        snapshot.minutes_play = profile.min_play
    if profile.min_active is not None:
        snapshot.minutes_active = profile.min_active
    if profile.min_rest is not None:
        snapshot.minutes_rest = profile.min_rest

    snapshot.dog_name = profile.name or snapshot.dog_name or PLACEHOLDER_DOG_NAME

    if profile.birth is not None:
        snapshot.birthday = profile.birth
    if profile.last_remote_sync is not None:
        snapshot.last_remote_sync = profile.last_remote_sync
    if profile.breed is not None:
        snapshot.breed = profile.breed
    if profile.weight is not None:
        snapshot.weight = profile.weight
        snapshot.weight_unit = profile.weight_unit
    if profile.bluetooth_id is not None:
        snapshot.bluetooth_id = profile.bluetooth_id
    return snapshot


def apply_daily_goals(snapshot: EntitySnapshot, goals: List[ScheduledDailyGoal]) -> EntitySnapshot:
    snapshot.scheduled_goal_changes = [goal.as_dict() for goal in goals]
    return snapshot


def apply_similar_dogs_stats(snapshot: EntitySnapshot, stats: SimilarDogsStats) -> EntitySnapshot:
    snapshot.similar_dogs_average_activity = stats.average_daily_activity
    snapshot.similar_dogs_average_rest_minutes = stats.average_daily_rest_minutes
    return snapshot


class SyncEngine:
    """Refreshes linked dogs from FitBark.

    Each remote fetch for a dog is applied on its own; a failing fetch is
    logged and does not hold back the others.
    """

    def __init__(
        self,
        token_store: TokenStore,
        api: FitBarkApiClient,
        registry: FitBarkRegistry,
    ) -> None:
        """Initialize the engine."""
        self._store = token_store
        self._api = api
        self._registry = registry

    def _token(self) -> str:
        if not self._store.has_valid_access_token():
            raise Unauthorized("Missing FitBark access token")
        return self._store.access_token

    def apply_profile(self, entity: LinkedEntity, profile: DogProfile) -> EntitySnapshot:
        """Apply a profile that is already at hand, e.g. from discovery."""
        snapshot = apply_dog_profile(self._registry.snapshot(entity.external_id), profile)
        self._registry.async_snapshot_updated(entity.external_id)
        return snapshot

    async def _async_guarded(
        self, entity: LinkedEntity, what: str, fetch: Callable[[], Awaitable[None]]
    ) -> bool:
        try:
            await fetch()
        except FitBarkError as err:
            _LOGGER.error("%s for %s failed: %s", what, entity.display_name, err)
            return False
        except Exception:
            _LOGGER.exception("Unexpected error in %s for %s", what, entity.display_name)
            return False
        return True

    async def async_refresh_dog_info(self, entity: LinkedEntity) -> None:
        profile = await self._api.async_get_dog(self._token(), entity.external_id)
        self.apply_profile(entity, profile)

    async def async_refresh_daily_goals(self, entity: LinkedEntity) -> None:
        goals = await self._api.async_get_daily_goals(self._token(), entity.external_id)
        _LOGGER.debug("Daily goals for %s: %s", entity.display_name, goals)
        apply_daily_goals(self._registry.snapshot(entity.external_id), goals)
        self._registry.async_snapshot_updated(entity.external_id)

    async def async_refresh_similar_dogs_stats(self, entity: LinkedEntity) -> None:
        stats = await self._api.async_get_similar_dogs_stats(self._token(), entity.external_id)
        apply_similar_dogs_stats(self._registry.snapshot(entity.external_id), stats)
        self._registry.async_snapshot_updated(entity.external_id)

    async def async_poll(self, entity: LinkedEntity) -> bool:
        """Periodic poll: dog info and goal schedule. Returns True if all fetches succeeded."""
        results = await asyncio.gather(
            self._async_guarded(entity, "Get dog info", lambda: self.async_refresh_dog_info(entity)),
            self._async_guarded(
                entity, "Get daily goals", lambda: self.async_refresh_daily_goals(entity)
            ),
        )
        return all(results)

    async def async_sync_entity(self, entity: LinkedEntity) -> bool:
        """Full refresh: dog info, goal schedule and similar-dog stats."""
        results = await asyncio.gather(
            self._async_guarded(entity, "Get dog info", lambda: self.async_refresh_dog_info(entity)),
            self._async_guarded(
                entity, "Get daily goals", lambda: self.async_refresh_daily_goals(entity)
            ),
            self._async_guarded(
                entity,
                "Get similar dogs stats",
                lambda: self.async_refresh_similar_dogs_stats(entity),
            ),
        )
        return all(results)

    async def async_refresh_daily(self, entity: LinkedEntity) -> bool:
        """Once-daily refresh: goal schedule and similar-dog stats."""
        results = await asyncio.gather(
            self._async_guarded(
                entity, "Get daily goals", lambda: self.async_refresh_daily_goals(entity)
            ),
            self._async_guarded(
                entity,
                "Get similar dogs stats",
                lambda: self.async_refresh_similar_dogs_stats(entity),
            ),
        )
        return all(results)

    async def async_schedule_goal_update(
        self,
        entity: LinkedEntity,
        daily_goal: int,
        start_date: date,
        today: Optional[date] = None,
    ) -> List[ScheduledDailyGoal]:
        """Schedule a new daily goal starting on a future date."""
        if entity.relationship is not RelationshipKind.OWNER:
            raise PreconditionFailure(
                f"Must be {entity.display_name}'s owner to change the daily goal"
            )
        if daily_goal <= 0:
            raise UserInputFailure(f"The daily goal must be positive (got {daily_goal})")
        if start_date <= (today or dt_util.now().date()):
            raise UserInputFailure(f"The goal start date must be in the future (got {start_date})")

        _LOGGER.info(
            "Scheduling %s's daily goal to change to %s on %s",
            entity.display_name,
            daily_goal,
            start_date,
        )
        goals = await self._api.async_set_daily_goal(
            self._token(), entity.external_id, daily_goal, start_date
        )
        apply_daily_goals(self._registry.snapshot(entity.external_id), goals)
        self._registry.async_snapshot_updated(entity.external_id)
        return goals
