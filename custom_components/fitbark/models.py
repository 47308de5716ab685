"""Data models for FitBark integration.

Remote payloads are decoded once, at the API boundary, into the response
schemas below. Everything downstream works with these records instead of raw
JSON. Records that are persisted carry ``as_dict``/``from_dict`` helpers.
"""
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from homeassistant.util import dt as dt_util

from .exceptions import ProtocolFailure

_LOGGER = logging.getLogger(__name__)


def _optional_int(payload: Dict[str, Any], key: str) -> Optional[int]:
    """Read an integer field that may be absent, null, numeric or a numeric string."""
    value = payload.get(key)
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError) as err:
        raise ProtocolFailure(f"Field '{key}' is not numeric: {value!r}") from err


def _optional_float(payload: Dict[str, Any], key: str) -> Optional[float]:
    """Read a float field that may be absent or null."""
    value = payload.get(key)
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError) as err:
        raise ProtocolFailure(f"Field '{key}' is not numeric: {value!r}") from err
    if not math.isfinite(number):
        raise ProtocolFailure(f"Field '{key}' is not finite: {value!r}")
    return number


def _optional_str(payload: Dict[str, Any], key: str) -> Optional[str]:
    """Read a string field, treating blank strings as absent."""
    value = payload.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _require_mapping(payload: Any, context: str) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ProtocolFailure(f"Expected a JSON object for {context}, got: {payload!r}")
    return payload


class RelationshipKind(Enum):
    """How the signed-in user relates to a dog."""

    OWNER = "OWNER"
    FOLLOWER = "FOLLOWER"

    @classmethod
    def from_remote(cls, status: Optional[str]) -> Optional["RelationshipKind"]:
        """Map the remote relation status (OWNER or FRIEND) to a kind."""
        if not status:
            return None
        status = status.strip().upper()
        if status == "OWNER":
            return cls.OWNER
        if status in ("FRIEND", "FOLLOWER"):
            return cls.FOLLOWER
        return None


@dataclass
class ClientCredentials:
    """FitBark developer API client credentials."""

    client_id: Optional[str] = None
    client_secret: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        """Return True when both credentials are non-blank."""
        return bool(
            self.client_id and self.client_id.strip()
            and self.client_secret and self.client_secret.strip()
        )


@dataclass
class AccountSummary:
    """The signed-in FitBark account."""

    username: Optional[str] = None
    name: Optional[str] = None
    first_name: Optional[str] = None

    @classmethod
    def from_json(cls, payload: Any) -> "AccountSummary":
        """Decode the /user response."""
        user = _require_mapping(_require_mapping(payload, "user info").get("user"), "user")
        return cls(
            username=_optional_str(user, "username"),
            name=_optional_str(user, "name"),
            first_name=_optional_str(user, "first_name"),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {"username": self.username, "name": self.name, "first_name": self.first_name}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["AccountSummary"]:
        if not data:
            return None
        return cls(
            username=data.get("username"),
            name=data.get("name"),
            first_name=data.get("first_name"),
        )


@dataclass
class TokenRecord:
    """User authorization issued by the token endpoint."""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    account: Optional[AccountSummary] = None


@dataclass
class RedirectValidationState:
    """Progress of the redirect URI self-registration."""

    is_validated: bool = False
    client_access_token: Optional[str] = None


@dataclass
class TokenResponse:
    """Decoded /oauth/token response."""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None

    @classmethod
    def from_json(cls, payload: Any) -> "TokenResponse":
        """Decode a token response; missing fields are left for the caller to judge."""
        payload = _require_mapping(payload, "token response")
        expires_in = None
        raw_expires_in = payload.get("expires_in")
        if raw_expires_in is not None:
            try:
                expires_in = int(raw_expires_in)
            except (TypeError, ValueError, OverflowError):
                _LOGGER.warning("Unknown expiration interval for FitBark token: %r", raw_expires_in)
        return cls(
            access_token=_optional_str(payload, "access_token"),
            refresh_token=_optional_str(payload, "refresh_token"),
            expires_in=expires_in,
        )


@dataclass
class DogProfile:
    """Profile and activity snapshot of one dog, as reported by FitBark."""

    slug: Optional[str] = None
    name: Optional[str] = None
    battery_level: Optional[int] = None
    activity_value: Optional[int] = None
    daily_goal: Optional[int] = None
    hourly_average: Optional[int] = None
    min_play: Optional[int] = None
    min_active: Optional[int] = None
    min_rest: Optional[int] = None
    birth: Optional[date] = None
    last_sync: Optional[datetime] = None
    activity_date: Optional[datetime] = None
    breed: Optional[str] = None
    weight: Optional[float] = None
    weight_unit: Optional[str] = None
    bluetooth_id: Optional[str] = None

    @classmethod
    def from_json(cls, payload: Any) -> "DogProfile":
        """Decode a ``dog`` object from /dog/{slug} or /dog_relations."""
        dog = _require_mapping(payload, "dog")
        breed = dog.get("breed1")
        return cls(
            slug=_optional_str(dog, "slug"),
            name=_optional_str(dog, "name"),
            battery_level=_optional_int(dog, "battery_level"),
            activity_value=_optional_int(dog, "activity_value"),
            daily_goal=_optional_int(dog, "daily_goal"),
            hourly_average=_optional_int(dog, "hourly_average"),
            min_play=_optional_int(dog, "min_play"),
            min_active=_optional_int(dog, "min_active"),
            min_rest=_optional_int(dog, "min_rest"),
            birth=_parse_date(dog.get("birth")),
            last_sync=_parse_timestamp(dog.get("last_sync")),
            activity_date=_parse_timestamp(dog.get("activity_date")),
            breed=_optional_str(breed, "name") if isinstance(breed, dict) else None,
            weight=_optional_float(dog, "weight"),
            weight_unit=_optional_str(dog, "weight_unit"),
            bluetooth_id=_optional_str(dog, "bluetooth_id"),
        )

    @property
    def last_remote_sync(self) -> Optional[datetime]:
        """Return the last device sync, whichever response key carried it."""
        return self.last_sync or self.activity_date


@dataclass
class DogRelation:
    """One entry of /dog_relations."""

    status: Optional[str]
    dog: DogProfile

    @classmethod
    def from_json(cls, payload: Any) -> "DogRelation":
        relation = _require_mapping(payload, "dog relation")
        dog = relation.get("dog")
        return cls(
            status=_optional_str(relation, "status"),
            dog=DogProfile.from_json(dog) if isinstance(dog, dict) else DogProfile(),
        )

    @property
    def relationship(self) -> Optional[RelationshipKind]:
        return RelationshipKind.from_remote(self.status)


@dataclass
class ScheduledDailyGoal:
    """A daily goal value taking effect on a date."""

    date: Optional[str]
    goal: Optional[int]

    @classmethod
    def from_json(cls, payload: Any) -> "ScheduledDailyGoal":
        entry = _require_mapping(payload, "daily goal")
        return cls(date=_optional_str(entry, "date"), goal=_optional_int(entry, "goal"))

    def as_dict(self) -> Dict[str, Any]:
        return {"date": self.date, "goal": self.goal}


@dataclass
class SimilarDogsStats:
    """Peer-group averages from /similar_dogs_stats."""

    average_daily_activity: Optional[int]
    average_daily_rest_minutes: Optional[int]

    @classmethod
    def from_json(cls, payload: Any) -> "SimilarDogsStats":
        stats = _require_mapping(payload, "similar dogs stats")
        return cls(
            average_daily_activity=_optional_int(stats, "this_average_daily_activity"),
            average_daily_rest_minutes=_optional_int(stats, "this_average_daily_rest_minutes"),
        )


@dataclass
class LinkedEntity:
    """A dog mirrored locally, keyed by its FitBark slug."""

    external_id: str
    display_name: str
    relationship: RelationshipKind
    registered_at: datetime = field(default_factory=dt_util.utcnow)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "external_id": self.external_id,
            "display_name": self.display_name,
            "relationship": self.relationship.value,
            "registered_at": self.registered_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LinkedEntity":
        return cls(
            external_id=data["external_id"],
            display_name=data["display_name"],
            relationship=RelationshipKind(data["relationship"]),
            registered_at=dt_util.parse_datetime(data["registered_at"]) or dt_util.utcnow(),
        )


@dataclass
class EntitySnapshot:
    """Local attribute model of one linked dog."""

    dog_name: Optional[str] = None
    battery_level: Optional[int] = None
    activity_points: Optional[int] = None
    daily_goal: Optional[int] = None
    percent_complete_today: Optional[int] = None
    percent_complete_yesterday: Optional[int] = None
    minutes_play: Optional[int] = None
    minutes_active: Optional[int] = None
    minutes_rest: Optional[int] = None
    hourly_average: Optional[int] = None
    last_remote_sync: Optional[datetime] = None
    scheduled_goal_changes: List[Dict[str, Any]] = field(default_factory=list)
    birthday: Optional[date] = None
    breed: Optional[str] = None
    weight: Optional[float] = None
    weight_unit: Optional[str] = None
    bluetooth_id: Optional[str] = None
    similar_dogs_average_activity: Optional[int] = None
    similar_dogs_average_rest_minutes: Optional[int] = None

    def as_dict(self) -> Dict[str, Any]:
        data = dict(self.__dict__)
        data["scheduled_goal_changes"] = list(self.scheduled_goal_changes)
        if self.last_remote_sync is not None:
            data["last_remote_sync"] = self.last_remote_sync.isoformat()
        if self.birthday is not None:
            data["birthday"] = self.birthday.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EntitySnapshot":
        known = {key: value for key, value in data.items() if key in cls.__dataclass_fields__}
        if known.get("last_remote_sync"):
            known["last_remote_sync"] = dt_util.parse_datetime(known["last_remote_sync"])
        if known.get("birthday"):
            known["birthday"] = dt_util.parse_date(known["birthday"])
        return cls(**known)


@dataclass
class DiscoveryRunState:
    """Outcome of one discovery invocation."""

    started_at: datetime = field(default_factory=dt_util.utcnow)
    newly_discovered_count: int = 0
    already_discovered_count: int = 0
    finished: bool = False
    failure_message: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "newly_discovered_count": self.newly_discovered_count,
            "already_discovered_count": self.already_discovered_count,
            "finished": self.finished,
            "failure_message": self.failure_message,
        }


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse FitBark timestamps such as ``2021-04-16T10:20:30.000Z``."""
    if not value:
        return None
    try:
        parsed = dt_util.parse_datetime(str(value))
    except ValueError as err:
        raise ProtocolFailure(f"Invalid timestamp: {value!r}") from err
    if parsed is None:
        raise ProtocolFailure(f"Unrecognized timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt_util.UTC)
    return parsed


def _parse_date(value: Any) -> Optional[date]:
    """Parse ``yyyy-MM-dd`` dates."""
    if not value:
        return None
    parsed = dt_util.parse_date(str(value)[:10])
    if parsed is None:
        raise ProtocolFailure(f"Unrecognized date: {value!r}")
    return parsed
