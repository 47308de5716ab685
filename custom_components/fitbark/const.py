"""Constants for FitBark integration."""
from datetime import timedelta
from enum import Enum
from typing import Optional

DOMAIN = "fitbark"
PLATFORMS = ["sensor"]

# Configuration keys
CONF_CLIENT_ID = "client_id"
CONF_CLIENT_SECRET = "client_secret"
CONF_ACCESS_TOKEN = "access_token"
CONF_REFRESH_TOKEN = "refresh_token"
CONF_EXPIRES_AT = "expires_at"
CONF_ACCOUNT = "account"
CONF_REDIRECT_VALIDATED = "redirect_validated"
CONF_REDIRECT_URL = "redirect_url"

# Options
CONF_POLL_INTERVAL = "poll_interval"
CONF_ONLY_OWNED = "only_owned"

# Remote endpoints
API_HOST = "https://app.fitbark.com"
AUTHORIZE_URL = f"{API_HOST}/oauth/authorize"
TOKEN_URL = f"{API_HOST}/oauth/token"
API_BASE = f"{API_HOST}/api/v2"
REDIRECT_URIS_PATH = "/redirect_urls"
USER_PATH = "/user"
DOG_RELATIONS_PATH = "/dog_relations"
DOG_PATH = "/dog/{slug}"
DAILY_GOAL_PATH = "/daily_goal/{slug}"
SIMILAR_DOGS_STATS_PATH = "/similar_dogs_stats"

# Scope granted to client-credential tokens, used only for redirect URI management
CLIENT_CREDENTIALS_SCOPE = "fitbark_open_api_2745H78RVS"

REQUEST_TIMEOUT = 30  # seconds

# Inbound OAuth callback
AUTH_CALLBACK_PATH = "/api/fitbark/authentication"
AUTH_CALLBACK_NAME = "api:fitbark:authentication"

# Authorization advisories
EXPIRY_WARNING_WINDOW = timedelta(days=30)

# Sync
DAILY_REFRESH_INTERVAL = timedelta(days=1)
INITIAL_DAILY_REFRESH_DELAY = timedelta(seconds=30)
PLACEHOLDER_DOG_NAME = "Mystery Pup"

# Storage
STORAGE_VERSION = 1
STORAGE_SAVE_DELAY = 10  # seconds

# Dispatcher signals and bus events
SIGNAL_DOG_ADDED = f"{DOMAIN}_dog_added"
EVENT_AUTHORIZATION = f"{DOMAIN}_authorization"
EVENT_TOKEN_REFRESH = f"{DOMAIN}_token_refresh"
EVENT_SIGN_OUT = f"{DOMAIN}_sign_out"
EVENT_REDIRECT_URIS_UPDATED = f"{DOMAIN}_redirect_uris_updated"
EVENT_DISCOVERY_COMPLETE = f"{DOMAIN}_discovery_complete"
EVENT_DEVICES_DELETED = f"{DOMAIN}_devices_deleted"

ISSUE_TOKEN_EXPIRING = "token_expiring"

# Services
SERVICE_REFRESH_NOW = "refresh_now"
SERVICE_SCHEDULE_GOAL_UPDATE = "schedule_goal_update"
SERVICE_SIGN_OUT = "sign_out"
SERVICE_DELETE_ALL = "delete_all"
SERVICE_DISCOVER = "discover"
SERVICE_REFRESH_TOKEN = "refresh_token"
SERVICE_VALIDATE_REDIRECT_URIS = "validate_redirect_uris"

ATTR_DOG_ID = "dog_id"
ATTR_DAILY_GOAL = "daily_goal"
ATTR_START_DATE = "start_date"
ATTR_KEEP_CREDENTIALS = "keep_credentials"


class PollingInterval(Enum):
    """How often each linked dog is polled."""

    NEVER = None
    EVERY_1_MINUTE = timedelta(minutes=1)
    EVERY_5_MINUTES = timedelta(minutes=5)
    EVERY_10_MINUTES = timedelta(minutes=10)
    EVERY_15_MINUTES = timedelta(minutes=15)
    EVERY_30_MINUTES = timedelta(minutes=30)
    EVERY_1_HOUR = timedelta(hours=1)
    EVERY_3_HOURS = timedelta(hours=3)

    @property
    def interval(self) -> Optional[timedelta]:
        """Return the polling period, or None when polling is disabled."""
        return self.value

    @property
    def label(self) -> str:
        """Return a human readable label derived from the interval."""
        if self.value is None:
            return "Never (disable automatic updates)"
        minutes = int(self.value.total_seconds() // 60)
        if minutes % 60 == 0:
            hours = minutes // 60
            return "Every hour" if hours == 1 else f"Every {hours} hours"
        return "Every minute" if minutes == 1 else f"Every {minutes} minutes"

    @property
    def option_key(self) -> str:
        """Return the value stored in config entry options."""
        return self.name.lower()

    @classmethod
    def from_option(cls, value: Optional[str]) -> "PollingInterval":
        """Return the member stored under an options key, or the default."""
        for member in cls:
            if member.option_key == value:
                return member
        return DEFAULT_POLL_INTERVAL


DEFAULT_POLL_INTERVAL = PollingInterval.EVERY_30_MINUTES
DEFAULT_ONLY_OWNED = False
