"""Authorization state for the FitBark integration."""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from homeassistant.util import dt as dt_util

from .const import (
    CONF_ACCESS_TOKEN,
    CONF_ACCOUNT,
    CONF_CLIENT_ID,
    CONF_CLIENT_SECRET,
    CONF_EXPIRES_AT,
    CONF_REDIRECT_VALIDATED,
    CONF_REFRESH_TOKEN,
)
from .models import (
    AccountSummary,
    ClientCredentials,
    RedirectValidationState,
    TokenRecord,
)

_LOGGER = logging.getLogger(__name__)


def censor(value: Optional[str]) -> str:
    """Return a value with everything but its first and last two characters masked."""
    if not value:
        return "[NULL]"
    if len(value) <= 4:
        return "•" * len(value)
    return value[:2] + "•" * (len(value) - 4) + value[-2:]


class TokenStore:
    """Holds client credentials, the user token record and redirect validation.

    Pure state container: no network calls and no scheduling. Callers persist
    it through ``as_dict``.
    """

    def __init__(
        self,
        credentials: Optional[ClientCredentials] = None,
        record: Optional[TokenRecord] = None,
        redirect: Optional[RedirectValidationState] = None,
    ) -> None:
        """Initialize the store."""
        self.credentials = credentials or ClientCredentials()
        self.record = record or TokenRecord()
        self.redirect = redirect or RedirectValidationState()

    @property
    def access_token(self) -> Optional[str]:
        return self.record.access_token

    @property
    def refresh_token(self) -> Optional[str]:
        return self.record.refresh_token

    @property
    def expires_at(self) -> Optional[datetime]:
        return self.record.expires_at

    @property
    def account(self) -> Optional[AccountSummary]:
        return self.record.account

    def has_valid_access_token(self) -> bool:
        """Return True when a non-blank access token is stored."""
        return bool(self.record.access_token and self.record.access_token.strip())

    def is_missing_client_credentials(self) -> bool:
        """Return True when either client credential is blank."""
        return not self.credentials.is_complete

    def set_credentials(self, client_id: str, client_secret: str) -> None:
        """Store the user's developer API credentials."""
        self.credentials = ClientCredentials(
            client_id=client_id.strip(), client_secret=client_secret.strip()
        )

    def clear_credentials(self) -> None:
        """Forget the client credentials and any redirect URI validation made with them."""
        self.credentials = ClientCredentials()
        self.redirect = RedirectValidationState()

    def set_tokens(
        self,
        access: Optional[str],
        refresh: Optional[str] = None,
        expires_in: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """Store the outcome of a token exchange.

        A response without an access token must not leave a stale token in
        place, so an empty ``access`` clears the whole record. A missing
        ``refresh`` keeps the stored refresh token, since refresh exchanges
        legitimately omit one.
        """
        if not access or not access.strip():
            _LOGGER.error("Missing FitBark access token in token response, clearing stored tokens")
            self.clear_all()
            return

        self.record.access_token = access.strip()
        if refresh and refresh.strip():
            self.record.refresh_token = refresh.strip()

        if expires_in is not None:
            self.record.expires_at = (now or dt_util.utcnow()) + timedelta(seconds=expires_in)
            _LOGGER.debug("FitBark access token expires at %s", self.record.expires_at)
        else:
            self.record.expires_at = None
            _LOGGER.warning("Unknown expiration interval for the new FitBark access token")

        _LOGGER.info("Stored FitBark access token %s", censor(self.record.access_token))

    def set_account(self, account: Optional[AccountSummary]) -> None:
        self.record.account = account

    def clear_all(self) -> None:
        """Null every token field, including the account summary."""
        self.record = TokenRecord()

    def mark_redirect_validated(self, is_validated: bool) -> None:
        self.redirect.is_validated = is_validated

    def set_client_access_token(self, token: Optional[str]) -> None:
        self.redirect.client_access_token = token

    def as_dict(self) -> Dict[str, Any]:
        """Return the persisted form; the client access token is session-only."""
        return {
            CONF_CLIENT_ID: self.credentials.client_id,
            CONF_CLIENT_SECRET: self.credentials.client_secret,
            CONF_ACCESS_TOKEN: self.record.access_token,
            CONF_REFRESH_TOKEN: self.record.refresh_token,
            CONF_EXPIRES_AT: (
                self.record.expires_at.isoformat() if self.record.expires_at else None
            ),
            CONF_ACCOUNT: self.record.account.as_dict() if self.record.account else None,
            CONF_REDIRECT_VALIDATED: self.redirect.is_validated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenStore":
        expires_at = data.get(CONF_EXPIRES_AT)
        return cls(
            credentials=ClientCredentials(
                client_id=data.get(CONF_CLIENT_ID),
                client_secret=data.get(CONF_CLIENT_SECRET),
            ),
            record=TokenRecord(
                access_token=data.get(CONF_ACCESS_TOKEN),
                refresh_token=data.get(CONF_REFRESH_TOKEN),
                expires_at=dt_util.parse_datetime(expires_at) if expires_at else None,
                account=AccountSummary.from_dict(data.get(CONF_ACCOUNT)),
            ),
            redirect=RedirectValidationState(
                is_validated=bool(data.get(CONF_REDIRECT_VALIDATED, False))
            ),
        )
