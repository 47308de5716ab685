"""FitBark account authorization.

The handshake is a linear state machine driven by user actions:

    NO_CREDENTIALS -> REDIRECT_UNVALIDATED -> UNAUTHORIZED -> AUTHORIZED

FitBark only redirects to callback URLs registered for the developer client,
so before the user can sign in the integration registers Home Assistant's
callback URL itself, using a short-lived client-credentials token.
"""
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set
from urllib.parse import urlencode

from homeassistant.util import dt as dt_util

from .api import FitBarkApiClient
from .const import (
    AUTHORIZE_URL,
    EVENT_AUTHORIZATION,
    EVENT_REDIRECT_URIS_UPDATED,
    EVENT_SIGN_OUT,
    EVENT_TOKEN_REFRESH,
    EXPIRY_WARNING_WINDOW,
)
from .exceptions import (
    FitBarkError,
    MissingAuthorizationCode,
    PreconditionFailure,
    ProtocolFailure,
    Unauthorized,
)
from .models import AccountSummary
from .registry import FitBarkRegistry
from .token_store import TokenStore, censor

_LOGGER = logging.getLogger(__name__)

PersistCallback = Callable[[], Awaitable[None]]
NotifyCallback = Callable[[str, Dict[str, Any]], None]


class AuthState(Enum):
    """Where the account is in the authorization handshake."""

    NO_CREDENTIALS = "no_credentials"
    REDIRECT_UNVALIDATED = "redirect_unvalidated"
    UNAUTHORIZED = "unauthorized"
    AUTHORIZED = "authorized"


def parse_redirect_uris(raw: Optional[str]) -> List[str]:
    """Split the remote redirect URI string on whitespace and record separators."""
    return (raw or "").split()


class AuthorizationFlow:
    """Drives the OAuth handshake and token lifecycle over a ``TokenStore``."""

    def __init__(
        self,
        token_store: TokenStore,
        api: FitBarkApiClient,
        redirect_url: str,
        registry: Optional[FitBarkRegistry] = None,
        persist: Optional[PersistCallback] = None,
        notify: Optional[NotifyCallback] = None,
    ) -> None:
        """Initialize the flow."""
        self._store = token_store
        self._api = api
        self.redirect_url = redirect_url
        self._registry = registry
        self._persist = persist
        self._notify = notify

    @property
    def token_store(self) -> TokenStore:
        return self._store

    @property
    def state(self) -> AuthState:
        if self._store.has_valid_access_token():
            return AuthState.AUTHORIZED
        if self._store.is_missing_client_credentials():
            return AuthState.NO_CREDENTIALS
        if not self._store.redirect.is_validated:
            return AuthState.REDIRECT_UNVALIDATED
        return AuthState.UNAUTHORIZED

    async def _async_persist(self) -> None:
        if self._persist is not None:
            await self._persist()

    def _fire(self, event_type: str, data: Dict[str, Any]) -> None:
        if self._notify is not None:
            self._notify(event_type, data)

    def _require_credentials(self) -> None:
        if self._store.is_missing_client_credentials():
            raise PreconditionFailure("FitBark API client credentials are missing")

    async def async_set_credentials(self, client_id: str, client_secret: str) -> None:
        """Store the user's client credentials (leaves NO_CREDENTIALS)."""
        self._store.set_credentials(client_id, client_secret)
        self._store.mark_redirect_validated(False)
        await self._async_persist()

    def authorization_url(self, state: str) -> str:
        """Return the FitBark sign-in URL for the user to open."""
        self._require_credentials()
        query = urlencode(
            {
                "response_type": "code",
                "client_id": self._store.credentials.client_id,
                "redirect_uri": self.redirect_url,
                "state": state,
            }
        )
        return f"{AUTHORIZE_URL}?{query}"

    # Redirect URI self-registration

    async def async_validate_redirect_configuration(self) -> bool:
        """Make sure FitBark lists our callback URL among the client's redirect URIs.

        A write is only trusted after it has been read back. Any remote failure
        is raised and leaves the configuration unvalidated.
        """
        self._require_credentials()
        self._store.mark_redirect_validated(False)

        client_token = await self._api.async_request_client_token(self._store.credentials)
        self._store.set_client_access_token(client_token)
        _LOGGER.debug("Got client access token %s, reading redirect URIs", censor(client_token))

        current = parse_redirect_uris(await self._api.async_get_redirect_uris(client_token))
        _LOGGER.debug("Current redirect URIs: %s", current)

        if self.redirect_url in current:
            _LOGGER.info("FitBark redirect URIs already include %s", self.redirect_url)
            self._store.mark_redirect_validated(True)
            await self._async_persist()
            return True

        updated = " ".join(current + [self.redirect_url])
        _LOGGER.info("Adding %s to the FitBark redirect URIs", self.redirect_url)
        echoed = await self._api.async_set_redirect_uris(client_token, updated)
        self._fire(EVENT_REDIRECT_URIS_UPDATED, {"redirect_uris": echoed})

        confirmed: Set[str] = set(
            parse_redirect_uris(await self._api.async_get_redirect_uris(client_token))
        )
        if self.redirect_url not in confirmed:
            raise ProtocolFailure(
                f"FitBark did not confirm the redirect URI update (registered: {sorted(confirmed)})"
            )

        self._store.mark_redirect_validated(True)
        await self._async_persist()
        return True

    async def async_reset_redirect_configuration(self) -> None:
        """Overwrite the remote redirect URIs with only our callback URL."""
        self._require_credentials()
        client_token = await self._api.async_request_client_token(self._store.credentials)
        self._store.set_client_access_token(client_token)

        echoed = await self._api.async_set_redirect_uris(client_token, self.redirect_url)
        self._fire(EVENT_REDIRECT_URIS_UPDATED, {"redirect_uris": echoed})
        self._store.mark_redirect_validated(False)
        await self._async_persist()

    # Tokens

    async def async_exchange_code(self, code: Optional[str]) -> None:
        """Exchange the callback's temporary code for the user's token.

        A failed request leaves any previous session in place.
        """
        if not code:
            _LOGGER.error("Missing FitBark authorization code in callback")
            self._fire(EVENT_AUTHORIZATION, {"result": "failed", "reason": "missing_code"})
            raise MissingAuthorizationCode("Missing FitBark authorization code")
        self._require_credentials()

        _LOGGER.info("Exchanging FitBark authorization code %s", censor(code))
        try:
            response = await self._api.async_exchange_code(
                self._store.credentials, code, self.redirect_url
            )
        except FitBarkError as err:
            _LOGGER.error("FitBark access token request failed: %s", err)
            self._fire(EVENT_AUTHORIZATION, {"result": "failed", "reason": str(err)})
            raise

        self._store.set_tokens(response.access_token, response.refresh_token, response.expires_in)
        if not self._store.has_valid_access_token():
            await self._async_persist()
            self._fire(EVENT_AUTHORIZATION, {"result": "failed", "reason": "missing_access_token"})
            raise ProtocolFailure("Missing access token in FitBark token response")

        await self._async_read_account_quietly()
        await self._async_persist()
        self._fire(EVENT_AUTHORIZATION, {"result": "authorized", "username": self._username()})

    async def async_refresh(self) -> None:
        """Refresh the access token; failures keep the current token."""
        if not self._store.has_valid_access_token():
            raise Unauthorized("Not signed in to FitBark")
        if not self._store.refresh_token:
            raise PreconditionFailure("No FitBark refresh token is stored")
        self._require_credentials()

        _LOGGER.info("Refreshing FitBark access token")
        try:
            response = await self._api.async_refresh_token(
                self._store.credentials, self._store.refresh_token
            )
            if not response.access_token:
                raise ProtocolFailure("Missing access token in FitBark refresh response")
        except FitBarkError as err:
            _LOGGER.error("Failed to refresh the FitBark access token: %s", err)
            self._fire(EVENT_TOKEN_REFRESH, {"result": "failed", "reason": str(err)})
            raise

        self._store.set_tokens(response.access_token, response.refresh_token, response.expires_in)
        await self._async_persist()
        self._fire(EVENT_TOKEN_REFRESH, {"result": "success"})

    async def async_read_account(self) -> AccountSummary:
        """Fetch and store the signed-in account summary."""
        if not self._store.has_valid_access_token():
            raise Unauthorized("Not signed in to FitBark")
        account = await self._api.async_get_user(self._store.access_token)
        self._store.set_account(account)
        await self._async_persist()
        return account

    async def _async_read_account_quietly(self) -> None:
        try:
            account = await self._api.async_get_user(self._store.access_token)
        except FitBarkError as err:
            _LOGGER.warning("Signed in, but reading the FitBark account failed: %s", err)
            return
        self._store.set_account(account)

    def _username(self) -> Optional[str]:
        return self._store.account.username if self._store.account else None

    # Sign-out

    async def async_sign_out(self, keep_credentials: bool = False) -> int:
        """Delete every linked dog, then clear the stored authorization.

        Returns the number of dogs deleted.
        """
        username = self._username()
        _LOGGER.info("Signing out of FitBark account %s and deleting linked dogs", username)

        deleted = 0
        if self._registry is not None:
            deleted = await self._registry.async_delete_all()

        self._store.clear_all()
        if not keep_credentials:
            self._store.clear_credentials()
        await self._async_persist()
        self._fire(EVENT_SIGN_OUT, {"username": username, "deleted": deleted})
        return deleted

    async def async_reset_credentials(self) -> None:
        """Sign out and forget the client credentials."""
        await self.async_sign_out(keep_credentials=False)

    def expiry_advisory(self, now: Optional[datetime] = None) -> Optional[datetime]:
        """Return the expiry time when the token expires within the warning window."""
        expires_at = self._store.expires_at
        if not self._store.has_valid_access_token() or expires_at is None:
            return None
        if expires_at - (now or dt_util.utcnow()) < EXPIRY_WARNING_WINDOW:
            return expires_at
        return None
