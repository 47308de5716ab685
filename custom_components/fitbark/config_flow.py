"""Config flow for FitBark integration."""
import logging
from typing import Any, Dict, Mapping, Optional

import voluptuous as vol

from homeassistant import config_entries
from homeassistant.core import callback
from homeassistant.data_entry_flow import FlowResult
from homeassistant.helpers.aiohttp_client import async_get_clientsession
from homeassistant.helpers.network import NoURLAvailableError
import homeassistant.helpers.config_validation as cv

from .api import FitBarkApiClient
from .auth import AuthorizationFlow
from .const import (
    CONF_CLIENT_ID,
    CONF_CLIENT_SECRET,
    CONF_ONLY_OWNED,
    CONF_POLL_INTERVAL,
    CONF_REDIRECT_URL,
    DEFAULT_ONLY_OWNED,
    DOMAIN,
    PollingInterval,
)
from .exceptions import FitBarkError, RemoteFailure
from .token_store import TokenStore
from .views import async_register_callback_view, build_redirect_url

_LOGGER = logging.getLogger(__name__)


class FitBarkConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for FitBark.

    user -> redirect -> authorize (external) -> finish
    """

    VERSION = 1

    def __init__(self) -> None:
        """Initialize the flow."""
        self._token_store = TokenStore()
        self._auth: Optional[AuthorizationFlow] = None
        self._auth_error = ""

    @staticmethod
    @callback
    def async_get_options_flow(config_entry: config_entries.ConfigEntry) -> "FitBarkOptionsFlow":
        return FitBarkOptionsFlow()

    def _authorization(self) -> AuthorizationFlow:
        if self._auth is None:
            api = FitBarkApiClient(async_get_clientsession(self.hass))
            self._auth = AuthorizationFlow(
                self._token_store,
                api,
                build_redirect_url(self.hass),
                notify=self.hass.bus.async_fire,
            )
        return self._auth

    async def async_step_user(self, user_input: Optional[Dict[str, Any]] = None) -> FlowResult:
        """Ask for the FitBark API client credentials."""
        try:
            redirect_url = build_redirect_url(self.hass)
        except NoURLAvailableError:
            return self.async_abort(reason="no_url_available")
        async_register_callback_view(self.hass)

        errors: Dict[str, str] = {}
        if user_input is not None:
            client_id = user_input[CONF_CLIENT_ID].strip()
            client_secret = user_input[CONF_CLIENT_SECRET].strip()
            if not client_id or not client_secret:
                errors["base"] = "missing_credentials"
            else:
                await self._authorization().async_set_credentials(client_id, client_secret)
                return await self.async_step_redirect()

        data_schema = vol.Schema({
            vol.Required(CONF_CLIENT_ID): cv.string,
            vol.Required(CONF_CLIENT_SECRET): cv.string,
        })

        return self.async_show_form(
            step_id="user",
            data_schema=data_schema,
            errors=errors,
            description_placeholders={"redirect_url": redirect_url},
        )

    async def async_step_redirect(self, user_input: Optional[Dict[str, Any]] = None) -> FlowResult:
        """Register our callback URL with the FitBark API client."""
        auth = self._authorization()
        errors: Dict[str, str] = {}
        placeholders = {"redirect_url": auth.redirect_url, "error": ""}

        if user_input is not None:
            try:
                await auth.async_validate_redirect_configuration()
            except RemoteFailure as err:
                _LOGGER.error("Validating FitBark redirect URIs failed: %s", err)
                errors["base"] = "cannot_connect" if err.status is None else "redirect_failed"
                placeholders["error"] = str(err)
            except FitBarkError as err:
                _LOGGER.error("Validating FitBark redirect URIs failed: %s", err)
                errors["base"] = "redirect_failed"
                placeholders["error"] = str(err)
            else:
                return await self.async_step_authorize()

        return self.async_show_form(
            step_id="redirect",
            data_schema=vol.Schema({}),
            errors=errors,
            description_placeholders=placeholders,
        )

    async def async_step_authorize(self, user_input: Optional[Dict[str, Any]] = None) -> FlowResult:
        """Send the user to FitBark; the callback view resumes the flow with the code."""
        auth = self._authorization()
        if user_input is None:
            return self.async_external_step(
                step_id="authorize", url=auth.authorization_url(self.flow_id)
            )

        try:
            await auth.async_exchange_code(user_input.get("code"))
        except FitBarkError as err:
            self._auth_error = str(err)
            return self.async_external_step_done(next_step_id="authorize_failed")
        return self.async_external_step_done(next_step_id="finish")

    async def async_step_authorize_failed(
        self, user_input: Optional[Dict[str, Any]] = None
    ) -> FlowResult:
        return self.async_abort(
            reason="authorize_failed", description_placeholders={"error": self._auth_error}
        )

    async def async_step_finish(self, user_input: Optional[Dict[str, Any]] = None) -> FlowResult:
        """Create (or update, when re-authenticating) the config entry."""
        auth = self._authorization()
        account = self._token_store.account
        if account is None:
            try:
                account = await auth.async_read_account()
            except FitBarkError as err:
                _LOGGER.warning("Could not read the FitBark account: %s", err)
        data = {**self._token_store.as_dict(), CONF_REDIRECT_URL: auth.redirect_url}

        if self.source == config_entries.SOURCE_REAUTH:
            return self.async_update_reload_and_abort(self._get_reauth_entry(), data=data)

        username = account.username if account else None
        await self.async_set_unique_id(username or self._token_store.credentials.client_id)
        self._abort_if_unique_id_configured()

        title = f"FitBark ({username})" if username else "FitBark"
        return self.async_create_entry(title=title, data=data)

    async def async_step_reauth(self, entry_data: Mapping[str, Any]) -> FlowResult:
        """Start over from the stored credentials after the token was lost."""
        self._token_store = TokenStore.from_dict(dict(entry_data))
        self._token_store.clear_all()
        return await self.async_step_reauth_confirm()

    async def async_step_reauth_confirm(
        self, user_input: Optional[Dict[str, Any]] = None
    ) -> FlowResult:
        if user_input is None:
            return self.async_show_form(step_id="reauth_confirm", data_schema=vol.Schema({}))

        if self._token_store.is_missing_client_credentials():
            return await self.async_step_user()
        try:
            build_redirect_url(self.hass)
        except NoURLAvailableError:
            return self.async_abort(reason="no_url_available")
        async_register_callback_view(self.hass)
        if not self._token_store.redirect.is_validated:
            return await self.async_step_redirect()
        return await self.async_step_authorize()


class FitBarkOptionsFlow(config_entries.OptionsFlow):
    """Polling options for FitBark."""

    async def async_step_init(self, user_input: Optional[Dict[str, Any]] = None) -> FlowResult:
        if user_input is not None:
            return self.async_create_entry(title="", data=user_input)

        options = self.config_entry.options
        current = PollingInterval.from_option(options.get(CONF_POLL_INTERVAL))

        data_schema = vol.Schema({
            vol.Required(CONF_POLL_INTERVAL, default=current.option_key): vol.In(
                {interval.option_key: interval.label for interval in PollingInterval}
            ),
            vol.Required(
                CONF_ONLY_OWNED, default=options.get(CONF_ONLY_OWNED, DEFAULT_ONLY_OWNED)
            ): cv.boolean,
        })

        return self.async_show_form(step_id="init", data_schema=data_schema)
