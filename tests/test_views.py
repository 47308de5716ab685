"""Unit tests for the OAuth callback endpoint."""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from homeassistant.data_entry_flow import UnknownFlow
from homeassistant.helpers.http import KEY_HASS
from homeassistant.helpers.network import NoURLAvailableError

from custom_components.fitbark.const import AUTH_CALLBACK_PATH, EVENT_AUTHORIZATION
from custom_components.fitbark.views import FitBarkAuthorizationCallbackView, build_redirect_url

MODULE = "custom_components.fitbark.views"


def _request(hass, **query):
    request = MagicMock()
    request.app = {KEY_HASS: hass}
    request.query = query
    return request


@pytest.fixture
def hass():
    hass = MagicMock()
    hass.config_entries.flow.async_configure = AsyncMock(return_value={"step_id": "finish"})
    return hass


class TestRedirectUrl:
    """Callback URL construction."""

    def test_uses_external_url(self):
        with patch(f"{MODULE}.get_url", return_value="https://ha.example.com"):
            assert build_redirect_url(MagicMock()) == f"https://ha.example.com{AUTH_CALLBACK_PATH}"

    def test_fallback_when_no_url(self):
        with patch(f"{MODULE}.get_url", side_effect=NoURLAvailableError):
            assert build_redirect_url(MagicMock(), fallback="https://old/cb") == "https://old/cb"

    def test_no_url_without_fallback(self):
        with patch(f"{MODULE}.get_url", side_effect=NoURLAvailableError):
            with pytest.raises(NoURLAvailableError):
                build_redirect_url(MagicMock())


class TestCallbackView:
    """Forwarding the authorization code to the config flow."""

    async def test_forwards_code(self, hass):
        response = await FitBarkAuthorizationCallbackView().get(
            _request(hass, state="flow-1", code="code123")
        )

        hass.config_entries.flow.async_configure.assert_awaited_once_with(
            flow_id="flow-1", user_input={"code": "code123"}
        )
        assert response.status == 200
        assert "successfully linked" in response.text

    async def test_forwards_missing_code(self, hass):
        """The flow decides what a missing code means."""
        hass.config_entries.flow.async_configure.return_value = {"step_id": "authorize_failed"}

        response = await FitBarkAuthorizationCallbackView().get(_request(hass, state="flow-1"))

        hass.config_entries.flow.async_configure.assert_awaited_once_with(
            flow_id="flow-1", user_input={"code": None}
        )
        assert response.status == 500

    async def test_missing_state(self, hass):
        response = await FitBarkAuthorizationCallbackView().get(_request(hass, code="code123"))

        assert response.status == 400
        hass.config_entries.flow.async_configure.assert_not_awaited()
        hass.bus.async_fire.assert_called_once()
        assert hass.bus.async_fire.call_args.args[0] == EVENT_AUTHORIZATION

    async def test_unknown_flow(self, hass):
        hass.config_entries.flow.async_configure.side_effect = UnknownFlow

        response = await FitBarkAuthorizationCallbackView().get(
            _request(hass, state="stale", code="code123")
        )

        assert response.status == 400
        assert hass.bus.async_fire.call_args.args[1]["result"] == "failed"
