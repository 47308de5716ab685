"""OAuth callback endpoint for FitBark integration."""
import logging
from typing import Optional
from urllib.parse import urlparse

from aiohttp import web
from homeassistant.core import HomeAssistant, callback
from homeassistant.data_entry_flow import UnknownFlow
from homeassistant.helpers.http import KEY_HASS, HomeAssistantView
from homeassistant.helpers.network import NoURLAvailableError, get_url

from .const import AUTH_CALLBACK_NAME, AUTH_CALLBACK_PATH, DOMAIN, EVENT_AUTHORIZATION

_LOGGER = logging.getLogger(__name__)

DATA_VIEW_REGISTERED = f"{DOMAIN}_callback_view"

SUCCESS_PAGE = """<!DOCTYPE html><html>
<head><title>Home Assistant - FitBark Integration</title></head>
<body style='font-family:verdana;text-align:center'>
<h1>Hooray!</h1>
<h3>You have successfully linked your FitBark account.</h3>
<p><i>You can close this window and return to Home Assistant.</i></p>
</body></html>"""

FAILURE_PAGE = """<!DOCTYPE html><html>
<head><title>ERROR</title></head>
<body style='font-family:verdana;text-align:center'>
<h1>FitBark Authorization Failure</h1>
<p>{reason}</p>
</body></html>"""


def build_redirect_url(hass: HomeAssistant, fallback: Optional[str] = None) -> str:
    """Return the callback URL FitBark must redirect to after sign-in."""
    try:
        base_url = get_url(hass, prefer_external=True)
    except NoURLAvailableError:
        if fallback:
            return fallback
        raise
    return f"{base_url}{AUTH_CALLBACK_PATH}"


def is_absolute_url(url: str) -> bool:
    """Return True for URLs FitBark can redirect a browser to."""
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


@callback
def async_register_callback_view(hass: HomeAssistant) -> None:
    """Register the callback view once per Home Assistant instance."""
    if hass.data.get(DATA_VIEW_REGISTERED):
        return
    hass.http.register_view(FitBarkAuthorizationCallbackView())
    hass.data[DATA_VIEW_REGISTERED] = True


def _failure(reason: str, status: int = 500) -> web.Response:
    return web.Response(
        text=FAILURE_PAGE.format(reason=reason), status=status, content_type="text/html"
    )


class FitBarkAuthorizationCallbackView(HomeAssistantView):
    """Receives the temporary authorization code from FitBark."""

    url = AUTH_CALLBACK_PATH
    name = AUTH_CALLBACK_NAME
    requires_auth = False

    async def get(self, request: web.Request) -> web.Response:
        """Forward the code to the pending config flow and render the outcome."""
        hass = request.app[KEY_HASS]
        flow_id = request.query.get("state")
        code = request.query.get("code")

        if not flow_id:
            _LOGGER.error("FitBark callback without a flow reference: %s", dict(request.query))
            hass.bus.async_fire(EVENT_AUTHORIZATION, {"result": "failed", "reason": "missing_state"})
            return _failure("Authentication Failure", status=400)

        try:
            result = await hass.config_entries.flow.async_configure(
                flow_id=flow_id, user_input={"code": code}
            )
        except UnknownFlow:
            _LOGGER.error("FitBark callback for unknown flow %s", flow_id)
            hass.bus.async_fire(EVENT_AUTHORIZATION, {"result": "failed", "reason": "unknown_flow"})
            return _failure("This authorization request has expired. Please start again.", status=400)

        if result.get("step_id") != "finish":
            return _failure("Access Token Fetch Failed")
        return web.Response(text=SUCCESS_PAGE, content_type="text/html")
