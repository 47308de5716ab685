"""FitBark API client.

One coroutine per remote operation. Requests are built here and responses are
decoded into the records in ``models.py``; every failure is raised to the
caller as a ``RemoteFailure`` (transport/HTTP) or ``ProtocolFailure`` (missing
or malformed fields). Nothing is retried or swallowed here.
"""
import asyncio
import json
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from aiohttp import ClientError, ClientSession, ClientTimeout

from .const import (
    API_BASE,
    CLIENT_CREDENTIALS_SCOPE,
    DAILY_GOAL_PATH,
    DOG_PATH,
    DOG_RELATIONS_PATH,
    REDIRECT_URIS_PATH,
    REQUEST_TIMEOUT,
    SIMILAR_DOGS_STATS_PATH,
    TOKEN_URL,
    USER_PATH,
)
from .exceptions import ProtocolFailure, RemoteFailure
from .models import (
    AccountSummary,
    ClientCredentials,
    DogProfile,
    DogRelation,
    ScheduledDailyGoal,
    SimilarDogsStats,
    TokenResponse,
)

_LOGGER = logging.getLogger(__name__)


def _error_message(payload: Any, fallback: str) -> str:
    """Pick the most descriptive error text out of an error body."""
    if isinstance(payload, dict):
        for key in ("error_description", "message", "error"):
            if payload.get(key):
                return str(payload[key])
    return fallback


class FitBarkApiClient:
    """Stateless wrapper around the FitBark REST API."""

    def __init__(self, session: ClientSession, timeout: int = REQUEST_TIMEOUT) -> None:
        """Initialize the client with Home Assistant's shared session."""
        self._session = session
        self._timeout = ClientTimeout(total=timeout)

    async def _request(
        self,
        method: str,
        url: str,
        description: str,
        token: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send one request and return the decoded JSON body."""
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        query = {key: str(value) for key, value in (params or {}).items()}

        _LOGGER.debug("Sending %s %s (%s)", method, url, description)
        try:
            response = await self._session.request(
                method, url, params=query, headers=headers, timeout=self._timeout
            )
            body = await response.text()
        except asyncio.TimeoutError as err:
            raise RemoteFailure(f"{description} request timed out") from err
        except ClientError as err:
            raise RemoteFailure(f"{description} request failed: {err}") from err
        except UnicodeDecodeError as err:
            raise ProtocolFailure(
                f"{description} response (status {response.status}) is not valid text: {err}"
            ) from err

        try:
            payload = json.loads(body) if body else {}
        except ValueError:
            payload = None

        if response.status >= 400:
            message = _error_message(payload, response.reason or "HTTP error")
            _LOGGER.debug("%s request failed (%s): %s", description, response.status, body)
            raise RemoteFailure(
                f"{description} request failed: {message}",
                status=response.status,
                raw_body=body,
            )

        if payload is None:
            raise ProtocolFailure(f"{description} response is not valid JSON: {body[:200]}")
        return payload

    async def _get(self, path: str, description: str, token: str, params=None) -> Any:
        return await self._request("GET", f"{API_BASE}{path}", description, token, params)

    # OAuth

    async def async_exchange_code(
        self, credentials: ClientCredentials, code: str, redirect_uri: str
    ) -> TokenResponse:
        """Exchange a temporary authorization code for a user token."""
        payload = await self._request(
            "POST",
            TOKEN_URL,
            "Access token",
            params={
                "client_id": credentials.client_id,
                "client_secret": credentials.client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": redirect_uri,
            },
        )
        return TokenResponse.from_json(payload)

    async def async_refresh_token(
        self, credentials: ClientCredentials, refresh_token: str
    ) -> TokenResponse:
        """Mint a new access token from a refresh token."""
        payload = await self._request(
            "POST",
            TOKEN_URL,
            "Token refresh",
            params={
                "client_id": credentials.client_id,
                "client_secret": credentials.client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
        )
        return TokenResponse.from_json(payload)

    async def async_request_client_token(self, credentials: ClientCredentials) -> str:
        """Request a client-credentials token scoped to redirect URI management."""
        payload = await self._request(
            "POST",
            TOKEN_URL,
            "Client access token",
            params={
                "client_id": credentials.client_id,
                "client_secret": credentials.client_secret,
                "scope": CLIENT_CREDENTIALS_SCOPE,
                "grant_type": "client_credentials",
            },
        )
        token = TokenResponse.from_json(payload).access_token
        if not token:
            raise ProtocolFailure("Missing client access token in response")
        return token

    # Redirect URIs

    async def async_get_redirect_uris(self, client_token: str) -> str:
        """Return the space separated redirect URIs registered for the client."""
        payload = await self._get(REDIRECT_URIS_PATH, "Current redirect URIs", client_token)
        if not isinstance(payload, dict) or "redirect_uri" not in payload:
            raise ProtocolFailure(f"Missing 'redirect_uri' in response: {payload!r}")
        return str(payload["redirect_uri"] or "")

    async def async_set_redirect_uris(self, client_token: str, redirect_uris: str) -> Optional[str]:
        """Replace the registered redirect URIs; returns the set echoed back."""
        payload = await self._request(
            "POST",
            f"{API_BASE}{REDIRECT_URIS_PATH}",
            "Update redirect URIs",
            client_token,
            params={"redirect_uri": redirect_uris},
        )
        if isinstance(payload, dict):
            return payload.get("redirect_uri_set")
        return None

    # User data

    async def async_get_user(self, token: str) -> AccountSummary:
        payload = await self._get(USER_PATH, "Get user info", token)
        return AccountSummary.from_json(payload)

    async def async_get_dog_relations(self, token: str) -> List[DogRelation]:
        payload = await self._get(DOG_RELATIONS_PATH, "Get dog relations", token)
        relations = payload.get("dog_relations") if isinstance(payload, dict) else None
        if not isinstance(relations, list):
            raise ProtocolFailure(f"Invalid 'dog_relations' response: {payload!r}")
        return [DogRelation.from_json(relation) for relation in relations]

    async def async_get_dog(self, token: str, slug: str) -> DogProfile:
        payload = await self._get(DOG_PATH.format(slug=slug), "Get dog info", token)
        if not isinstance(payload, dict) or not isinstance(payload.get("dog"), dict):
            raise ProtocolFailure(f"Missing 'dog' in response: {payload!r}")
        return DogProfile.from_json(payload["dog"])

    async def async_get_daily_goals(self, token: str, slug: str) -> List[ScheduledDailyGoal]:
        payload = await self._get(DAILY_GOAL_PATH.format(slug=slug), "Get daily goals", token)
        return self._decode_daily_goals(payload)

    async def async_set_daily_goal(
        self, token: str, slug: str, daily_goal: int, start_date: date
    ) -> List[ScheduledDailyGoal]:
        """Schedule a daily goal change; returns the updated schedule."""
        payload = await self._request(
            "PUT",
            f"{API_BASE}{DAILY_GOAL_PATH.format(slug=slug)}",
            "Update daily goal",
            token,
            params={"daily_goal": daily_goal, "date": start_date.isoformat()},
        )
        return self._decode_daily_goals(payload)

    async def async_get_similar_dogs_stats(self, token: str, slug: str) -> SimilarDogsStats:
        payload = await self._get(
            SIMILAR_DOGS_STATS_PATH, "Get similar dogs stats", token, params={"slug": slug}
        )
        stats = payload.get("similar_dogs_stats") if isinstance(payload, dict) else None
        if not stats:
            raise ProtocolFailure(f"Missing 'similar_dogs_stats' in response: {payload!r}")
        return SimilarDogsStats.from_json(stats)

    @staticmethod
    def _decode_daily_goals(payload: Any) -> List[ScheduledDailyGoal]:
        goals = payload.get("daily_goals") if isinstance(payload, dict) else None
        if not isinstance(goals, list):
            raise ProtocolFailure(f"Missing 'daily_goals' in response: {payload!r}")
        return [ScheduledDailyGoal.from_json(goal) for goal in goals]
