"""
HTTP client for the cookie preference service.
"""

import logging
from typing import List, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from core.config import ClientConfig
from models.cookies import CookieSettings

logger = logging.getLogger(__name__)


class PreferenceApiError(Exception):
    """A call to the preference service failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PreferenceApiClient:
    """
    Async client for the ``/cookie-preferences`` endpoints.

    Transport failures, unexpected status codes and unreadable bodies raise
    :class:`PreferenceApiError`. A missing record is not an error for
    ``fetch`` (returns None) or ``delete`` (returns False).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the client.

        Args:
            base_url: Origin of the preference service
            timeout: Per-request timeout in seconds
            transport: Custom httpx transport (ASGI app, mock)
        """
        self.base_url = base_url.rstrip('/')
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport
        )

    @classmethod
    def from_config(cls, config: ClientConfig) -> "PreferenceApiClient":
        return cls(config.api_url, timeout=config.request_timeout)

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise PreferenceApiError(f"{method} {path} failed: {e}") from e
        logger.debug(f"{method} {path} -> {response.status_code}")
        return response

    @staticmethod
    def _json(response: httpx.Response) -> dict:
        try:
            body = response.json()
        except ValueError as e:
            raise PreferenceApiError(
                f"Unreadable response body from {response.request.url}",
                status_code=response.status_code
            ) from e
        if not isinstance(body, dict):
            raise PreferenceApiError("Response body is not an object", status_code=response.status_code)
        return body

    async def save(self, settings: CookieSettings) -> bool:
        """
        Store ``settings`` for ``settings.user_id``.

        Returns:
            True once the service acknowledged the write
        """
        if not settings.user_id:
            raise PreferenceApiError("Cannot save cookie preferences without a userId")

        response = await self._request(
            "POST",
            "/cookie-preferences",
            json=settings.to_json_dict()
        )
        body = self._json(response)
        if response.status_code != 200 or not body.get("success"):
            raise PreferenceApiError(
                f"Saving cookie preferences failed: {body.get('message')}",
                status_code=response.status_code
            )
        return True

    async def fetch(self, user_id: str) -> Optional[CookieSettings]:
        """Return the stored record for ``user_id`` or None if there is none."""
        response = await self._request("GET", f"/cookie-preferences/{quote(user_id, safe='')}")
        if response.status_code == 404:
            return None

        body = self._json(response)
        if response.status_code != 200 or not body.get("success"):
            raise PreferenceApiError(
                f"Fetching cookie preferences failed: {body.get('message')}",
                status_code=response.status_code
            )
        try:
            return CookieSettings.model_validate(body.get("data"))
        except ValidationError as e:
            raise PreferenceApiError(f"Malformed cookie preferences record: {e}") from e

    async def delete(self, user_id: str) -> bool:
        """Delete the record for ``user_id``; return whether one existed."""
        response = await self._request("DELETE", f"/cookie-preferences/{quote(user_id, safe='')}")
        body = self._json(response)
        if response.status_code != 200:
            raise PreferenceApiError(
                f"Deleting cookie preferences failed: {body.get('message')}",
                status_code=response.status_code
            )
        return bool(body.get("success"))

    async def list_all(self) -> List[CookieSettings]:
        """Return every stored record (administrative)."""
        response = await self._request("GET", "/cookie-preferences")
        body = self._json(response)
        if response.status_code != 200 or not body.get("success"):
            raise PreferenceApiError("Listing cookie preferences failed", status_code=response.status_code)
        try:
            return [CookieSettings.model_validate(item) for item in body.get("data") or []]
        except ValidationError as e:
            raise PreferenceApiError(f"Malformed cookie preferences record: {e}") from e

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "PreferenceApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
