"""
Home Assistant API Client

Covers the two hub capabilities casting needs: enumerating media players and
invoking ``media_player.play_media``.
"""
import logging
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from streamcast.config import settings
from streamcast.exceptions import DispatchFailedError
from streamcast.utils.http_operations import translate_http_error


logger = logging.getLogger(__name__)

SERVICE_NAME = "smart-home hub"
MEDIA_PLAYER_DOMAIN = "media_player."


class HubConfig(Protocol):
    url: str
    access_token: str


class HomeAssistantClient:
    """REST client authenticated with a long-lived access token"""

    def __init__(
        self,
        base_url: str,
        access_token: str,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._access_token = access_token
        self._timeout = timeout or settings.request_timeout_sec
        self._transport = transport

    @classmethod
    def from_config(cls, config: HubConfig, **kwargs: Any) -> "HomeAssistantClient":
        return cls(config.url, config.access_token, **kwargs)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=f"{self.base_url}/api",
            timeout=self._timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self._access_token}",
                "Content-Type": "application/json",
            },
        )

    async def get_states(self) -> list[dict]:
        """Get the state of every entity"""
        try:
            async with self._client() as client:
                response = await client.get("/states")
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise translate_http_error(exc, SERVICE_NAME) from exc
        data = response.json()
        return data if isinstance(data, list) else []

    async def get_state(self, entity_id: str) -> dict | None:
        """Get one entity's state, or None when the hub does not know it"""
        try:
            async with self._client() as client:
                response = await client.get(f"/states/{quote(entity_id, safe='.')}")
                if response.status_code == 404:
                    return None
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise translate_http_error(exc, SERVICE_NAME) from exc
        return response.json()

    async def list_media_players(self) -> list[dict]:
        states = await self.get_states()
        return [
            entity for entity in states
            if str(entity.get("entity_id", "")).startswith(MEDIA_PLAYER_DOMAIN)
        ]

    async def play_media(self, entity_id: str, content_type: str, content_id: str) -> None:
        """
        Call media_player.play_media on an entity

        Raises:
            DispatchFailedError: If the hub answers with a non-2xx status
            UnavailableError: If the hub cannot be reached
        """
        payload = {
            "entity_id": entity_id,
            "media_content_type": content_type,
            "media_content_id": content_id,
        }
        try:
            async with self._client() as client:
                response = await client.post("/services/media_player/play_media", json=payload)
        except httpx.HTTPError as exc:
            raise translate_http_error(exc, SERVICE_NAME) from exc

        if not response.is_success:
            logger.error(
                "media_player.play_media failed for %s: HTTP %s %s",
                entity_id,
                response.status_code,
                response.text[:200],
            )
            raise DispatchFailedError(
                f"Hub rejected play_media for {entity_id} (HTTP {response.status_code})",
                body=response.text,
                context={"service": SERVICE_NAME, "status_code": response.status_code},
            )

    def camera_proxy_stream_url(self, entity_id: str) -> str:
        return f"{self.base_url}/api/camera_proxy_stream/{entity_id}"
