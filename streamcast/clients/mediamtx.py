"""
MediaMTX API Client

Thin wrapper over the MediaMTX v3 REST API that manages on-demand RTSP paths.
"""
import logging
from urllib.parse import quote

import httpx

from streamcast.config import settings
from streamcast.utils.http_operations import translate_http_error


logger = logging.getLogger(__name__)

SERVICE_NAME = "transcoding gateway"


def _quote_path(path_name: str) -> str:
    return quote(path_name, safe="")


class MediaMTXClient:
    """REST client for the gateway's path configuration and status endpoints"""

    def __init__(
        self,
        api_url: str | None = None,
        *,
        timeout: float | None = None,
        availability_timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = (api_url or settings.mediamtx_api_url).rstrip("/")
        self._timeout = timeout or settings.request_timeout_sec
        self._availability_timeout = availability_timeout or settings.availability_timeout_sec
        self._transport = transport

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_url,
            timeout=timeout or self._timeout,
            transport=self._transport,
        )

    async def _send(
        self,
        method: str,
        url: str,
        *,
        timeout: float | None = None,
        allow_not_found: bool = False,
        json: dict | None = None,
    ) -> httpx.Response | None:
        try:
            async with self._client(timeout) as client:
                response = await client.request(method, url, json=json)
                if allow_not_found and response.status_code == 404:
                    return None
                response.raise_for_status()
                return response
        except httpx.HTTPError as exc:
            raise translate_http_error(exc, SERVICE_NAME) from exc

    async def is_available(self) -> bool:
        """Check if MediaMTX answers within the availability timeout"""
        try:
            async with self._client(self._availability_timeout) as client:
                response = await client.get("/v3/config/global/get")
                return response.is_success
        except httpx.HTTPError as exc:
            logger.debug("Gateway availability check failed: %s", type(exc).__name__)
            return False

    async def get_path(self, path_name: str, *, timeout: float | None = None) -> dict | None:
        """Get runtime status of a path, or None when it does not exist"""
        response = await self._send(
            "GET",
            f"/v3/paths/get/{_quote_path(path_name)}",
            timeout=timeout,
            allow_not_found=True,
        )
        return response.json() if response is not None else None

    async def get_path_config(self, path_name: str) -> dict | None:
        """Get the stored configuration of a path, or None when it is not configured"""
        response = await self._send(
            "GET",
            f"/v3/config/paths/get/{_quote_path(path_name)}",
            allow_not_found=True,
        )
        return response.json() if response is not None else None

    async def add_path(self, path_name: str, config: dict) -> None:
        """Add a new path configuration"""
        await self._send("POST", f"/v3/config/paths/add/{_quote_path(path_name)}", json=config)

    async def patch_path(self, path_name: str, config: dict) -> None:
        """Update fields of an existing path configuration"""
        await self._send("PATCH", f"/v3/config/paths/patch/{_quote_path(path_name)}", json=config)

    async def delete_path(self, path_name: str) -> bool:
        """
        Remove a path configuration

        Returns:
            False when the path was already absent, True otherwise
        """
        response = await self._send(
            "DELETE",
            f"/v3/config/paths/delete/{_quote_path(path_name)}",
            allow_not_found=True,
        )
        return response is not None

    def webrtc_url(self, path_name: str) -> str:
        return f"http://{settings.mediamtx_host}:{settings.mediamtx_webrtc_port}/{_quote_path(path_name)}"

    def hls_url(self, path_name: str) -> str:
        return f"http://{settings.mediamtx_host}:{settings.mediamtx_hls_port}/{_quote_path(path_name)}/index.m3u8"
