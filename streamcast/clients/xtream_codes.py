"""
Xtream Codes API Client

Talks to Xtream-Codes style live-TV providers (``player_api.php``) and builds
playback URLs following the provider convention of embedding the account
credentials in the stream path.
"""
import base64
import binascii
import logging
from typing import Any, Protocol

import httpx

from streamcast.config import settings
from streamcast.exceptions import DispatchFailedError, UnauthorizedError
from streamcast.utils.http_operations import request_with_retry, translate_http_error
from streamcast.utils.logging_helpers import sanitize_url


logger = logging.getLogger(__name__)


class ServerCredentials(Protocol):
    server_url: str
    username: str
    password: str


def _decode_text(value: str | None) -> str | None:
    """Providers often base64-encode EPG text; fall back to the raw value."""
    if not value:
        return value
    try:
        decoded = base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return value
    return decoded if decoded.isprintable() else value


class XtreamCodesClient:
    """Client for one provider account"""

    def __init__(
        self,
        server_url: str,
        username: str,
        password: str,
        *,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_factor: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.server_url = server_url.rstrip("/")
        self.username = username
        self.password = password
        self._timeout = timeout or settings.request_timeout_sec
        self._max_retries = max_retries or settings.provider_max_retries
        self._backoff_factor = backoff_factor or settings.provider_backoff_factor
        self._transport = transport

    @classmethod
    def from_server(cls, server: ServerCredentials, **kwargs: Any) -> "XtreamCodesClient":
        return cls(server.server_url, server.username, server.password, **kwargs)

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    def _api_params(self, action: str, **params: str) -> dict[str, str]:
        query = {"username": self.username, "password": self.password, "action": action}
        query.update(params)
        return query

    async def _get_json(self, action: str, **params: str) -> Any:
        if not self.has_credentials:
            raise UnauthorizedError(
                "Live-TV server credentials are missing",
                context={"server_url": sanitize_url(self.server_url)},
            )

        url = f"{self.server_url}/player_api.php"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await request_with_retry(
                    client,
                    "GET",
                    url,
                    params=self._api_params(action, **params),
                    max_retries=self._max_retries,
                    backoff_factor=self._backoff_factor,
                )
        except httpx.HTTPError as exc:
            raise translate_http_error(exc, "live-TV provider") from exc

        try:
            return response.json()
        except ValueError as exc:
            raise DispatchFailedError(
                f"Live-TV provider returned invalid JSON for {action}",
                body=response.text,
            ) from exc

    async def get_live_categories(self) -> list[dict]:
        """Get live TV categories"""
        data = await self._get_json("get_live_categories")
        return data if isinstance(data, list) else []

    async def get_live_streams(self, category_id: str | None = None) -> list[dict]:
        """
        Get live TV streams (channels)

        Args:
            category_id: Optional category ID to filter by
        """
        params = {"category_id": category_id} if category_id else {}
        data = await self._get_json("get_live_streams", **params)
        return data if isinstance(data, list) else []

    async def get_short_epg(self, stream_id: str, limit: int = 10) -> list[dict]:
        """
        Get EPG listings for a stream

        Titles and descriptions are returned decoded.
        """
        data = await self._get_json("get_short_epg", stream_id=str(stream_id), limit=str(limit))
        listings = data.get("epg_listings") if isinstance(data, dict) else None
        if not listings:
            return []
        for listing in listings:
            listing["title"] = _decode_text(listing.get("title")) or ""
            listing["description"] = _decode_text(listing.get("description"))
        return listings

    def build_stream_url(self, stream_id: str | int, fmt: str = "m3u8") -> str:
        """
        Build the stream URL for a live channel

        Args:
            stream_id: Provider stream id (channel external id)
            fmt: Output format (m3u8 for HLS, ts for MPEG-TS)
        """
        return f"{self.server_url}/live/{self.username}/{self.password}/{stream_id}.{fmt}"

    def build_timeshift_url(self, stream_id: str | int, start: int, duration: int) -> str:
        """
        Build the catch-up URL for a past program

        Args:
            stream_id: Provider stream id
            start: Unix start timestamp
            duration: Duration in minutes
        """
        return f"{self.server_url}/timeshift/{self.username}/{self.password}/{duration}/{start}/{stream_id}.ts"
