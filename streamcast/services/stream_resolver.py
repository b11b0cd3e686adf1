"""
Stream Resolver

Turns "what to play" into "a URL to play". Holds no state of its own; its
errors are those of the store, the guide cache and the path registry.
"""
import logging
from datetime import datetime
from typing import Callable

from streamcast.clients.home_assistant import HomeAssistantClient
from streamcast.clients.xtream_codes import XtreamCodesClient
from streamcast.exceptions import NotFoundError, UnauthorizedError
from streamcast.models import Camera, HomeAssistantConfig, IptvServer
from streamcast.services.cast_types import CameraVia
from streamcast.services.db_service import OwnershipStore
from streamcast.services.guide_cache import GuideCache
from streamcast.services.stream_path_registry import StreamPathRegistry
from streamcast.utils.logging_helpers import sanitize_url


logger = logging.getLogger(__name__)

ProviderClientFactory = Callable[[IptvServer], XtreamCodesClient]
HubClientFactory = Callable[[HomeAssistantConfig], HomeAssistantClient]

HUB_CAMERA_DOMAIN = "camera."


class StreamResolver:
    def __init__(
        self,
        store: OwnershipStore,
        guide_cache: GuideCache,
        path_registry: StreamPathRegistry,
        *,
        provider_factory: ProviderClientFactory | None = None,
        hub_factory: HubClientFactory | None = None,
    ):
        self._store = store
        self._guide_cache = guide_cache
        self._path_registry = path_registry
        self._provider_factory = provider_factory or XtreamCodesClient.from_server
        self._hub_factory = hub_factory or HomeAssistantClient.from_config

    async def locate_channel(self, user_id: str, channel_id: str) -> tuple[str, IptvServer]:
        """Return (external_id, server) for an owned channel"""
        cached = self._guide_cache.find_channel(user_id, channel_id)
        if cached is not None:
            server = await self._store.get_server(user_id, cached.server_id)
            if server is None:
                raise NotFoundError("Live-TV server not found", context={"channel_id": channel_id})
            return cached.external_id, server

        row = await self._store.get_channel_with_server(user_id, channel_id)
        if row is None:
            raise NotFoundError("Channel not found", context={"channel_id": channel_id})
        channel, server = row
        return channel.external_id, server

    async def _provider_client(self, user_id: str, channel_id: str) -> tuple[str, XtreamCodesClient]:
        external_id, server = await self.locate_channel(user_id, channel_id)
        client = self._provider_factory(server)
        if not client.has_credentials:
            raise UnauthorizedError(
                "Live-TV server credentials are missing",
                context={"server_id": server.id},
            )
        return external_id, client

    async def resolve_channel_stream(self, user_id: str, channel_id: str, fmt: str = "m3u8") -> str:
        """
        Build the live stream URL for a channel.

        Raises:
            NotFoundError: If the channel or its server is missing or not owned
            UnauthorizedError: If the server has no credentials
        """
        external_id, client = await self._provider_client(user_id, channel_id)
        url = client.build_stream_url(external_id, fmt)
        logger.debug("Resolved channel %s -> %s", channel_id, sanitize_url(url))
        return url

    async def resolve_timeshift_stream(
        self,
        user_id: str,
        channel_id: str,
        start: datetime,
        duration_minutes: int,
    ) -> str:
        """Build the catch-up URL for a past program on a channel"""
        external_id, client = await self._provider_client(user_id, channel_id)
        return client.build_timeshift_url(external_id, int(start.timestamp()), duration_minutes)

    async def hub_client(self, user_id: str) -> HomeAssistantClient:
        """
        Raises:
            UnauthorizedError: If the user has no hub configured
        """
        config = await self._store.get_hub_config(user_id)
        if config is None or not config.access_token:
            raise UnauthorizedError("Home Assistant not configured")
        return self._hub_factory(config)

    async def _owned_camera(self, user_id: str, camera_id: str) -> Camera:
        camera = await self._store.get_camera(user_id, camera_id)
        if camera is None:
            raise NotFoundError("Camera not found", context={"camera_id": camera_id})
        return camera

    async def streamable_camera(self, user_id: str, camera_id: str) -> Camera:
        """
        Owned camera with an RTSP source; reads the store only.

        Raises:
            NotFoundError: If the camera is missing, not owned or has no source
        """
        camera = await self._owned_camera(user_id, camera_id)
        if not camera.rtsp_url:
            raise NotFoundError("Camera has no RTSP source", context={"camera_id": camera_id})
        return camera

    async def resolve_camera_stream(
        self,
        user_id: str,
        camera_ref: str,
        via: CameraVia,
        *,
        ensure_path: bool = False,
    ) -> str:
        """
        Build a playable URL for a camera.

        Standalone cameras resolve to the gateway HLS URL; with ensure_path the
        camera's transcoding path is registered first. Hub cameras resolve to the
        hub's camera proxy stream.

        Raises:
            NotFoundError: If the camera is missing or not owned
            UnauthorizedError: If a hub camera is requested without a hub configured
        """
        if via is CameraVia.HUB:
            if not camera_ref.startswith(HUB_CAMERA_DOMAIN):
                raise NotFoundError("Hub camera not found", context={"entity_id": camera_ref})
            client = await self.hub_client(user_id)
            return client.camera_proxy_stream_url(camera_ref)

        if not ensure_path:
            camera = await self._owned_camera(user_id, camera_ref)
            return self._path_registry.get_stream_urls(camera.id).hls_url

        camera = await self.streamable_camera(user_id, camera_ref)
        registration = await self._path_registry.register_camera(
            camera.id,
            camera.rtsp_url,
            camera.username,
            camera.password,
        )
        return registration.hls_url
